# lever_mapper.py
"""
Maps a normalized hardware lever position (0.0-1.0) to the simulator's InputValue.

Each notch carries two ranges:
  input_min/input_max         where the physical lever sits (hardware, 0.0-1.0)
  sim_input_min/sim_input_max what to send to the simulator for that segment

Gate notches always report the centre of their sim range. Linear notches
interpolate the lever's position inside the hardware range onto the sim range:

  Linear notch, input 0.1-0.4, sim 0.05-0.45, lever at 0.25
    position  = (0.25 - 0.1) / (0.4 - 0.1) = 0.5
    sim value = 0.05 + 0.5 * (0.45 - 0.05) = 0.25

All functions are pure and safe to call from any number of input paths at once.
"""
from errors import NoNotch, NoSimInputRange, UnmappedNotch, NoGateAtIndex
from notches import GATE, LINEAR, round2, midpoint


def find_notch(notches, input_value):
    """
    Return the notch whose hardware range contains input_value, or None.

    Ranges are half-open [input_min, input_max). A notch ending at the end of
    travel (input_max == 1.0) also owns 1.0, and a zero-width notch owns its
    single point. Uncalibrated notches are skipped. No clamping is done here.
    """
    for notch in notches:
        if not notch.has_input_range:
            continue
        if notch.input_min <= input_value < notch.input_max:
            return notch
        if input_value == notch.input_max and (notch.input_max == 1.0 or notch.input_min == notch.input_max):
            return notch
    return None


def calculate_sim_input(notch, input_value):
    if not notch.has_sim_input_range:
        raise NoSimInputRange(f"Notch {notch.index} has no simulator input range")

    if notch.type == GATE:
        # A detent reports its centre wherever the hand sits inside it
        return round2(midpoint(notch.sim_input_min, notch.sim_input_max))

    if notch.type == LINEAR:
        if not notch.has_input_range:
            raise UnmappedNotch(f"Notch {notch.index} has no hardware input range")
        input_span = notch.input_max - notch.input_min
        position = (input_value - notch.input_min) / input_span if input_span else 0.0
        position = max(0.0, min(1.0, position))
        sim_span = notch.sim_input_max - notch.sim_input_min
        return round2(notch.sim_input_min + position * sim_span)

    raise UnmappedNotch(f"Notch {notch.index} has unknown type {notch.type!r}")


def effective_input(lever_config, raw_input):
    """Hardware reading translated into the lever's notch coordinate space."""
    value = 1.0 - raw_input if lever_config.inverted else raw_input
    return value + 0.0


def map_input(lever_config, raw_input):
    """
    Simulator InputValue for a raw normalized hardware reading.

    Raises NoNotch (dead zone or out of [0, 1]), NoSimInputRange or UnmappedNotch.
    Callers in a control loop treat all three as "send nothing this tick".
    """
    value = effective_input(lever_config, raw_input)
    notch = find_notch(lever_config.notches, value)
    if notch is None:
        raise NoNotch(f"No notch contains input {value:.4f}")
    return calculate_sim_input(notch, value)


def map_detent(lever_config, detent_index):
    """Sim InputValue at the centre of the Nth gate (linear notches are skipped)."""
    gates = sorted((n for n in lever_config.notches if n.type == GATE), key=lambda n: n.index)
    if detent_index < 0 or detent_index >= len(gates):
        raise NoGateAtIndex(f"Lever has {len(gates)} gate(s), no detent {detent_index}")
    gate = gates[detent_index]
    if not gate.has_sim_input_range:
        raise NoSimInputRange(f"Gate {gate.index} has no simulator input range")
    return round2(midpoint(gate.sim_input_min, gate.sim_input_max))


def is_reversed_by_order(pairs):
    # pairs: (hardware_center, sim_center), at least two needed to tell a direction
    if len(pairs) < 2:
        return False
    ordered = sorted(pairs, key=lambda pair: pair[0])
    return ordered[0][1] > ordered[-1][1]


def reversed_layout(notches):
    """
    True when the physical order of the notches runs opposite to their sim order,
    e.g. Emergency at the top of hardware travel and Full Power at the bottom.
    Diagnostic only, map_input does not depend on it.
    """
    pairs = [(n.input_center, n.sim_input_center) for n in notches if n.has_input_range and n.has_sim_input_range]
    return is_reversed_by_order(pairs)
