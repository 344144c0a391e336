# lever_analyzer.py
"""
Discovers a lever's notches on the simulator side by sweeping its InputValue
and watching what the simulator reports back.

The simulator's notch index gives the candidate zone boundaries. A boundary is
only kept when the lever snaps there (the InputValue read back jumps away from
what was set); neighbouring zones without a snap are merged into one. Each zone
becomes a gate when its output hardly changes, otherwise a linear notch. The
set-input range of each zone is what the lever mapper later sends back as
sim_input_min/sim_input_max.

Lever types:
  discrete   few integer outputs, gates only (reverser: -1, 0, 1)
  continuous many outputs, no gates (plain throttle)
  hybrid     gates and linear zones (BR430-style master controller)
"""
import time
from collections import namedtuple

from debug_log import log_message
from definitions import endpoint, suggest_descriptions, INPUT_VALUE, OUTPUT_VALUE, NOTCH_INDEX, MIN_INPUT, MAX_INPUT
from errors import InsufficientSamples, SimulatorError
from notches import Notch, GATE, LINEAR, round2, round_to

SWEEP_STEP = 0.02
SETTLING_TIME_MS = 150
SNAP_THRESHOLD = 0.03
OUTPUT_INTEGER_TOLERANCE = 0.05
MAX_DISCRETE_OUTPUTS = 15
MIN_CONTINUOUS_UNIQUE_OUTPUTS = 20
GATE_RANGE_THRESHOLD = 0.15
MIN_SWEEP_SAMPLES = 10
PUSH_ATTEMPTS = 5
PUSH_DELAY_MS = 30

DISCRETE = "discrete"
CONTINUOUS = "continuous"
HYBRID = "hybrid"
UNKNOWN = "unknown"

Sample = namedtuple("Sample", "set_input actual_input output notch_index snapped")
Zone = namedtuple("Zone", "type value output_min output_max set_input_min set_input_max "
                          "actual_input_min actual_input_max notch_indices")
AnalysisResult = namedtuple("AnalysisResult", "lever_type samples zones notches min_output max_output "
                                              "unique_output_count all_outputs_integers")


def analyze(client, control_path, sweep_step=SWEEP_STEP, settling_time_ms=SETTLING_TIME_MS,
            input_range=None, restore_position=None, preset=None, sleep=time.sleep):
    """Sweep the lever on the simulator and return an AnalysisResult."""
    log_message(f"Starting analysis of {control_path}", "ANALYZER")
    if input_range is None:
        input_range = read_input_range(client, control_path)
    samples = sweep_lever(client, control_path, input_range, sweep_step, settling_time_ms, sleep)
    result = analyze_samples(samples, preset=preset)
    if restore_position is not None:
        client.set(endpoint(control_path, INPUT_VALUE), restore_position)
    log_message(f"Analysis complete: type={result.lever_type}, zones={len(result.zones)}, "
                f"unique_outputs={result.unique_output_count}", "ANALYZER")
    return result


def read_input_range(client, control_path):
    try:
        low = client.get_float(endpoint(control_path, MIN_INPUT))
        high = client.get_float(endpoint(control_path, MAX_INPUT))
    except SimulatorError as e:
        log_message(f"Input limits unavailable for {control_path} ({e}), assuming 0.0-1.0", "WARN")
        return (0.0, 1.0)
    return (min(low, high), max(low, high))


def quick_check(client, control_path, sleep=time.sleep):
    """Cheap guess at the lever type from five positions, no segmentation."""
    outputs = []
    for position in (0.0, 0.25, 0.5, 0.75, 1.0):
        client.set(endpoint(control_path, INPUT_VALUE), position)
        sleep(0.1)
        outputs.append(client.get_float(endpoint(control_path, OUTPUT_VALUE)))
    all_integers = all(is_integer_value(o) for o in outputs)
    if all_integers and len(set(outputs)) <= 5:
        return DISCRETE
    if not all_integers:
        return CONTINUOUS
    return UNKNOWN


# --- SWEEP ---

def generate_sweep_values(input_range, step):
    low, high = input_range
    count = int(round((high - low) / step))
    values = [round2(low + i * step) for i in range(count + 1)]
    return [v for v in values if v <= high]


def sweep_lever(client, control_path, input_range, step, settling_time_ms, sleep=time.sleep):
    value_endpoint = endpoint(control_path, INPUT_VALUE)
    output_endpoint = endpoint(control_path, OUTPUT_VALUE)
    notch_endpoint = endpoint(control_path, NOTCH_INDEX)
    settle = settling_time_ms / 1000.0

    # Snap points can hold the lever, so push to the start several times
    for _ in range(PUSH_ATTEMPTS):
        client.set(value_endpoint, input_range[0])
        sleep(PUSH_DELAY_MS / 1000.0)
    sleep(settle)

    sweep_values = generate_sweep_values(input_range, step)
    log_message(f"Sweeping {len(sweep_values)} positions...", "ANALYZER")
    samples = []
    for set_input in sweep_values:
        try:
            client.set(value_endpoint, set_input)
            sleep(settle)
            actual = client.get_float(value_endpoint)
            output = client.get_float(output_endpoint)
            notch_index = client.get_float(notch_endpoint)
        except SimulatorError as e:
            log_message(f"Sample failed at {set_input}: {e}", "WARN")
            continue
        samples.append(Sample(set_input=round2(set_input), actual_input=round2(actual), output=round2(output),
                              notch_index=int(round(notch_index)),
                              snapped=abs(actual - set_input) > SNAP_THRESHOLD))

    if len(samples) < MIN_SWEEP_SAMPLES:
        raise InsufficientSamples(f"Only {len(samples)} usable samples from {control_path}")
    return samples


# --- ANALYSIS ---

def analyze_samples(samples, preset=None):
    """Segment pre-collected sweep samples. Pure, no simulator access."""
    if not samples:
        raise InsufficientSamples("No samples to analyze")
    outputs = [s.output for s in samples]
    unique_outputs = sorted(set(outputs))
    all_integers = all(is_integer_value(o) for o in unique_outputs)

    groups = group_by_notch_index(samples)
    zones = merge_continuous_notches(groups)
    lever_type = classify_lever_type(len(unique_outputs), all_integers, zones)

    return AnalysisResult(
        lever_type=lever_type,
        samples=list(samples),
        zones=zones,
        notches=build_notches_from_zones(zones, preset),
        min_output=min(outputs),
        max_output=max(outputs),
        unique_output_count=len(unique_outputs),
        all_outputs_integers=all_integers,
    )


def group_by_notch_index(samples):
    groups = {}
    for sample in samples:
        groups.setdefault(sample.notch_index, []).append(sample)
    return {idx: sorted(group, key=lambda s: s.set_input) for idx, group in groups.items()}


def merge_continuous_notches(groups):
    ordered = sorted(groups.items(), key=lambda item: item[1][0].set_input)
    zones = []
    for notch_index, group in ordered:
        if zones and not has_snap_boundary(zones[-1], group):
            previous = zones[-1]
            zones[-1] = make_zone(group, previous.notch_indices + [notch_index], previous)
        else:
            zones.append(make_zone(group, [notch_index]))
    return zones


def has_snap_boundary(zone, next_samples):
    first_next = next_samples[0]
    diff = abs(first_next.actual_input - zone.actual_input_max)
    if diff > SNAP_THRESHOLD:
        log_message(f"Snap boundary detected: actual_diff={round2(diff)}", "ANALYZER")
        return True
    return False


def make_zone(samples, notch_indices, previous=None):
    outputs = [s.output for s in samples]
    set_inputs = [s.set_input for s in samples]
    actual_inputs = [s.actual_input for s in samples]
    if previous is not None:
        outputs += [previous.output_min, previous.output_max]
        set_inputs += [previous.set_input_min, previous.set_input_max]
        actual_inputs += [previous.actual_input_min, previous.actual_input_max]
    output_min, output_max = min(outputs), max(outputs)
    zone_type = determine_zone_type(output_min, output_max)
    return Zone(
        type=zone_type,
        value=round2((output_min + output_max) / 2) if zone_type == GATE else None,
        output_min=output_min,
        output_max=output_max,
        set_input_min=min(set_inputs),
        set_input_max=max(set_inputs),
        actual_input_min=min(actual_inputs),
        actual_input_max=max(actual_inputs),
        notch_indices=notch_indices,
    )


def determine_zone_type(output_min, output_max):
    if abs(round_to(output_max, 1) - round_to(output_min, 1)) < GATE_RANGE_THRESHOLD:
        return GATE
    return LINEAR


def classify_lever_type(unique_count, all_integers, zones):
    has_gates = any(z.type == GATE for z in zones)
    has_linear = any(z.type == LINEAR for z in zones)
    if all_integers and unique_count <= MAX_DISCRETE_OUTPUTS and not has_linear:
        return DISCRETE
    if unique_count >= MIN_CONTINUOUS_UNIQUE_OUTPUTS and not has_gates:
        return CONTINUOUS
    if has_gates and has_linear:
        return HYBRID
    if unique_count >= MIN_CONTINUOUS_UNIQUE_OUTPUTS:
        return CONTINUOUS
    return DISCRETE


def is_integer_value(value):
    return abs(value - round(value)) < OUTPUT_INTEGER_TOLERANCE


def build_notches_from_zones(zones, preset=None):
    ordered = sorted(zones, key=lambda z: z.set_input_min)
    labels = suggest_descriptions(len(ordered), preset) if preset else None
    notches = []
    for index, zone in enumerate(ordered):
        if zone.type == GATE:
            description = labels[index] if labels else f"Gate at output {zone.value}"
            notches.append(Notch(index, GATE, value=zone.value, sim_input_min=zone.set_input_min,
                                 sim_input_max=zone.set_input_max, description=description))
        else:
            description = labels[index] if labels else f"Linear {zone.output_min} to {zone.output_max}"
            notches.append(Notch(index, LINEAR, min_value=zone.output_min, max_value=zone.output_max,
                                 sim_input_min=zone.set_input_min, sim_input_max=zone.set_input_max,
                                 description=description))
    return notches
