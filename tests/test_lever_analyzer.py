import pytest

import lever_analyzer as la
from errors import InsufficientSamples, SimulatorRequestFailed
from notches import GATE, LINEAR

PATH = "CurrentDrivableActor/MasterController"


def no_sleep(seconds):
    pass


class FakeLever:
    """Simulator side of one lever: respond(input) -> (actual_input, output, notch_index)."""

    def __init__(self, respond, input_range=(0.0, 1.0)):
        self.respond = respond
        self.input_range = input_range
        self.input = input_range[0]
        self.writes = []

    def set(self, path, value):
        self.writes.append((path, value))
        self.input = value

    def get_float(self, path):
        if path.endswith("GetMinimumInputValue"):
            return self.input_range[0]
        if path.endswith("GetMaximumInputValue"):
            return self.input_range[1]
        actual, output, notch = self.respond(self.input)
        if path.endswith("InputValue"):
            return actual
        if path.endswith("GetCurrentOutputValue"):
            return output
        if path.endswith("GetCurrentNotchIndex"):
            return notch
        raise AssertionError(path)


def reverser(value):
    if value < 0.33:
        return 0.0, -1.0, 0
    if value < 0.67:
        return 0.5, 0.0, 1
    return 1.0, 1.0, 2


def throttle(value):
    return value, value, 0


def stepped_throttle(value):
    # notch index changes every quarter without the lever snapping
    return value, value, int(value * 4)


def master_controller(value):
    if value < 0.1:
        return 0.05, -1.0, 0
    if value < 0.9:
        return value, (value - 0.1) / 0.8, 1
    return 0.95, 1.0, 2


def test_discrete_reverser():
    result = la.analyze(FakeLever(reverser), PATH, preset="reverser", sleep=no_sleep)
    assert result.lever_type == la.DISCRETE
    assert [z.type for z in result.zones] == [GATE, GATE, GATE]
    assert [n.value for n in result.notches] == [-1.0, 0.0, 1.0]
    assert [n.label() for n in result.notches] == ["Reverse", "Neutral", "Forward"]
    assert (result.notches[0].sim_input_min, result.notches[0].sim_input_max) == (0.0, 0.32)
    assert (result.notches[2].sim_input_min, result.notches[2].sim_input_max) == (0.68, 1.0)
    assert result.all_outputs_integers
    assert result.unique_output_count == 3


def test_continuous_throttle():
    result = la.analyze(FakeLever(throttle), PATH, sleep=no_sleep)
    assert result.lever_type == la.CONTINUOUS
    assert len(result.notches) == 1
    notch = result.notches[0]
    assert notch.type == LINEAR
    assert (notch.sim_input_min, notch.sim_input_max) == (0.0, 1.0)
    assert (notch.min_value, notch.max_value) == (0.0, 1.0)


def test_notch_indexes_without_snap_are_merged():
    result = la.analyze(FakeLever(stepped_throttle), PATH, sleep=no_sleep)
    assert len(result.zones) == 1
    assert result.zones[0].notch_indices == [0, 1, 2, 3, 4]


def test_hybrid_master_controller():
    result = la.analyze(FakeLever(master_controller), PATH, sleep=no_sleep)
    assert result.lever_type == la.HYBRID
    assert [n.type for n in result.notches] == [GATE, LINEAR, GATE]
    assert [n.index for n in result.notches] == [0, 1, 2]
    assert result.notches[1].sim_input_min == 0.1
    assert result.notches[1].sim_input_max == 0.88


def test_sweep_pushes_to_start_and_restores():
    lever = FakeLever(throttle)
    la.analyze(lever, PATH, restore_position=0.5, sleep=no_sleep)
    first = lever.writes[:la.PUSH_ATTEMPTS]
    assert all(value == 0.0 for _, value in first)
    assert lever.writes[-1] == (f"{PATH}.InputValue", 0.5)


def test_snapped_flag():
    samples = la.sweep_lever(FakeLever(reverser), PATH, (0.0, 1.0), 0.02, 0, no_sleep)
    by_input = {s.set_input: s for s in samples}
    assert by_input[0.0].snapped is False
    assert by_input[0.2].snapped is True
    assert by_input[0.5].snapped is False


def test_custom_input_range():
    lever = FakeLever(lambda v: (v, v, 0), input_range=(-1.0, 1.0))
    result = la.analyze(lever, PATH, sweep_step=0.1, sleep=no_sleep)
    assert result.samples[0].set_input == -1.0
    assert result.samples[-1].set_input == 1.0


class BrokenLever(FakeLever):
    def get_float(self, path):
        raise SimulatorRequestFailed("connection refused")


def test_missing_input_limits_fall_back():
    assert la.read_input_range(BrokenLever(throttle), PATH) == (0.0, 1.0)


def test_too_few_samples():
    with pytest.raises(InsufficientSamples):
        la.sweep_lever(BrokenLever(throttle), PATH, (0.0, 1.0), 0.02, 0, no_sleep)


def test_analyze_samples_needs_samples():
    with pytest.raises(InsufficientSamples):
        la.analyze_samples([])


def test_generate_sweep_values():
    values = la.generate_sweep_values((0.0, 1.0), 0.02)
    assert len(values) == 51
    assert values[0] == 0.0 and values[-1] == 1.0
    assert la.generate_sweep_values((-1.0, 1.0), 0.5) == [-1.0, -0.5, 0.0, 0.5, 1.0]


def test_quick_check():
    assert la.quick_check(FakeLever(reverser), PATH, sleep=no_sleep) == la.DISCRETE
    assert la.quick_check(FakeLever(throttle), PATH, sleep=no_sleep) == la.CONTINUOUS


@pytest.mark.parametrize("unique, integers, types, expected", [
    (3, True, [GATE, GATE, GATE], la.DISCRETE),
    (51, False, [LINEAR], la.CONTINUOUS),
    (40, False, [GATE, LINEAR, GATE], la.HYBRID),
    (5, False, [LINEAR], la.DISCRETE),
])
def test_classify_lever_type(unique, integers, types, expected):
    zones = [la.Zone(t, None, 0, 0, 0, 0, 0, 0, [i]) for i, t in enumerate(types)]
    assert la.classify_lever_type(unique, integers, zones) == expected


def test_zone_type_threshold():
    assert la.determine_zone_type(0.5, 0.6) == GATE
    assert la.determine_zone_type(0.5, 0.7) == LINEAR
    # 0.25 rounds half-up to 0.3, so the span is 0.2
    assert la.determine_zone_type(0.05, 0.25) == LINEAR
    assert la.determine_zone_type(-0.25, -0.15) == GATE


def test_generic_descriptions_without_preset():
    result = la.analyze(FakeLever(reverser), PATH, sleep=no_sleep)
    assert result.notches[0].description == "Gate at output -1.0"
