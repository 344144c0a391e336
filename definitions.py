# definitions.py
# Common simulator levers. "path" is the control's node in the simulator API,
# "preset" picks the default notch labels offered after analysis.
LEVER_DEFINITIONS = {
    "THROTTLE":          {"path": "CurrentDrivableActor/Throttle(Lever)", "desc": "Throttle", "preset": "throttle"},
    "TRAIN_BRAKE":       {"path": "CurrentDrivableActor/TrainBrake(Lever)", "desc": "Train Brake", "preset": "brake"},
    "INDEPENDENT_BRAKE": {"path": "CurrentDrivableActor/EngineBrake(Lever)", "desc": "Independent Brake", "preset": "brake"},
    "DYNAMIC_BRAKE":     {"path": "CurrentDrivableActor/DynamicBrake(Lever)", "desc": "Dynamic Brake", "preset": "brake"},
    "MASTER_CONTROLLER": {"path": "CurrentDrivableActor/MasterController", "desc": "Master Controller", "preset": None},
    "REVERSER":          {"path": "CurrentDrivableActor/Reverser(Lever)", "desc": "Reverser", "preset": "reverser"},
}

# Endpoint suffixes appended to a control path
INPUT_VALUE = "InputValue"
OUTPUT_VALUE = "Function.GetCurrentOutputValue"
NOTCH_INDEX = "Function.GetCurrentNotchIndex"
NOTCH_COUNT = "Function.GetNotchCount"
MIN_INPUT = "Function.GetMinimumInputValue"
MAX_INPUT = "Function.GetMaximumInputValue"


def endpoint(control_path, suffix):
    return f"{control_path}.{suffix}"


def resolve_control_path(name_or_path):
    """Accept either a LEVER_DEFINITIONS key or a raw simulator path."""
    definition = LEVER_DEFINITIONS.get(name_or_path.upper())
    return definition["path"] if definition else name_or_path


def suggest_descriptions(count, preset=None):
    """Default notch labels, e.g. throttle -> Idle, Notch 1.., Full Power."""
    if preset == "throttle" and count > 2:
        return ["Idle"] + [f"Notch {i}" for i in range(1, count - 1)] + ["Full Power"]
    if preset == "reverser" and count == 3:
        return ["Reverse", "Neutral", "Forward"]
    if preset == "brake" and count > 2:
        return ["Release"] + [f"Step {i}" for i in range(1, count - 1)] + ["Emergency"]
    return [f"Position {i}" for i in range(count)]
