# input_calibration.py
# Turns raw joystick axis readings (-1.0..1.0) into the 0.0-1.0 lever travel
# the mapper works with.
from errors import NoRangeDetected


class AxisCalibration:
    """
    Raw readings at the lever's physical minimum and maximum. min_value may be
    larger than max_value when the axis reads backwards. deadzone (fraction of
    travel) snaps readings near either end to exactly 0.0 / 1.0.
    """

    def __init__(self, min_value=-1.0, max_value=1.0, deadzone=0.0):
        if min_value == max_value:
            raise NoRangeDetected("Calibration needs different minimum and maximum readings")
        self.min_value = min_value
        self.max_value = max_value
        self.deadzone = deadzone

    def __repr__(self):
        return f"AxisCalibration(min={self.min_value:+.4f}, max={self.max_value:+.4f}, deadzone={self.deadzone})"

    @property
    def is_inverted(self):
        return self.min_value > self.max_value

    @property
    def total_travel(self):
        return abs(self.max_value - self.min_value)

    def normalize(self, raw):
        fraction = (raw - self.min_value) / (self.max_value - self.min_value)
        fraction = max(0.0, min(1.0, fraction))
        if fraction <= self.deadzone:
            return 0.0
        if fraction >= 1.0 - self.deadzone:
            return 1.0
        return fraction

    def to_dict(self):
        return {"min_value": self.min_value, "max_value": self.max_value, "deadzone": self.deadzone}

    @classmethod
    def from_dict(cls, data):
        return cls(float(data["min_value"]), float(data["max_value"]), float(data.get("deadzone", 0.0)))


def median(values):
    ordered = sorted(values)
    if not ordered:
        return 0.0
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def is_inverted_sweep(samples):
    """A sweep from physical min to max whose readings mostly go down is inverted."""
    deltas = [b - a for a, b in zip(samples, samples[1:])]
    return median(deltas) < 0


def calibrate_from_sweep(samples, deadzone=0.0):
    """Build a calibration from readings taken while sweeping physical min -> max."""
    if len(samples) < 2 or min(samples) == max(samples):
        raise NoRangeDetected("Lever did not move during the calibration sweep")
    if is_inverted_sweep(samples):
        return AxisCalibration(max(samples), min(samples), deadzone)
    return AxisCalibration(min(samples), max(samples), deadzone)
