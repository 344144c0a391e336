# notches.py
# Lever data model: one LeverConfig owns an ordered list of Notch segments.
from decimal import Decimal, ROUND_HALF_UP

from errors import NotchValidationError

GATE = "gate"
LINEAR = "linear"
NOTCH_TYPES = (GATE, LINEAR)

FLOAT_FIELDS = ("value", "min_value", "max_value", "input_min", "input_max", "sim_input_min", "sim_input_max")

# Haptic motor parameters carried per notch for BLDC levers, 0-255 each
BLDC_FIELDS = ("bldc_engagement", "bldc_hold", "bldc_exit", "bldc_spring_back", "bldc_damping", "bldc_detent_strength")


def round_to(value, places):
    """Round half-up on the value's shortest repr. Integers are treated as floats."""
    if value is None:
        return None
    step = Decimal(1).scaleb(-places)
    rounded = float(Decimal(repr(float(value))).quantize(step, rounding=ROUND_HALF_UP))
    return rounded + 0.0  # -0.0 -> 0.0


def round2(value):
    return round_to(value, 2)


def midpoint(low, high):
    return (low + high) / 2


class Notch:
    def __init__(self, index, type, value=None, min_value=None, max_value=None,
                 input_min=None, input_max=None, sim_input_min=None, sim_input_max=None,
                 description=None, **bldc):
        unknown = set(bldc) - set(BLDC_FIELDS)
        if unknown:
            raise TypeError(f"Unknown notch fields: {', '.join(sorted(unknown))}")
        self.index = index
        self.type = type
        self.value = round2(value)
        self.min_value = round2(min_value)
        self.max_value = round2(max_value)
        self.input_min = round2(input_min)
        self.input_max = round2(input_max)
        self.sim_input_min = round2(sim_input_min)
        self.sim_input_max = round2(sim_input_max)
        self.description = description
        for field in BLDC_FIELDS:
            setattr(self, field, bldc.get(field))

    def __repr__(self):
        return (f"Notch(index={self.index}, type={self.type!r}, input=[{self.input_min}, {self.input_max}], "
                f"sim_input=[{self.sim_input_min}, {self.sim_input_max}])")

    def __eq__(self, other):
        if not isinstance(other, Notch):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    @property
    def is_gate(self):
        return self.type == GATE

    @property
    def has_input_range(self):
        return self.input_min is not None and self.input_max is not None

    @property
    def has_sim_input_range(self):
        return self.sim_input_min is not None and self.sim_input_max is not None

    @property
    def input_center(self):
        return midpoint(self.input_min, self.input_max) if self.has_input_range else None

    @property
    def sim_input_center(self):
        return midpoint(self.sim_input_min, self.sim_input_max) if self.has_sim_input_range else None

    def label(self):
        return self.description or f"Notch {self.index}"

    def with_input_range(self, input_min, input_max):
        """Copy of this notch with a new hardware range (None, None clears it)."""
        data = self.to_dict()
        data["input_min"], data["input_max"] = input_min, input_max
        return Notch.from_dict(data)

    def validate(self):
        """Return a list of problems; an empty list means the notch is valid."""
        errors = []
        prefix = f"notch {self.index}"
        if self.index is None:
            errors.append("notch index is required")
        elif not isinstance(self.index, int) or self.index < 0:
            errors.append(f"{prefix}: index must be a non-negative integer")
        if self.type not in NOTCH_TYPES:
            errors.append(f"{prefix}: type must be one of {', '.join(NOTCH_TYPES)}")
        elif self.type == GATE and self.value is None:
            errors.append(f"{prefix}: gate notches require value")
        elif self.type == LINEAR and (self.min_value is None or self.max_value is None):
            errors.append(f"{prefix}: linear notches require min_value and max_value")

        if (self.input_min is None) != (self.input_max is None):
            errors.append(f"{prefix}: input_min and input_max must be set together")
        elif self.has_input_range:
            if self.input_min > self.input_max:
                errors.append(f"{prefix}: input_min must be less than or equal to input_max")
            for name in ("input_min", "input_max"):
                if not 0.0 <= getattr(self, name) <= 1.0:
                    errors.append(f"{prefix}: {name} must be between 0.0 and 1.0")

        # Sim ranges may be negative or above 1.0, only the ordering is checked
        if (self.sim_input_min is None) != (self.sim_input_max is None):
            errors.append(f"{prefix}: sim_input_min and sim_input_max must be set together")
        elif self.has_sim_input_range and self.sim_input_min > self.sim_input_max:
            errors.append(f"{prefix}: sim_input_min must be less than or equal to sim_input_max")

        for field in BLDC_FIELDS:
            value = getattr(self, field)
            if value is not None and (not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= 255):
                errors.append(f"{prefix}: {field} must be an integer between 0 and 255")
        return errors

    def to_dict(self):
        data = {"index": self.index, "type": self.type, "description": self.description}
        for field in FLOAT_FIELDS + BLDC_FIELDS:
            data[field] = getattr(self, field)
        return data

    @classmethod
    def from_dict(cls, data):
        fields = {k: v for k, v in data.items() if k in ("index", "type", "description") + FLOAT_FIELDS + BLDC_FIELDS}
        return cls(**fields)


class LeverConfig:
    def __init__(self, lever_id, notches=None, inverted=False, calibrated_at=None, description=None,
                 value_endpoint=None, min_endpoint=None, max_endpoint=None,
                 notch_count_endpoint=None, notch_index_endpoint=None):
        self.lever_id = lever_id
        self.notches = sorted(notches or [], key=lambda n: n.index if isinstance(n.index, int) else -1)
        self.inverted = bool(inverted)
        self.calibrated_at = calibrated_at
        self.description = description
        self.value_endpoint = value_endpoint
        self.min_endpoint = min_endpoint
        self.max_endpoint = max_endpoint
        self.notch_count_endpoint = notch_count_endpoint
        self.notch_index_endpoint = notch_index_endpoint

    def __repr__(self):
        return f"LeverConfig({self.lever_id!r}, {len(self.notches)} notches, inverted={self.inverted})"

    @property
    def is_mapped(self):
        return bool(self.notches) and all(n.has_input_range for n in self.notches)

    def gates(self):
        return [n for n in self.notches if n.is_gate]

    def validate(self):
        errors = []
        if not self.lever_id:
            errors.append("lever_id is required")
        if (self.notch_count_endpoint is None) != (self.notch_index_endpoint is None):
            errors.append("notch_count_endpoint and notch_index_endpoint must be set together")
        for notch in self.notches:
            errors.extend(notch.validate())
        indexes = [n.index for n in self.notches]
        if all(isinstance(i, int) for i in indexes) and indexes != list(range(len(indexes))):
            errors.append(f"notch indexes must be contiguous from 0, got {indexes}")
        return errors

    def check(self):
        """Raise NotchValidationError unless the whole lever is valid."""
        errors = self.validate()
        if errors:
            raise NotchValidationError(errors)
        return self

    def copy(self, **changes):
        fields = {
            "lever_id": self.lever_id, "notches": list(self.notches), "inverted": self.inverted,
            "calibrated_at": self.calibrated_at, "description": self.description,
            "value_endpoint": self.value_endpoint, "min_endpoint": self.min_endpoint,
            "max_endpoint": self.max_endpoint, "notch_count_endpoint": self.notch_count_endpoint,
            "notch_index_endpoint": self.notch_index_endpoint,
        }
        fields.update(changes)
        return LeverConfig(**fields)
