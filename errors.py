# errors.py
# Every failure the mapper, the calibration tools and the simulator client can raise.
# Mapping errors are routine ("send nothing this tick"), calibration errors are
# operator-recoverable, simulator errors come from the remote API.


class LeverLinkError(Exception):
    pass


# --- DATA MODEL ---

class NotchValidationError(LeverLinkError):
    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


# --- MAPPING (runtime, skip the tick) ---

class LeverMappingError(LeverLinkError):
    pass

class NoNotch(LeverMappingError):
    """Input sits in an uncalibrated dead zone."""

class NoSimInputRange(LeverMappingError):
    """Notch has no simulator input range yet (analysis incomplete)."""

class UnmappedNotch(LeverMappingError):
    """Linear notch has no hardware input range yet (mapping incomplete)."""

class NoGateAtIndex(LeverMappingError):
    """Requested detent index is past the last gate."""


# --- CALIBRATION (operator moves the lever and retries) ---

class CalibrationError(LeverLinkError):
    pass

class NoSamples(CalibrationError):
    pass

class NoRangeDetected(CalibrationError):
    pass

class InvalidStep(CalibrationError):
    pass

class InvalidNotchIndex(CalibrationError):
    pass

class RangeNotCaptured(CalibrationError):
    pass

class IncompleteRanges(CalibrationError):
    pass

class InsufficientSamples(CalibrationError):
    pass


# --- SIMULATOR API ---

class SimulatorError(LeverLinkError):
    pass

class InvalidApiKey(SimulatorError):
    def __init__(self, body=None):
        self.body = body
        super().__init__("Simulator rejected the API key")

class SimulatorHttpError(SimulatorError):
    def __init__(self, status, body=None):
        self.status = status
        self.body = body
        super().__init__(f"Simulator returned HTTP {status}")

class SimulatorRequestFailed(SimulatorError):
    def __init__(self, reason):
        self.reason = reason
        super().__init__(f"Request to simulator failed: {reason}")

class NoValueReturned(SimulatorError):
    pass

class UnparseableValue(SimulatorError):
    pass


# --- PERSISTENCE ---

class LeverNotFound(LeverLinkError):
    pass
