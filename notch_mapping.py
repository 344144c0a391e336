# notch_mapping.py
"""
Guided session that assigns a hardware input range to every notch of a lever.

Workflow, per notch:
  1. Operator puts the lever in the notch (live value shown, nothing recorded)
  2. start_capturing: samples start accumulating
       gate   -> wiggle the lever inside the detent
       linear -> sweep the lever through the whole zone
  3. capture_range: min/max of the samples becomes the notch's provisional range
  4. next_notch (or go_to_notch to redo one)
When every notch has a range the session moves to preview and save_mapping
writes all ranges in one go.

The state is an immutable MappingState; every operation below is a plain
function returning a new state (or raising a CalibrationError and leaving the
old one untouched). NotchMappingSession is the Qt host that owns the current
state, feeds it hardware samples and persists the result.
"""
from collections import namedtuple

from PyQt5.QtCore import QObject, pyqtSignal

from debug_log import log_message
from errors import (NoSamples, NoRangeDetected, InvalidStep, InvalidNotchIndex, RangeNotCaptured,
                    IncompleteRanges)
from lever_mapper import is_reversed_by_order
from notches import midpoint

READY = "ready"
MAPPING = "mapping"
PREVIEW = "preview"
SAVED = "saved"
CANCELLED = "cancelled"
TERMINAL_STEPS = (SAVED, CANCELLED)

MappingState = namedtuple("MappingState", [
    "lever_id", "notches", "inverted", "step", "notch_index", "capturing", "samples",
    "current_value", "current_min", "current_max", "captured_ranges", "min_sample_count", "min_range",
])


def new_session(lever_config, min_sample_count=1, min_range=0.0):
    notches = tuple(
        {"index": n.index, "type": n.type, "description": n.label(),
         "sim_input_min": n.sim_input_min, "sim_input_max": n.sim_input_max}
        for n in lever_config.notches
    )
    return MappingState(
        lever_id=lever_config.lever_id, notches=notches, inverted=lever_config.inverted, step=READY,
        notch_index=None, capturing=False, samples=(), current_value=None, current_min=None,
        current_max=None, captured_ranges=(None,) * len(notches),
        min_sample_count=max(1, int(min_sample_count)), min_range=min_range,
    )


def _require(state, *steps):
    if state.step not in steps:
        raise InvalidStep(f"Not allowed while session is {state.step}")


def _clear_buffer(state):
    return state._replace(samples=(), current_min=None, current_max=None)


def _at_notch(state, index):
    return _clear_buffer(state)._replace(step=MAPPING, notch_index=index, capturing=False)


def start_mapping(state):
    _require(state, READY)
    if not state.notches:
        raise IncompleteRanges("Lever has no notches to map, analyze it first")
    return _at_notch(state, 0)


def record_sample(state, value):
    """Live hardware sample. Only accumulated while capturing a notch."""
    if state.step in TERMINAL_STEPS:
        return state
    if not (state.step == MAPPING and state.capturing):
        return state._replace(current_value=value)
    return state._replace(
        samples=state.samples + (value,),
        current_value=value,
        current_min=value if state.current_min is None else min(state.current_min, value),
        current_max=value if state.current_max is None else max(state.current_max, value),
    )


def start_capturing(state):
    _require(state, MAPPING)
    return state._replace(capturing=True)


def stop_capturing(state):
    _require(state, MAPPING)
    return state._replace(capturing=False)


def reset_samples(state):
    _require(state, MAPPING)
    return _clear_buffer(state)


def capture_range(state):
    _require(state, MAPPING)
    if len(state.samples) < state.min_sample_count:
        raise NoSamples(f"Need at least {state.min_sample_count} sample(s), have {len(state.samples)}")
    if state.current_max - state.current_min <= state.min_range:
        raise NoRangeDetected("Lever did not move while capturing")
    ranges = list(state.captured_ranges)
    ranges[state.notch_index] = (state.current_min, state.current_max)
    return state._replace(captured_ranges=tuple(ranges), capturing=False)


def next_notch(state):
    _require(state, MAPPING)
    if state.captured_ranges[state.notch_index] is None:
        raise RangeNotCaptured(f"Notch {state.notch_index} has no captured range yet")
    if state.notch_index + 1 < len(state.notches):
        return _at_notch(state, state.notch_index + 1)
    missing = [i for i, r in enumerate(state.captured_ranges) if r is None]
    if missing:
        return _at_notch(state, missing[0])
    return _clear_buffer(state)._replace(step=PREVIEW, notch_index=None, capturing=False)


def go_to_notch(state, index):
    _require(state, MAPPING, PREVIEW)
    if not 0 <= index < len(state.notches):
        raise InvalidNotchIndex(f"No notch {index}, lever has {len(state.notches)}")
    return _at_notch(state, index)


def go_to_preview(state):
    _require(state, MAPPING, PREVIEW)
    if not all_captured(state):
        raise IncompleteRanges("Every notch needs a captured range first")
    return _clear_buffer(state)._replace(step=PREVIEW, notch_index=None, capturing=False)


def cancel(state):
    _require(state, READY, MAPPING, PREVIEW, CANCELLED)
    return state._replace(step=CANCELLED, capturing=False)


def mark_saved(state, inverted):
    return _clear_buffer(state)._replace(step=SAVED, notch_index=None, capturing=False, inverted=inverted)


def all_captured(state):
    return bool(state.captured_ranges) and all(r is not None for r in state.captured_ranges)


def can_capture(state):
    return (state.step == MAPPING and len(state.samples) >= state.min_sample_count
            and state.current_max - state.current_min > state.min_range)


def ready_to_save(state):
    return state.step in (MAPPING, PREVIEW) and all_captured(state)


def detect_inversion(state):
    """Hardware runs opposite to the sim when the lowest captured notch has the highest sim range."""
    pairs = [
        (midpoint(*captured), midpoint(notch["sim_input_min"], notch["sim_input_max"]))
        for notch, captured in zip(state.notches, state.captured_ranges)
        if captured is not None and notch["sim_input_min"] is not None and notch["sim_input_max"] is not None
    ]
    return is_reversed_by_order(pairs)


def input_ranges(state, inverted):
    """Captured ranges keyed by notch index, in the lever's effective (post-inversion) space."""
    ranges = {}
    for notch, (low, high) in zip(state.notches, state.captured_ranges):
        ranges[notch["index"]] = (1.0 - high, 1.0 - low) if inverted else (low, high)
    return ranges


def public_state(state):
    current = state.notches[state.notch_index] if state.notch_index is not None else None
    return {
        "lever_id": state.lever_id,
        "step": state.step,
        "notch_count": len(state.notches),
        "notches": [dict(n) for n in state.notches],
        "current_notch_index": state.notch_index,
        "current_notch": dict(current) if current else None,
        "capturing": state.capturing,
        "captured_ranges": [None if r is None else {"min": r[0], "max": r[1]} for r in state.captured_ranges],
        "current_value": state.current_value,
        "current_min": state.current_min,
        "current_max": state.current_max,
        "sample_count": len(state.samples),
        "can_capture": can_capture(state),
        "all_captured": all_captured(state),
    }


class NotchMappingSession(QObject):
    state_changed = pyqtSignal(str, dict)     # event name, public state
    mapping_result = pyqtSignal(bool, object)  # success, LeverConfig or exception

    def __init__(self, lever_config, store, binding=None, detect_inversion=False,
                 min_sample_count=1, min_range=0.0, parent=None):
        super().__init__(parent)
        self.lever_config = lever_config
        self.store = store
        self.binding = binding
        self.detect_inversion = detect_inversion
        self.state = new_session(lever_config, min_sample_count, min_range)
        log_message(f"Mapping session for {lever_config.lever_id}: {len(self.state.notches)} notches", "MAP")

    @classmethod
    def from_config(cls, lever_config, store, binding, config):
        mapping = config.get("mapping", {})
        return cls(lever_config, store, binding,
                   detect_inversion=mapping.get("detect_inversion", False),
                   min_sample_count=mapping.get("min_sample_count", 1),
                   min_range=mapping.get("min_range", 0.0))

    def _apply(self, event, transition, *args):
        self.state = transition(self.state, *args)
        self.state_changed.emit(event, self.get_public_state())

    def get_public_state(self):
        return public_state(self.state)

    @property
    def step(self):
        return self.state.step

    def start_mapping(self): self._apply("step_changed", start_mapping)
    def start_capturing(self): self._apply("capture_started", start_capturing)
    def stop_capturing(self): self._apply("capture_stopped", stop_capturing)
    def reset_samples(self): self._apply("sample_updated", reset_samples)
    def next_notch(self): self._apply("step_changed", next_notch)
    def go_to_notch(self, index): self._apply("step_changed", go_to_notch, index)
    def go_to_preview(self): self._apply("step_changed", go_to_preview)

    def capture_range(self):
        self._apply("range_captured", capture_range)
        low, high = self.state.captured_ranges[self.state.notch_index]
        log_message(f"Notch {self.state.notch_index} captured {low:.4f}-{high:.4f}", "MAP")

    def push_sample(self, value):
        if self.state.step in TERMINAL_STEPS:
            return
        self._apply("sample_updated", record_sample, value)

    def on_raw_joystick_event(self, joy_id, type, index, value):
        if self.binding is not None and self.binding.matches(joy_id, type, index):
            self.push_sample(self.binding.normalize(value))

    def save_mapping(self):
        if not ready_to_save(self.state):
            if self.state.step in (MAPPING, PREVIEW):
                raise IncompleteRanges("Every notch needs a captured range first")
            raise InvalidStep(f"Not allowed while session is {self.state.step}")
        if self.state.step == MAPPING:
            self._apply("step_changed", go_to_preview)

        inverted = detect_inversion(self.state) if self.detect_inversion else self.state.inverted
        if self.detect_inversion:
            log_message(f"Auto-detected inversion: {inverted}", "MAP")
        ranges = input_ranges(self.state, inverted)
        try:
            updated = self.store.update_notch_input_ranges(self.state.lever_id, ranges, inverted=inverted)
        except Exception as e:
            log_message(f"Saving notch ranges for {self.state.lever_id} failed: {e}", "ERROR")
            self.mapping_result.emit(False, e)
            raise
        self.lever_config = updated
        self._apply("step_changed", mark_saved, inverted)
        self.mapping_result.emit(True, updated)
        log_message(f"Saved notch ranges for {self.state.lever_id}", "MAP")
        return updated

    def cancel(self):
        self._apply("step_changed", cancel)
        log_message(f"Mapping session cancelled for {self.state.lever_id}", "MAP")
