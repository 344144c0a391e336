# controls.py - joystick polling and the axis/button bindings that feed levers
import pygame
from PyQt5.QtCore import QObject, pyqtSignal, QTimer

from input_calibration import AxisCalibration

AXIS = "axis"
BUTTON = "button"


class JoystickManager(QObject):
    raw_joystick_event = pyqtSignal(int, str, int, object)

    def __init__(self, poll_interval_ms=10, axis_threshold=0.005, parent=None):
        super().__init__(parent)
        pygame.init()
        pygame.joystick.init()
        self.poll_interval_ms = poll_interval_ms
        self.axis_threshold = axis_threshold
        self.joysticks = {}
        self._open_joysticks()

        # Track last values for change detection
        self.last_axis_values = {}
        self.last_button_values = {}

        # Polling timer instead of event thread
        self.poll_timer = QTimer()
        self.poll_timer.timeout.connect(self.poll)
        self.active_joysticks = set()

    @classmethod
    def from_config(cls, config, parent=None):
        joystick = config.get("joystick", {})
        return cls(joystick.get("poll_interval_ms", 10), joystick.get("axis_threshold", 0.005), parent)

    def _open_joysticks(self):
        self.joysticks = {i: pygame.joystick.Joystick(i) for i in range(pygame.joystick.get_count())}
        for joy in self.joysticks.values():
            joy.init()

    def get_devices(self):
        return {i: j.get_name() for i, j in self.joysticks.items()}

    def start_listening(self, joystick_id, use_timer=True):
        """Start polling this joystick; returns False if it is not connected."""
        if joystick_id not in self.joysticks:
            return False
        self.active_joysticks.add(joystick_id)
        if use_timer and not self.poll_timer.isActive():
            self.poll_timer.start(self.poll_interval_ms)
        return True

    def stop_listening(self, joystick_id):
        self.active_joysticks.discard(joystick_id)
        if not self.active_joysticks:
            self.poll_timer.stop()

    def poll(self):
        """Read every active joystick once and emit an event for each change."""
        pygame.event.pump()

        for joy_id in list(self.active_joysticks):
            joy = self.joysticks.get(joy_id)
            if joy is None:
                continue

            for axis_idx in range(joy.get_numaxes()):
                value = joy.get_axis(axis_idx)
                last_key = (joy_id, axis_idx)
                last_value = self.last_axis_values.get(last_key)
                if last_value is None or abs(value - last_value) > self.axis_threshold:
                    self.last_axis_values[last_key] = value
                    self.raw_joystick_event.emit(joy_id, AXIS, axis_idx, value)

            for btn_idx in range(joy.get_numbuttons()):
                value = joy.get_button(btn_idx)
                last_key = (joy_id, btn_idx)
                if value != self.last_button_values.get(last_key, 0):
                    self.last_button_values[last_key] = value
                    self.raw_joystick_event.emit(joy_id, BUTTON, btn_idx, float(value))

    def shutdown(self):
        self.poll_timer.stop()
        self.active_joysticks.clear()
        pygame.quit()


class AxisBinding:
    """One joystick axis driving one lever. Raw -1..1 readings come out as 0..1 travel."""

    def __init__(self, joy_id, index, calibration=None):
        self.joy_id = joy_id
        self.index = index
        self.calibration = calibration or AxisCalibration()

    def __repr__(self):
        return f"AxisBinding(joy={self.joy_id}, axis={self.index}, {self.calibration!r})"

    def matches(self, joy_id, type, index):
        return type == AXIS and joy_id == self.joy_id and index == self.index

    def normalize(self, value):
        return self.calibration.normalize(value)


class DetentButtons:
    """Buttons on one joystick that jump a lever straight to a gate: {button index: detent index}."""

    def __init__(self, joy_id, buttons):
        self.joy_id = joy_id
        self.buttons = dict(buttons)

    def detent_for(self, joy_id, type, index, value):
        if type != BUTTON or joy_id != self.joy_id or value != 1.0:
            return None
        return self.buttons.get(index)
