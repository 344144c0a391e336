# lever_controller.py
# Runtime loop for one lever: hardware events in, simulator InputValue writes out.
from PyQt5.QtCore import QObject, pyqtSignal

from debug_log import log_message
from errors import LeverMappingError, SimulatorError
from lever_mapper import map_input, map_detent


class LeverController(QObject):
    command_sent = pyqtSignal(str, float)  # endpoint, value

    def __init__(self, lever_config, binding, client, detent_buttons=None, parent=None):
        super().__init__(parent)
        if not lever_config.value_endpoint:
            raise ValueError(f"Lever {lever_config.lever_id} has no value endpoint, analyze it first")
        self.lever_config = lever_config
        self.binding = binding
        self.client = client
        self.detent_buttons = detent_buttons
        self.last_sent = None
        self.skipped_ticks = 0

    def on_raw_joystick_event(self, joy_id, type, index, value):
        if self.binding.matches(joy_id, type, index):
            self.handle_input(self.binding.normalize(value))
        elif self.detent_buttons is not None:
            detent = self.detent_buttons.detent_for(joy_id, type, index, value)
            if detent is not None:
                self.handle_detent(detent)

    def handle_input(self, normalized):
        try:
            value = map_input(self.lever_config, normalized)
        except LeverMappingError:
            self.skipped_ticks += 1
            return None
        return self._send(value)

    def handle_detent(self, detent_index):
        try:
            value = map_detent(self.lever_config, detent_index)
        except LeverMappingError as e:
            log_message(f"{self.lever_config.lever_id}: {e}", "WARN")
            return None
        return self._send(value)

    def _send(self, value):
        if value == self.last_sent:
            return None
        try:
            self.client.set(self.lever_config.value_endpoint, value)
        except SimulatorError as e:
            log_message(f"Sending {value} to {self.lever_config.value_endpoint} failed: {e}", "ERROR")
            return None
        self.last_sent = value
        self.command_sent.emit(self.lever_config.value_endpoint, value)
        return value
