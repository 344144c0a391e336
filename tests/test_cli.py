import argparse
import json

import pytest
from PyQt5.QtCore import QObject, pyqtSignal

import LeverLink
from input_calibration import AxisCalibration
from profile_store import LeverProfileStore


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_show(workdir, reverser, capsys):
    LeverProfileStore("levers.xml").save(reverser)
    assert LeverLink.main(["--config", "config.json", "show", "reverser"]) == 0
    out = capsys.readouterr().out
    assert "Neutral" in out
    assert "Layout reversed: no" in out


def test_unknown_lever_fails(workdir, capsys):
    assert LeverLink.main(["--config", "config.json", "show", "nope"]) == 1
    assert "[ERROR]" in capsys.readouterr().err


def test_detent_pair():
    assert LeverLink.detent_pair("4=0") == (4, 0)
    with pytest.raises(argparse.ArgumentTypeError):
        LeverLink.detent_pair("four")


def test_run_arguments():
    args = LeverLink.build_parser().parse_args(["run", "throttle", "--axis", "2", "--detent", "4=0", "--detent", "5=1"])
    assert args.axis == 2
    assert dict(args.detent) == {4: 0, 5: 1}
    assert args.func is LeverLink.cmd_run


def test_make_binding_uses_saved_calibration():
    config = {"axes": {"0:2": AxisCalibration(1.0, -1.0).to_dict()}}
    assert LeverLink.make_binding(config, 0, 2).normalize(1.0) == 0.0
    assert LeverLink.make_binding(config, 0, 1).normalize(1.0) == 1.0


def test_delete(workdir, reverser):
    store = LeverProfileStore("levers.xml")
    store.save(reverser)
    assert LeverLink.main(["--config", "config.json", "delete", "reverser"]) == 0
    assert store.load_all() == []


class FakeSimulator:
    base_url = "http://localhost:31270"

    def __init__(self):
        self.input = 0.0

    @classmethod
    def from_config(cls, config):
        return cls()

    def info(self):
        return {"Result": "Success"}

    def set(self, path, value):
        self.input = value

    def get_float(self, path):
        if path.endswith("GetMinimumInputValue"):
            return 0.0
        if path.endswith("GetMaximumInputValue"):
            return 1.0
        notch = 0 if self.input < 0.33 else 1 if self.input < 0.67 else 2
        if path.endswith("InputValue"):
            return (0.0, 0.5, 1.0)[notch]
        if path.endswith("GetCurrentOutputValue"):
            return float(notch - 1)
        return float(notch)

    def get_int(self, path):
        return 3


def test_analyze_saves_notches(workdir, monkeypatch, capsys):
    monkeypatch.setattr(LeverLink, "SimulatorClient", FakeSimulator)
    (workdir / "config.json").write_text(json.dumps({"analyzer": {"sweep_step": 0.02, "settling_time_ms": 0}}))
    assert LeverLink.main(["--config", "config.json", "analyze", "rev", "REVERSER"]) == 0

    lever = LeverProfileStore("levers.xml").get("rev")
    assert [n.label() for n in lever.notches] == ["Reverse", "Neutral", "Forward"]
    assert lever.value_endpoint == "CurrentDrivableActor/Reverser(Lever).InputValue"
    assert lever.description == "Reverser"
    assert lever.calibrated_at is not None
    assert "discrete lever, 3 notch(es)" in capsys.readouterr().out


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def monotonic(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


class ScriptedJoystick(QObject):
    """Stands in for JoystickManager: each poll emits the next scripted axis reading."""
    raw_joystick_event = pyqtSignal(int, str, int, object)
    current = None

    def __init__(self):
        super().__init__()
        self.pending = []
        ScriptedJoystick.current = self

    @classmethod
    def from_config(cls, config):
        return cls()

    def start_listening(self, joystick_id, use_timer=False): return joystick_id == 0
    def get_devices(self): return {0: "Scripted Lever"}
    def shutdown(self): pass

    def poll(self):
        if self.pending:
            self.raw_joystick_event.emit(0, "axis", 0, self.pending.pop(0))


@pytest.fixture
def mapping_cli(workdir, reverser, monkeypatch):
    """Unmapped reverser in the profile, a scripted joystick and scripted operator answers."""
    store = LeverProfileStore("levers.xml")
    store.save(reverser.copy(notches=[n.with_input_range(None, None) for n in reverser.notches]))
    (workdir / "config.json").write_text(json.dumps({"mapping": {"min_sample_count": 2, "capture_seconds": 0.1}}))
    monkeypatch.setattr(LeverLink, "JoystickManager", ScriptedJoystick)
    monkeypatch.setattr(LeverLink, "time", FakeClock())
    script = []

    def answer(prompt):
        reply, readings = script.pop(0)
        if readings is not None:
            ScriptedJoystick.current.pending = list(readings)
        return reply

    monkeypatch.setattr("builtins.input", answer)
    return store, script


# raw axis readings; the default binding turns -1..1 into 0..1
SWEEPS = [("", [-1.0, -0.4]), ("", [-0.3, 0.3]), ("", [0.4, 1.0])]


def test_map_saves_every_notch(mapping_cli):
    store, script = mapping_cli
    script.extend(SWEEPS + [("y", None)])
    assert LeverLink.main(["--config", "config.json", "map", "reverser"]) == 0

    lever = store.get("reverser")
    assert lever.is_mapped
    assert [(n.input_min, n.input_max) for n in lever.notches] == [(0.0, 0.3), (0.35, 0.65), (0.7, 1.0)]
    assert lever.calibrated_at is not None
    assert script == []


def test_map_retries_failed_capture(mapping_cli, capsys):
    store, script = mapping_cli
    # nothing moved, then a flat trace, then a real sweep of the first notch
    script.extend([("", []), ("", [-0.7, -0.7])] + SWEEPS + [("y", None)])
    assert LeverLink.main(["--config", "config.json", "map", "reverser"]) == 0
    assert capsys.readouterr().out.count("try again") == 2
    assert store.get("reverser").is_mapped


def test_map_quit_cancels(mapping_cli):
    store, script = mapping_cli
    script.extend(SWEEPS[:1] + [("q", None)])
    assert LeverLink.main(["--config", "config.json", "map", "reverser"]) == 1
    assert not store.get("reverser").is_mapped


def test_map_declined_save_cancels(mapping_cli):
    store, script = mapping_cli
    script.extend(SWEEPS + [("n", None)])
    assert LeverLink.main(["--config", "config.json", "map", "reverser"]) == 1
    assert not store.get("reverser").is_mapped
    assert store.get("reverser").calibrated_at is None


def test_map_unknown_joystick(mapping_cli, capsys):
    assert LeverLink.main(["--config", "config.json", "map", "reverser", "--joystick", "3"]) == 1
    assert "Joystick 3 not found" in capsys.readouterr().err


def test_unwritable_profile_reported(workdir, reverser, monkeypatch, capsys):
    LeverProfileStore("levers.xml").save(reverser)

    def read_only(src, dst):
        raise PermissionError("read-only file system")

    monkeypatch.setattr("profile_store.os.replace", read_only)
    assert LeverLink.main(["--config", "config.json", "delete", "reverser"]) == 1
    assert "read-only file system" in capsys.readouterr().err
