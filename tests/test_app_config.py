import json
import os

import app_config
from app_config import DEFAULT_CONFIG, load_app_config, save_app_config, merge_config
from debug_log import format_message, log_message


def test_missing_config_written_with_defaults(tmp_path):
    path = str(tmp_path / "config.json")
    config = load_app_config(path)
    assert config == DEFAULT_CONFIG
    with open(path) as f:
        assert json.load(f) == DEFAULT_CONFIG


def test_invalid_config_replaced(tmp_path, capsys):
    path = tmp_path / "config.json"
    path.write_text("{not json")
    assert load_app_config(str(path)) == DEFAULT_CONFIG
    assert "[WARN]" in capsys.readouterr().err


def test_loaded_values_merged_over_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"simulator": {"api_key": "abc"}, "axes": {"0:1": {"min_value": -1, "max_value": 1}}}))
    config = load_app_config(str(path))
    assert config["simulator"]["api_key"] == "abc"
    assert config["simulator"]["base_url"] == "http://localhost:31270"
    assert config["mapping"]["min_sample_count"] == 10
    assert config["axes"]["0:1"]["max_value"] == 1


def test_merge_does_not_touch_defaults():
    merged = merge_config(DEFAULT_CONFIG, {"joystick": {"axis_threshold": 0.1}})
    assert merged["joystick"] == {"poll_interval_ms": 10, "axis_threshold": 0.1}
    assert DEFAULT_CONFIG["joystick"]["axis_threshold"] == 0.005


def test_save_failure_reported(tmp_path):
    assert save_app_config({}, str(tmp_path / "missing" / "config.json")) is False


def test_frozen_config_lives_next_to_executable(monkeypatch):
    assert app_config.default_config_path() == "config.json"
    monkeypatch.setattr(app_config.sys, "frozen", True, raising=False)
    monkeypatch.setattr(app_config.sys, "executable", os.path.join("/opt", "leverlink", "LeverLink.exe"))
    assert app_config.default_config_path() == os.path.join("/opt", "leverlink", "config.json")


def test_log_format(capsys):
    line = format_message("Saved", "MAP")
    assert line.startswith("[") and line.endswith("] [MAP] Saved")
    log_message("boom", "ERROR")
    log_message("hello")
    out = capsys.readouterr()
    assert "[ERROR] boom" in out.err
    assert "[APP] hello" in out.out
