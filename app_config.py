# app_config.py
import copy
import json
import os
import sys

from debug_log import log_message

DEFAULT_CONFIG = {
    "simulator": {"base_url": "http://localhost:31270", "api_key": "", "timeout": 2.0},
    "profile_path": "levers.xml",
    "analyzer": {"sweep_step": 0.02, "settling_time_ms": 150},
    "mapping": {"min_sample_count": 10, "min_range": 0.0, "detect_inversion": False, "capture_seconds": 3.0},
    "joystick": {"poll_interval_ms": 10, "axis_threshold": 0.005},
}


def default_config_path():
    if getattr(sys, 'frozen', False):
        return os.path.join(os.path.dirname(sys.executable), "config.json")
    return "config.json"

def merge_config(defaults, loaded):
    """Overlay loaded values on the defaults, one key at a time, so old files pick up new keys."""
    merged = copy.deepcopy(defaults)
    for key, value in loaded.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged

def load_app_config(path=None):
    path = path or default_config_path()
    try:
        with open(path, 'r') as f: loaded = json.load(f)
        if not isinstance(loaded, dict):
            raise ValueError("config root must be an object")
        return merge_config(DEFAULT_CONFIG, loaded)
    except (FileNotFoundError, json.JSONDecodeError, ValueError):
        log_message(f"{path} not found or invalid. Creating default config.", "WARN")
        config = copy.deepcopy(DEFAULT_CONFIG)
        save_app_config(config, path)
        return config

def save_app_config(config, path=None):
    path = path or default_config_path()
    try:
        with open(path, 'w') as f: json.dump(config, f, indent=2)
    except OSError as e:
        log_message(f"Error saving {path}: {e}", "ERROR")
        return False
    return True
