# debug_log.py
import sys
from PyQt5.QtCore import QDateTime


def format_message(text, source):
    timestamp = QDateTime.currentDateTime().toString("HH:mm:ss.zzz")
    return f"[{timestamp}] [{source}] {text}"


def log_message(text, source="APP"):
    stream = sys.stderr if source in ("ERROR", "WARN") else sys.stdout
    print(format_message(text, source), file=stream, flush=True)
