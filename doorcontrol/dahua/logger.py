import sys
import threading
from datetime import datetime


class LoggerConfig:
    level = "INFO"
    color = True

    LEVELS = {
        "DEBUG": 10,
        "INFO": 20,
        "WARNING": 30,
        "ERROR": 40,
    }

    @classmethod
    def set_level(cls, level):
        level = str(level).upper()
        if level not in cls.LEVELS:
            raise ValueError(f"Unknown log level: {level}")
        cls.level = level

    @classmethod
    def set_color(cls, enabled):
        cls.color = bool(enabled)

    @classmethod
    def enabled(cls, msg_level):
        return cls.LEVELS[msg_level] >= cls.LEVELS[cls.level]


class ColorLogger:
    COLORS = {
        "RESET": "\033[0m",
        "BOLD": "\033[1m",

        "INFO": "\033[94m",
        "DEBUG": "\033[90m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "SUCCESS": "\033[92m",
    }

    # stdout carries the JSON results of main.py, log lines go to stderr
    def __init__(self, name="LOG", show_time=True, stream=None):
        self.name = name
        self.show_time = show_time
        self.stream = stream
        self._lock = threading.Lock()

    def _ts(self):
        if not self.show_time:
            return ""
        return datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    def _emit(self, level, msg, color):
        if not LoggerConfig.enabled(level):
            return

        prefix = f"[{self._ts()}] [{self.name}] [{level}]"
        if LoggerConfig.color:
            line = f"{color}{prefix}{self.COLORS['RESET']} {msg}"
        else:
            line = f"{prefix} {msg}"
        with self._lock:
            print(line, file=self.stream or sys.stderr, flush=True)

    def info(self, msg): self._emit("INFO", msg, self.COLORS["INFO"])
    def debug(self, msg): self._emit("DEBUG", msg, self.COLORS["DEBUG"])
    def warning(self, msg): self._emit("WARNING", msg, self.COLORS["WARNING"])
    def error(self, msg): self._emit("ERROR", msg, self.COLORS["ERROR"])
    def success(self, msg): self._emit("INFO", msg, self.COLORS["SUCCESS"])
