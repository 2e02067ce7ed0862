from __future__ import annotations

import sys
import threading
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Optional

from loguru import logger


DEFAULT_LOG_FILE = "/tmp/music-manager.log"

# Verbosity steps of the live log viewer, least verbose first.
LEVELS: List[str] = ["OFF", "ERROR", "WARNING", "INFO", "DEBUG", "TRACE"]

_LOGURU_TO_STEP = {
    "CRITICAL": "ERROR",
    "ERROR": "ERROR",
    "WARNING": "WARNING",
    "SUCCESS": "INFO",
    "INFO": "INFO",
    "DEBUG": "DEBUG",
    "TRACE": "TRACE",
}


def level_rank(level: str) -> int:
    """Position of a loguru or viewer level name in LEVELS."""
    step = _LOGURU_TO_STEP.get(level.upper(), level.upper())
    return LEVELS.index(step) if step in LEVELS else LEVELS.index("INFO")


def step_level(level: str, delta: int) -> str:
    idx = min(max(LEVELS.index(level) + delta, 0), len(LEVELS) - 1)
    return LEVELS[idx]


@dataclass(frozen=True)
class LogLine:
    time: str
    level: str
    target: str
    message: str

    def render(self) -> str:
        return f"{self.time} {self.level:<8} {self.target}: {self.message}"


class LogBuffer:
    """Bounded in-memory loguru sink feeding the live log viewer.

    Each target (the loguru record name, i.e. the module) has a capture
    level; records more verbose than it are dropped on arrival.
    """

    def __init__(self, maxlen: int = 2000, default_capture: str = "DEBUG"):
        self._lines: Deque[LogLine] = deque(maxlen=maxlen)
        self._capture: Dict[str, str] = {}
        self._targets: List[str] = []
        self.default_capture = default_capture
        self._lock = threading.Lock()

    def write(self, message) -> None:
        record = message.record
        target = record["name"] or "?"
        level = record["level"].name
        with self._lock:
            if target not in self._capture:
                self._capture[target] = self.default_capture
                self._targets.append(target)
            if level_rank(level) > LEVELS.index(self._capture[target]):
                return
            self._lines.append(
                LogLine(
                    time=record["time"].strftime("%H:%M:%S"),
                    level=level,
                    target=target,
                    message=str(record["message"]).rstrip(),
                )
            )

    @property
    def targets(self) -> List[str]:
        with self._lock:
            return list(self._targets)

    def lines(self) -> List[LogLine]:
        with self._lock:
            return list(self._lines)

    def capture_level(self, target: str) -> str:
        with self._lock:
            return self._capture.get(target, self.default_capture)

    def set_capture_level(self, target: str, level: str) -> None:
        if level not in LEVELS:
            raise ValueError(f"Unknown level: {level}")
        with self._lock:
            if target not in self._capture:
                self._targets.append(target)
            self._capture[target] = level


def setup_console(level: str = "INFO") -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), enqueue=True, backtrace=False, diagnose=False)


def setup_json(path: str, level: str = "DEBUG") -> None:
    logger.add(path, level=level.upper(), serialize=True, enqueue=True)


def setup_tui(buffer: LogBuffer, level: str = "DEBUG", log_file: Optional[str] = DEFAULT_LOG_FILE,
              json_path: Optional[str] = None) -> None:
    """Route logging away from the terminal while the UI owns the screen."""
    logger.remove()
    fmt = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}"
    logger.add(buffer, level="TRACE", format="{message}", enqueue=True)
    if log_file:
        logger.add(log_file, level=level.upper(), format=fmt, enqueue=True, backtrace=False, diagnose=False)
    if json_path:
        setup_json(json_path)


def bind_run(run_id: Optional[str] = None) -> str:
    rid = run_id or str(uuid.uuid4())
    # Use configure to apply extra fields to all loggers.
    logger.configure(extra={"run_id": rid})
    return rid


def log_event(action: str, **fields: Any) -> None:
    # Strip None
    clean: Dict[str, Any] = {k: v for k, v in fields.items() if v is not None}
    msg = clean.pop("msg", action)
    level = clean.pop("level", "INFO").upper()
    logger.bind(action=action, **clean).log(level, msg)


def truncate(text: str, max_len: int = 4096, max_lines: int = 20) -> str:
    """Truncate a string to a max length and/or max number of lines."""
    if not text:
        return ""
    # Limit lines first
    lines = text.strip().splitlines()
    if len(lines) > max_lines:
        text = "\n".join(["... (truncated)"] + lines[-max_lines:])

    # Then limit length
    if len(text) > max_len:
        text = "... (truncated)\n" + text[-max_len:]
    return text
