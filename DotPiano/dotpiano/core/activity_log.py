from __future__ import annotations

import logging
import sys
import time
from collections import deque
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable

from dotpiano.core.config import ACTIVITY_LOG_MAX_LINES, ACTIVITY_LOGGER_NAME, POINTER_SOURCE_PREFIX
from dotpiano.core.music_logic import note_label

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
LOG_FILE_MAX_BYTES = 1024 * 1024
LOG_FILE_BACKUPS = 3

activity_logger = logging.getLogger(ACTIVITY_LOGGER_NAME)
activity_logger.setLevel(logging.INFO)

ActivityListener = Callable[[str], None]


def configure_logging(verbose: bool = False, log_file: Path | None = None) -> logging.Logger:
    root = logging.getLogger("dotpiano")
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in list(root.handlers):
        if getattr(handler, "_dotpiano_owned", False):
            root.removeHandler(handler)
            handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    console._dotpiano_owned = True
    root.addHandler(console)

    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding="utf-8",
            )
        except OSError as exc:
            root.warning("Could not open log file %s: %s", log_file, exc)
        else:
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            file_handler._dotpiano_owned = True
            root.addHandler(file_handler)
    return root


class ActivityLogHandler(logging.Handler):
    """Keeps the most recent activity lines for display."""

    def __init__(self, max_lines: int = ACTIVITY_LOG_MAX_LINES, listener: ActivityListener | None = None) -> None:
        super().__init__(level=logging.INFO)
        self.lines: deque[str] = deque(maxlen=max(1, int(max_lines)))
        self._listener = listener

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = record.getMessage()
        except Exception:
            self.handleError(record)
            return
        self.lines.append(line)
        if self._listener is not None:
            self._listener(line)


def time_label(now: float | None = None) -> str:
    return time.strftime("%H:%M:%S", time.localtime(time.time() if now is None else now))


def source_tag(source: object) -> str:
    if not isinstance(source, str):
        return "unknown"
    if source.startswith(POINTER_SOURCE_PREFIX):
        return "ptr"
    return source


def format_note_event(
    kind: str,
    note: int,
    source: object,
    velocity: float | None = None,
    now: float | None = None,
) -> str:
    vel = f" vel={float(velocity):.2f}" if velocity is not None else ""
    return f"{time_label(now)} {kind} {note_label(note)}{vel} src={source_tag(source)}"


def format_panic(now: float | None = None) -> str:
    return f"{time_label(now)} PANIC all notes off"
