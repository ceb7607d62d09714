from __future__ import annotations

import logging
import time

from dotpiano.core.activity_log import (
    ActivityLogHandler,
    configure_logging,
    format_note_event,
    format_panic,
    source_tag,
    time_label,
)

NOON = time.mktime((2024, 5, 17, 12, 30, 5, 0, 0, -1))


def test_note_event_lines() -> None:
    assert format_note_event("NOTE ON", 60, "ptr:3", 0.8, now=NOON) == "12:30:05 NOTE ON C4 vel=0.80 src=ptr"
    assert format_note_event("NOTE OFF", 61, "midi", now=NOON) == "12:30:05 NOTE OFF C#4 src=midi"
    assert format_panic(now=NOON) == "12:30:05 PANIC all notes off"


def test_source_tag() -> None:
    assert source_tag("ptr:12") == "ptr"
    assert source_tag("test") == "test"
    assert source_tag(None) == "unknown"


def test_time_label_format() -> None:
    assert time_label(NOON) == "12:30:05"


def test_handler_keeps_recent_lines() -> None:
    seen: list[str] = []
    handler = ActivityLogHandler(max_lines=3, listener=seen.append)
    logger = logging.getLogger("dotpiano.activity.test")
    logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    try:
        for index in range(5):
            logger.info("line %d", index)
    finally:
        logger.removeHandler(handler)

    assert list(handler.lines) == ["line 2", "line 3", "line 4"]
    assert seen == [f"line {index}" for index in range(5)]


def test_configure_logging_replaces_its_own_handlers(tmp_path) -> None:
    log_file = tmp_path / "logs" / "dotpiano.log"
    root = configure_logging(verbose=True, log_file=log_file)
    try:
        configure_logging(verbose=True, log_file=log_file)
        owned = [handler for handler in root.handlers if getattr(handler, "_dotpiano_owned", False)]
        assert len(owned) == 2
        assert root.level == logging.DEBUG

        logging.getLogger("dotpiano.test").debug("hello file")
        for handler in owned:
            handler.flush()
        assert "hello file" in log_file.read_text(encoding="utf-8")
    finally:
        for handler in list(root.handlers):
            if getattr(handler, "_dotpiano_owned", False):
                root.removeHandler(handler)
                handler.close()
        root.setLevel(logging.NOTSET)
