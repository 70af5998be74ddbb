from __future__ import annotations

import logging

import pytest

from mctx.log import LEVELS, HandlerLog, LogBuffer, should_log


def test_levels_follow_rfc5424_ordering():
    assert list(LEVELS) == [
        "emergency",
        "alert",
        "critical",
        "error",
        "warning",
        "notice",
        "info",
        "debug",
    ]
    assert should_log("error", "warning") is True
    assert should_log("info", "warning") is False
    assert should_log("custom", "warning") is True


def test_buffer_filters_by_level_and_drains():
    buffer = LogBuffer(level="warning")
    handler_log = HandlerLog(buffer)

    assert handler_log.info("ignored") is None
    handler_log.error({"code": 7})
    handler_log.emergency("down")

    entries = buffer.drain()
    assert [entry.to_dict() for entry in entries] == [
        {"type": "log", "level": "error", "data": {"code": 7}},
        {"type": "log", "level": "emergency", "data": "down"},
    ]
    assert len(buffer) == 0


def test_buffer_is_bounded_fifo():
    buffer = LogBuffer(max_size=3)
    for index in range(5):
        buffer.emit("info", index)

    assert [entry.data for entry in buffer.snapshot()] == [2, 3, 4]
    buffer.clear()
    assert buffer.snapshot() == []


def test_set_level_rejects_unknown_levels():
    buffer = LogBuffer()

    buffer.set_level("notice")
    assert buffer.level == "notice"
    with pytest.raises(ValueError, match="Invalid log level"):
        buffer.set_level("verbose")


def test_entries_are_mirrored_to_stdlib_logger(caplog):
    buffer = LogBuffer()

    with caplog.at_level(logging.DEBUG, logger="mctx.handlers"):
        HandlerLog(buffer).warning("disk almost full")

    assert any(
        record.levelno == logging.WARNING and record.getMessage() == "disk almost full"
        for record in caplog.records
    )
