# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the project logger: levels, bound context, formatters and log_step."""
from __future__ import annotations

import json
import logging

import pytest

from vmimport.core.logger import TRACE, EmojiFormatter, JsonFormatter, Log, LogStyle
from vmimport.core.logging_utils import log_step


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=TRACE)
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def captured():
    logger = logging.getLogger("vmimport.test.logger")
    handler = ListHandler()
    logger.addHandler(handler)
    logger.setLevel(TRACE)
    logger.propagate = False
    yield logger, handler.records
    logger.removeHandler(handler)


@pytest.mark.unit
class TestLevels:
    @pytest.mark.parametrize(
        "verbose, quiet, level",
        [(0, 0, logging.INFO), (2, 0, logging.DEBUG), (3, 0, TRACE), (3, 1, logging.WARNING), (0, 2, logging.ERROR)],
    )
    def test_level_from_flags(self, verbose, quiet, level):
        assert Log._level_from_flags(verbose, quiet) == level


@pytest.mark.unit
class TestContext:
    def test_bound_context_merges(self, captured):
        logger, records = captured
        log = Log.bind(logger, request="default/imp").bind(worker="1")

        log.info("reconciling", extra={"ctx": {"phase": "validate"}})

        assert records[0].ctx == {"request": "default/imp", "worker": "1", "phase": "validate"}

    def test_trace_through_adapter(self, captured):
        logger, records = captured

        Log.bind(logger, request="default/imp").trace("stage %d", 2)

        assert records[0].levelno == TRACE
        assert records[0].getMessage() == "stage 2"

    def test_helpers(self, captured):
        logger, records = captured

        Log.ok(logger, "created", name="vm")
        Log.fail(logger, "boom")

        assert [r.levelno for r in records] == [logging.INFO, logging.ERROR]
        assert records[0].getMessage() == "✅ created"
        assert records[0].ctx == {"name": "vm"}


@pytest.mark.unit
class TestFormatters:
    def _record(self, msg="hello", **ctx):
        record = logging.LogRecord("vmimport.x", logging.WARNING, __file__, 10, msg, (), None)
        if ctx:
            record.ctx = ctx
        return record

    def test_json(self):
        line = JsonFormatter().format(self._record(request="default/imp"))
        obj = json.loads(line)

        assert obj["level"] == "WARNING"
        assert obj["msg"] == "hello"
        assert obj["ctx"] == {"request": "default/imp"}
        assert obj["ts"].endswith("+00:00")

    def test_emoji_plain(self):
        style = LogStyle(color=False, show_thread=False, unicode=False)

        line = EmojiFormatter(style).format(self._record("multi\nline", request="default/imp"))

        assert line.endswith(" multi\nline request=default/imp")
        assert "WARNING" in line


@pytest.mark.unit
class TestLogStep:
    def test_success(self, captured):
        logger, records = captured

        with log_step(logger, "create target VM", level=logging.INFO):
            pass

        messages = [r.getMessage() for r in records]
        assert messages[0] == "✅ create target VM ..."
        assert messages[1].startswith("✅ create target VM done (")

    def test_failure_reraises(self, captured):
        logger, records = captured

        with pytest.raises(RuntimeError):
            with log_step(logger, "create volumes"):
                raise RuntimeError("disk gone")

        assert records[-1].levelno == logging.WARNING
        assert "create volumes failed" in records[-1].getMessage()
        assert records[-1].getMessage().endswith("disk gone")
