"""
Tests for risk_engine/utils/logging.py.

What we test
------------
JsonLineFormatter:
  - One JSON object per record with ts / level / logger / msg, plus exc.
configure_logging():
  - Installs a stdout handler, and a file handler only when log_file is set.
  - Repository SQL stays at INFO unless sql_trace is enabled.
"""

from __future__ import annotations

import json
import logging
import sys

import pytest

from risk_engine.config import LoggingConfig
from risk_engine.utils.logging import SQL_LOGGER, JsonLineFormatter, configure_logging


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    sql_level = logging.getLogger(SQL_LOGGER).level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger(SQL_LOGGER).setLevel(sql_level)


def _record(msg: str = "Ensured %s", exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        "risk_engine.recommendations.pipeline", logging.INFO, __file__, 1, msg, (7,), exc_info
    )


class TestJsonLineFormatter:
    def test_fields(self):
        line = json.loads(JsonLineFormatter().format(_record()))
        assert line["level"] == "INFO"
        assert line["logger"] == "risk_engine.recommendations.pipeline"
        assert line["msg"] == "Ensured 7"
        assert line["ts"].endswith("Z")
        assert "exc" not in line

    def test_exception_included(self):
        try:
            raise ValueError("bad rules")
        except ValueError:
            record = _record(exc_info=sys.exc_info())
        line = json.loads(JsonLineFormatter().format(record))
        assert "ValueError: bad rules" in line["exc"]


class TestConfigureLogging:
    def test_stdout_only_without_log_file(self):
        handlers = configure_logging(LoggingConfig(level="WARNING", log_file=""))
        assert len(handlers) == 1
        assert logging.getLogger().level == logging.WARNING

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "engine.log"
        handlers = configure_logging(
            LoggingConfig(level="INFO", log_file=str(log_file), json_format=True)
        )
        logging.getLogger("risk_engine.test").info("written")
        for handler in handlers:
            handler.flush()
        last = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
        assert json.loads(last)["msg"] == "written"

    def test_sql_quiet_by_default(self):
        configure_logging(LoggingConfig(level="DEBUG", log_file=""))
        assert not logging.getLogger(SQL_LOGGER).isEnabledFor(logging.DEBUG)
        assert logging.getLogger("risk_engine.recommendations.pipeline").isEnabledFor(logging.DEBUG)

    def test_sql_trace(self):
        configure_logging(LoggingConfig(level="DEBUG", log_file="", sql_trace=True))
        assert logging.getLogger(SQL_LOGGER).isEnabledFor(logging.DEBUG)
