"""
Logging setup for CLI runs of the survey risk engine.

``configure_logging(config)`` is called once per CLI command, before any
store or scoring work.  Library modules only ever do
``logger = logging.getLogger(__name__)``.

Two line formats:

  text  ``2026-03-02T09:14:00Z INFO    risk_engine.recommendations.pipeline | Ensured ...``
  json  ``{"ts": "...", "level": "INFO", "logger": "...", "msg": "..."}``

Repository SQL is logged at DEBUG by ``risk_engine.db.repositories.base``.
That logger stays at INFO unless ``sql_trace`` is enabled, so ``level =
"DEBUG"`` shows pipeline decisions without every statement.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from risk_engine.config import LoggingConfig

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

SQL_LOGGER = "risk_engine.db.repositories.base"


class _UtcFormatter(logging.Formatter):
    converter = time.gmtime


class JsonLineFormatter(_UtcFormatter):
    """One JSON object per record: ``ts``, ``level``, ``logger``, ``msg`` and ``exc``."""

    def format(self, record: logging.LogRecord) -> str:
        line = {
            "ts": self.formatTime(record, DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            line["exc"] = self.formatException(record.exc_info)
        return json.dumps(line)


def build_formatter(json_format: bool) -> logging.Formatter:
    if json_format:
        return JsonLineFormatter()
    return _UtcFormatter(TEXT_FORMAT, datefmt=DATE_FORMAT)


def configure_logging(config: "LoggingConfig") -> list[logging.Handler]:
    """Install stdout (and optional file) handlers on the root logger.

    Args:
        config: ``[logging]`` section of ``AppConfig``.  An empty
            ``log_file`` disables file output.

    Returns:
        The installed handlers.
    """
    level = getattr(logging, config.level.upper(), logging.INFO)
    formatter = build_formatter(config.json_format)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.getLogger(SQL_LOGGER).setLevel(
        logging.NOTSET if config.sql_trace else max(level, logging.INFO)
    )
    return handlers
