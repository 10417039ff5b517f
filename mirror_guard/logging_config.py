"""
Logging Configuration — Structured logs tagged with the repository they concern.

Two output formats:
- json: one object per line, with user_id / repository_id / action when known
- text: coloured one-liners for a terminal

## Environment Variables

- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- LOG_FORMAT: json, text (default: text)

## Usage

    from mirror_guard.logging_config import for_repository, setup_logging

    setup_logging()
    log = for_repository(logger, repository)
    log.warning("[sync] blocked pending approval")
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Optional, Tuple

CONTEXT_FIELDS = ("user_id", "repository_id", "action")

# Third-party loggers that report every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "werkzeug")


def _context(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """
    {"ts": "...", "level": "WARNING", "logger": "...", "message": "...",
     "user_id": "...", "repository_id": "..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanFormatter(logging.Formatter):
    """
    12:34:56 WARNING [pipeline       ] blocked pending approval  (repo-1)
    """

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, color: Optional[bool] = None):
        super().__init__()
        self.color = sys.stderr.isatty() if color is None else color

    def _level(self, levelname: str) -> str:
        if not self.color:
            return f"{levelname:7}"
        return f"{self.LEVEL_COLORS.get(levelname, '')}{levelname:7}{self.RESET}"

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        module = record.name.rsplit(".", 1)[-1][:15]
        line = f"{stamp} {self._level(record.levelname)} [{module:15}] {record.getMessage()}"

        repository_id = getattr(record, "repository_id", None)
        if repository_id:
            line += f"  ({repository_id})"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class RepositoryLogger(logging.LoggerAdapter):
    """Adds user_id / repository_id to every record; per-call extra wins."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def for_repository(logger: logging.Logger, repository: Any) -> RepositoryLogger:
    """Logger bound to one repository row (anything with id and user_id)."""
    return RepositoryLogger(
        logger,
        {"user_id": repository.user_id, "repository_id": repository.id},
    )


def setup_logging(
    level: Optional[str] = None,
    format_type: Optional[str] = None,
) -> None:
    """
    Install one stderr handler on the root logger. Safe to call twice.

    level and format_type default to LOG_LEVEL and LOG_FORMAT.
    """
    level_name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    format_name = (format_type or os.environ.get("LOG_FORMAT") or "text").lower()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if format_name == "json" else HumanFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
