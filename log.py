"""Logging for nungdict.

Modules log through children of the "nungdict" logger (e.g.
"nungdict.resolver"); the one stream handler lives on that parent. Anything
a caller passes in `extra=` is emitted alongside the message, and
`component` defaults to the last part of the logger name.

NUNGDICT_LOG_LEVEL   DEBUG/INFO/WARNING/ERROR, default INFO
NUNGDICT_LOG_FORMAT  json (one object per line, default) or text
"""
import json
import logging
import os
import sys
from typing import Any, Dict, Optional, TextIO

ROOT_LOGGER = "nungdict"

# Attributes every LogRecord carries; the rest came from `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}


def record_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """The caller's `extra=` fields, `component` first, None values dropped."""
    fields: Dict[str, Any] = {"component": getattr(record, "component", None) or record.name.rsplit(".", 1)[-1]}
    for key, value in vars(record).items():
        if key not in _RECORD_ATTRS and key != "component" and value is not None:
            fields[key] = value
    return fields


def _timestamp(formatter: logging.Formatter, record: logging.LogRecord, datefmt: str) -> str:
    return f"{formatter.formatTime(record, datefmt)}.{int(record.msecs):03d}"


class JSONFormatter(logging.Formatter):
    """One JSON object per record.

    {"ts": "2026-01-01T12:00:00.123", "level": "warning", "service": "nungdict",
     "logger": "nungdict.resolver", "msg": "Remote tier failed",
     "component": "resolver", "lang": "nung", "detail": "..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": _timestamp(self, record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname.lower(),
            "service": ROOT_LOGGER,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(record_fields(record))
        if record.exc_info and record.exc_info[1]:
            entry["error"] = str(record.exc_info[1])
            entry["error_type"] = type(record.exc_info[1]).__name__
        return json.dumps(entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """`12:00:00.123 WARNING resolver: Remote tier failed lang=nung detail=...`"""

    def format(self, record: logging.LogRecord) -> str:
        fields = record_fields(record)
        component = fields.pop("component")
        line = f"{_timestamp(self, record, '%H:%M:%S')} {record.levelname:<7} {component}: {record.getMessage()}"
        if fields:
            line += " " + " ".join(f"{key}={value}" for key, value in fields.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None,
                      stream: Optional[TextIO] = None) -> logging.Logger:
    """(Re)install the handler on the "nungdict" logger.

    Arguments override NUNGDICT_LOG_LEVEL / NUNGDICT_LOG_FORMAT. Calling it
    again replaces the previous handler rather than stacking a second one.
    """
    root = logging.getLogger(ROOT_LOGGER)
    level = (level or os.environ.get("NUNGDICT_LOG_LEVEL", "INFO")).upper()
    root.setLevel(getattr(logging, level, logging.INFO))

    fmt = fmt or os.environ.get("NUNGDICT_LOG_FORMAT", "json")
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(TextFormatter() if fmt == "text" else JSONFormatter())
    for old in list(root.handlers):
        root.removeHandler(old)
    root.addHandler(handler)
    root.propagate = False
    return root


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Logger under the "nungdict" hierarchy, configuring it on first use.

        logger = get_logger("nungdict.resolver")
        logger.info("Dictionary loaded", extra={"lang": "nung", "count": 42})
    """
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    if not logging.getLogger(ROOT_LOGGER).handlers:
        configure_logging()
    return logging.getLogger(name)
