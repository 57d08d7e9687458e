"""
Structured logging configuration for TicketFlow.

Supports two output formats:
  - **human** – coloured, single-line, readable
  - **json**  – newline-delimited JSON for log aggregators

Engine log calls attach operation context through ``extra=`` (see
``OPERATION_FIELDS``); both formatters render it, so every committed or
rejected operation can be traced to its collection and ticket.

Usage:
    from ticketflow_core.logging_config import setup_logging
    setup_logging(level="DEBUG", fmt="json", log_file="ticketflow.log")
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# Context keys collections pass via ``extra=``.
OPERATION_FIELDS = ("op", "collection", "token_id", "caller", "code")


def operation_context(record: logging.LogRecord) -> dict:
    """Operation fields present on a record, in ``OPERATION_FIELDS`` order."""
    return {k: getattr(record, k) for k in OPERATION_FIELDS if hasattr(record, k)}


class _JSONFormatter(logging.Formatter):
    """One JSON object per record, operation context included."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        log_obj.update(operation_context(record))
        if record.exc_info and record.exc_info[1]:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj, default=str)


class _HumanFormatter(logging.Formatter):
    """Coloured single line: ``time [LEVEL] logger (op collection): msg``."""

    COLOURS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def __init__(self, colour: bool = True):
        super().__init__()
        self.colour = colour

    def format(self, record: logging.LogRecord) -> str:
        colour = self.COLOURS.get(record.levelname, "") if self.colour else ""
        reset = self.RESET if self.colour else ""
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        ctx = operation_context(record)
        tag = ""
        if ctx:
            tag = " (" + " ".join(str(ctx[k]) for k in ("op", "collection") if k in ctx) + ")"
        return (
            f"{colour}{ts} [{record.levelname:<7}]{reset} "
            f"{record.name}{tag}: {record.getMessage()}"
        )


def setup_logging(
    level: str = "INFO",
    fmt: str = "human",
    log_file: Optional[str] = None,
    logger_levels: Optional[dict[str, str]] = None,
) -> None:
    """
    Configure the root logger for the entire application.

    Parameters
    ----------
    level : str
        One of DEBUG, INFO, WARNING, ERROR, CRITICAL.
    fmt : str
        ``"human"`` for coloured single-line output, ``"json"`` for
        newline-delimited JSON.
    log_file : str, optional
        Also write records to this file, always as JSON.
    logger_levels : dict, optional
        Per-logger overrides, e.g. ``{"ticketflow_engine": "WARNING"}``.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        console.setFormatter(_JSONFormatter())
    else:
        console.setFormatter(_HumanFormatter(colour=sys.stderr.isatty()))
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(path))
        fh.setFormatter(_JSONFormatter())
        root.addHandler(fh)

    for name, lvl in (logger_levels or {}).items():
        logging.getLogger(name).setLevel(getattr(logging, lvl.upper(), logging.INFO))
