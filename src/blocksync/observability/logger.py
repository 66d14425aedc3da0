"""JSON diagnostics for the identity tracker, change detector and engine.

Each area logs under its own name (``blocksync.identity``,
``blocksync.sync``, ``blocksync.engine``) and writes one JSON object per
line, so a host shell can interleave engine output with its own::

    {"ts": "2026-10-19T12:00:00.123456+00:00", "level": "DEBUG",
     "logger": "blocksync.sync", "message": "burst diffed",
     "op": "diff", "mutations": 3, "updates": 1, "inserts": 1, "deletes": 0}

The areas are quiet (``WARNING``) by default since they run on every
keystroke.  Turn them up together with :func:`set_log_level`::

    from blocksync.observability import set_log_level
    set_log_level("DEBUG")
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

DEFAULT_LEVEL = logging.WARNING


class StructuredFormatter(logging.Formatter):
    """Render a record as ``{"ts", "level", "logger", "message", **fields}``.

    ``fields`` come from ``extra=log_fields(...)``.  Tracebacks and stack
    info, when attached, land under ``exception`` and ``stack_info``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(getattr(record, "extra_fields", None) or {})
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(entry, default=str)


# Areas that already carry a JSON handler.
_areas: set[str] = set()


def _resolve_level(level: int | str) -> int:
    if isinstance(level, str):
        return logging.getLevelName(level.upper())
    return level


def get_logger(
    name: str = "blocksync",
    *,
    level: int | str = DEFAULT_LEVEL,
    stream: Any | None = None,
) -> logging.Logger:
    """Return the logger for one engine area, attaching the JSON handler once.

    Parameters
    ----------
    name:
        Area name, ``"blocksync.<area>"``.
    level:
        Initial level as an ``int`` or level name.  Only applied the first
        time *name* is requested.
    stream:
        Handler stream.  Defaults to ``sys.stderr``.
    """
    logger = logging.getLogger(name)
    if name in _areas:
        return logger

    logger.setLevel(_resolve_level(level))
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    _areas.add(name)
    return logger


def set_log_level(level: int | str) -> None:
    """Set the level of every area logger created so far."""
    resolved = _resolve_level(level)
    for name in _areas:
        logging.getLogger(name).setLevel(resolved)


def log_fields(**fields: Any) -> dict[str, dict[str, Any]]:
    """Wrap keyword fields in the ``extra`` shape :class:`StructuredFormatter` reads."""
    return {"extra_fields": fields}
