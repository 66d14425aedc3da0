"""Observability: structured logging and metrics hooks for blocksync."""

from __future__ import annotations

from .logger import StructuredFormatter, get_logger, log_fields, set_log_level
from .metrics import MetricsHook, NoopMetricsHook, resolve_metrics

__all__ = [
    "MetricsHook",
    "NoopMetricsHook",
    "StructuredFormatter",
    "get_logger",
    "log_fields",
    "resolve_metrics",
    "set_log_level",
]
