"""Metrics hook protocol and no-op default implementation.

blocksync emits counters, timings, and gauges at each stage of the sync
pipeline.  By default a :class:`NoopMetricsHook` is used so there is zero
overhead on the per-keystroke path.  Hosts can supply any object satisfying
:class:`MetricsHook` to route the data points to their own backend.

Emitted metric names:

* ``blocksync.mutations_total``              -- counter
* ``blocksync.snapshot_duration_ms``         -- timing
* ``blocksync.ids_minted_total``             -- counter
* ``blocksync.ids_recovered_total``          -- counter (tag ``via``)
* ``blocksync.confirmations_applied_total``  -- counter
* ``blocksync.blocks_skipped_total``         -- counter
* ``blocksync.diffs_total``                  -- counter
* ``blocksync.changes_total``                -- counter (tag ``kind``)
* ``blocksync.drains_total``                 -- counter
* ``blocksync.pending_changes``              -- gauge
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class MetricsHook(Protocol):
    """Protocol that any metrics backend must satisfy.

    All methods accept an optional *tags* dict of string keys and values.
    """

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Increment a counter metric by *value*."""
        ...

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Record a duration in milliseconds."""
        ...

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        """Set a gauge metric to an absolute value."""
        ...


class NoopMetricsHook:
    """Default metrics implementation that silently discards all data points.

    Lets call-sites emit unconditionally instead of guarding on
    ``self._metrics is not None``.
    """

    __slots__ = ()

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        pass


def resolve_metrics(metrics: Any | None) -> Any:
    """Return *metrics*, or a :class:`NoopMetricsHook` when it is ``None``."""
    return metrics if metrics is not None else NoopMetricsHook()
