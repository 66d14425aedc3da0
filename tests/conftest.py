"""Shared test fixtures for the blocksync test suite."""

from __future__ import annotations

import itertools
from collections.abc import Callable, Iterator
from typing import Any

import pytest

from blocksync.config import BlockSyncConfig
from blocksync.engine import BlockSyncEngine
from blocksync.sync.scheduling import ManualScheduler


class RecordingMetricsHook:
    """A metrics backend that records all calls for assertion."""

    def __init__(self) -> None:
        self.increments: list[dict[str, Any]] = []
        self.timings: list[dict[str, Any]] = []
        self.gauges: list[dict[str, Any]] = []

    def increment(
        self,
        name: str,
        value: int = 1,
        tags: dict[str, str] | None = None,
    ) -> None:
        self.increments.append({"name": name, "value": value, "tags": tags})

    def timing(
        self,
        name: str,
        ms: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        self.timings.append({"name": name, "ms": ms, "tags": tags})

    def gauge(
        self,
        name: str,
        value: float,
        tags: dict[str, str] | None = None,
    ) -> None:
        self.gauges.append({"name": name, "value": value, "tags": tags})

    def total(self, name: str, **tags: str) -> int:
        """Sum of increments recorded for *name* whose tags include *tags*."""
        return sum(
            call["value"]
            for call in self.increments
            if call["name"] == name
            and all((call["tags"] or {}).get(k) == v for k, v in tags.items())
        )

    def last_gauge(self, name: str) -> float | None:
        values = [call["value"] for call in self.gauges if call["name"] == name]
        return values[-1] if values else None


@pytest.fixture
def scheduler() -> ManualScheduler:
    """Virtual-clock scheduler; timers fire only on ``advance``/``run_due``."""
    return ManualScheduler()


@pytest.fixture
def id_factory() -> Callable[[], str]:
    """Deterministic provisional ids: ``temp-1``, ``temp-2``, ..."""
    counter = itertools.count(1)
    return lambda: str(next(counter))


@pytest.fixture
def metrics() -> RecordingMetricsHook:
    return RecordingMetricsHook()


@pytest.fixture
def config(
    scheduler: ManualScheduler,
    id_factory: Callable[[], str],
    metrics: RecordingMetricsHook,
) -> BlockSyncConfig:
    """Default configuration wired to the fake clock, counter ids and recorded metrics."""
    return BlockSyncConfig(scheduler=scheduler, id_factory=id_factory, metrics=metrics)


@pytest.fixture
def engine(config: BlockSyncConfig) -> Iterator[BlockSyncEngine]:
    """Engine over the test configuration, closed after the test."""
    with BlockSyncEngine(config) as instance:
        yield instance
