"""Change sync: snapshots, diffing, debounced change detection."""

from .detector import ChangeDetector
from .diff import diff_snapshots
from .scheduling import AsyncioScheduler, ManualScheduler, Scheduler, TimerHandle, default_scheduler
from .snapshot import SnapshotResult, build_record, take_snapshot

__all__ = [
    "AsyncioScheduler",
    "ChangeDetector",
    "ManualScheduler",
    "Scheduler",
    "SnapshotResult",
    "TimerHandle",
    "build_record",
    "default_scheduler",
    "diff_snapshots",
    "take_snapshot",
]
