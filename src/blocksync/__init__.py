"""blocksync -- block identity and change synchronization for live documents.

Public re-exports
-----------------

* **Engine:** :class:`BlockSyncEngine`
* **Configuration:** :class:`BlockSyncConfig`
* **Errors:** Every :class:`BlockSyncError` subclass and :class:`ErrorCode`
* **Models:** Records, snapshots and change-set types
* **Scheduling:** :class:`ManualScheduler`, :class:`AsyncioScheduler`

Usage::

    from blocksync import BlockSyncEngine, ManualScheduler

    scheduler = ManualScheduler()
    engine = BlockSyncEngine(scheduler=scheduler)
    doc = engine.load_markdown("# Title\\n\\nBody")
    engine.on_document_mutated(edited)
    scheduler.advance(0.1)
    payload = engine.drain_change_set().to_payload()
"""

from __future__ import annotations

# ── Configuration ───────────────────────────────────────────────────────
from blocksync.config import (
    DEFAULT_BLOCK_TYPES,
    DEFAULT_PROVISIONAL_PREFIX,
    BlockSyncConfig,
)

# ── Engine ──────────────────────────────────────────────────────────────
from blocksync.engine import BlockSyncEngine

# ── Errors ──────────────────────────────────────────────────────────────
from blocksync.errors import (
    BlockSyncError,
    BlockSyncIdentityCollisionError,
    BlockSyncSerializationError,
    BlockSyncTreeError,
    BlockSyncUnsupportedBlockError,
    BlockSyncValidationError,
    ErrorCode,
)

# ── Models ──────────────────────────────────────────────────────────────
from blocksync.models import (
    BlockInsert,
    BlockLocation,
    BlockRecord,
    BlockSignature,
    BlockUpdate,
    ChangeKind,
    ChangeSet,
    Snapshot,
    StoredBlock,
)

# ── Scheduling ──────────────────────────────────────────────────────────
from blocksync.sync.scheduling import AsyncioScheduler, ManualScheduler, Scheduler

__all__ = [
    "DEFAULT_BLOCK_TYPES",
    "DEFAULT_PROVISIONAL_PREFIX",
    "AsyncioScheduler",
    "BlockInsert",
    "BlockLocation",
    "BlockRecord",
    "BlockSignature",
    "BlockSyncConfig",
    "BlockSyncEngine",
    "BlockSyncError",
    "BlockSyncIdentityCollisionError",
    "BlockSyncSerializationError",
    "BlockSyncTreeError",
    "BlockSyncUnsupportedBlockError",
    "BlockSyncValidationError",
    "BlockUpdate",
    "ChangeKind",
    "ChangeSet",
    "ErrorCode",
    "ManualScheduler",
    "Scheduler",
    "Snapshot",
    "StoredBlock",
]
