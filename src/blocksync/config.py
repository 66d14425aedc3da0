"""Engine configuration for blocksync.

:class:`BlockSyncConfig` captures every tuneable knob of the identity
tracker, change detector and fragment serializer.  Instances are passed to
:class:`~blocksync.engine.BlockSyncEngine` and shared by its components.

:data:`DEFAULT_BLOCK_TYPES` lists the node types that receive stable ids
and take part in change sync.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

# ---------------------------------------------------------------------------
# Block classification defaults
# ---------------------------------------------------------------------------

DEFAULT_BLOCK_TYPES: frozenset[str] = frozenset({
    "paragraph",
    "heading",
    "bullet_list",
    "ordered_list",
    "blockquote",
    "code_block",
    "horizontal_rule",
    "section_break",
    "table",
    "image",
})
"""Top-level node types tracked by default.  ``list_item`` is deliberately
absent: items are part of their list's fragment, not blocks of their own."""

DEFAULT_PROVISIONAL_PREFIX = "temp-"


# ---------------------------------------------------------------------------
# Configuration dataclass
# ---------------------------------------------------------------------------

@dataclass
class BlockSyncConfig:
    """Complete configuration for a blocksync engine.

    Every parameter has a default; ``BlockSyncConfig()`` reproduces the
    editor's stock behaviour.

    Parameters
    ----------
    proximity_window:
        Maximum distance (in position units, exclusive) between a block's
        previous and current position for proximity re-matching to recover
        its id.  Blocks that moved further are treated as new.
    debounce_seconds:
        Quiet period after the last mutation of a burst before the burst is
        diffed and its changes become visible to :meth:`drain_change_set`.
    provisional_prefix:
        Prefix that marks locally minted ids.  Host-issued ids must not
        start with it.
    content_matching:
        Match blocks whose content signature is unchanged before falling
        back to position and proximity.  Keeps ids attached to their
        content when a new block is inserted ahead of them.  Set to
        ``False`` for pure position/proximity matching.
    block_types:
        Node type names eligible for identity tracking and change sync.
    unknown_block_policy:
        How the fragment serializer handles a tracked type it has no
        wrapper for.

        * ``"text"`` -- serialize the inline children (or plain text).
        * ``"comment"`` -- emit ``<!-- block:<type> -->`` followed by text.
        * ``"raise"`` -- raise :class:`BlockSyncUnsupportedBlockError`
          (the block is then skipped for that snapshot).
    id_factory:
        Callable returning the random part of a provisional id.  Defaults
        to a UUID4 string.  Tests inject a counter for stable ids.
    scheduler:
        Object satisfying :class:`~blocksync.sync.scheduling.Scheduler`
        used for the diff debounce timer.  ``None`` picks an asyncio
        scheduler when an event loop is running, otherwise a
        :class:`~blocksync.sync.scheduling.ManualScheduler` driven by
        :meth:`BlockSyncEngine.tick`.
    metrics:
        Optional :class:`~blocksync.observability.MetricsHook` backend.
    debug_dump_changes:
        Write every drained change set as JSON to *stderr*.
    """

    # ── Identity ────────────────────────────────────────────────────────
    proximity_window: int = 500

    provisional_prefix: str = DEFAULT_PROVISIONAL_PREFIX

    content_matching: bool = True

    block_types: frozenset[str] = field(
        default_factory=lambda: DEFAULT_BLOCK_TYPES,
    )

    id_factory: Callable[[], str] | None = None

    # ── Change detection ────────────────────────────────────────────────
    debounce_seconds: float = 0.1

    scheduler: Any | None = None

    # ── Serialization ───────────────────────────────────────────────────
    unknown_block_policy: Literal["text", "comment", "raise"] = "text"

    # ── Observability ──────────────────────────────────────────────────
    metrics: Any | None = None

    # ── Debug ───────────────────────────────────────────────────────────
    debug_dump_changes: bool = False

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.proximity_window < 0:
            raise ValueError(f"proximity_window must be >= 0, got {self.proximity_window}")
        if self.debounce_seconds < 0:
            raise ValueError(f"debounce_seconds must be >= 0, got {self.debounce_seconds}")
        if not self.provisional_prefix:
            raise ValueError("provisional_prefix must be a non-empty string")
        if self.unknown_block_policy not in ("text", "comment", "raise"):
            raise ValueError(
                f"unknown_block_policy must be 'text', 'comment' or 'raise', "
                f"got {self.unknown_block_policy!r}"
            )
        if not isinstance(self.block_types, frozenset):
            self.block_types = frozenset(self.block_types)
        if not self.block_types:
            raise ValueError("block_types must name at least one node type")

    def replace(self, **changes: Any) -> BlockSyncConfig:
        """Return a copy with *changes* applied (and re-validated)."""
        return dataclasses.replace(self, **changes)
