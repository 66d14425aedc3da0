"""Change detector: debounced snapshot diffing with a drain-and-clear API.

Every mutation re-runs identity assignment and replaces the baseline
snapshot immediately, so position lookups always describe the live tree.
Only the *diff* is debounced.  The first mutation of a burst captures the
baseline it replaced as the burst baseline; later mutations in the same
burst only push the timer's deadline back.  When the timer fires the burst
baseline is diffed against the latest snapshot and the result is merged
into the pending records that :meth:`ChangeDetector.drain` hands out.

Merging rules for pending records:

* an update to a block with a pending insert is folded into the insert;
* a delete of a block with a pending insert drops the insert and emits
  nothing, and inserts anchored on it take over its anchor;
* a delete discards any pending update for the same id.
"""

from __future__ import annotations

import dataclasses
import time
from collections.abc import Mapping, Sequence
from typing import Any

from blocksync.config import BlockSyncConfig
from blocksync.document.protocol import DocumentTree
from blocksync.identity.tracker import BlockIdentityTracker
from blocksync.models import BlockInsert, BlockUpdate, ChangeKind, ChangeSet, Snapshot
from blocksync.observability import get_logger, log_fields
from blocksync.serializer.fragment import FragmentSerializer

from .diff import diff_snapshots
from .scheduling import Scheduler, TimerHandle
from .snapshot import take_snapshot

_log = get_logger("blocksync.sync")


class ChangeDetector:
    """Tracks block-level changes between host polls.

    Parameters
    ----------
    tracker:
        Identity tracker shared with the engine.
    serializer:
        Renders each record's ``markdown_fragment``.
    config:
        Supplies ``debounce_seconds``, ``block_types`` and the provisional
        prefix.
    scheduler:
        Timer source for the debounce.
    metrics:
        A :class:`~blocksync.observability.MetricsHook`.
    """

    def __init__(
        self,
        tracker: BlockIdentityTracker,
        serializer: FragmentSerializer,
        *,
        config: BlockSyncConfig,
        scheduler: Scheduler,
        metrics: Any,
    ) -> None:
        self._tracker = tracker
        self._serializer = serializer
        self._config = config
        self._scheduler = scheduler
        self._metrics = metrics

        self._baseline = Snapshot()
        self._burst_baseline: Snapshot | None = None
        self._burst_mutations = 0
        self._timer: TimerHandle | None = None

        self._updates: dict[str, BlockUpdate] = {}
        self._inserts: dict[str, BlockInsert] = {}
        self._deletes: dict[str, None] = {}

        self._paused = False
        self._closed = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def baseline(self) -> Snapshot:
        return self._baseline

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def burst_pending(self) -> bool:
        """``True`` while mutations are waiting for the debounce timer."""
        return self._burst_baseline is not None

    def has_pending_changes(self) -> bool:
        """``True`` if a drain now would be non-empty, or a burst is still waiting."""
        return bool(self._updates or self._inserts or self._deletes) or self.burst_pending

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def on_mutation(self, tree: DocumentTree) -> None:
        """Record a mutation of *tree*.

        Identity assignment always runs.  While paused nothing else does.
        """
        if self._closed:
            return
        self._metrics.increment("blocksync.mutations_total")

        result = self._tracker.assign(tree)
        if result.consumed:
            self.rekey(result.consumed)
        if self._paused:
            return

        snapshot = self._snapshot(tree)
        if self._burst_baseline is None:
            self._burst_baseline = self._baseline
        self._baseline = snapshot
        self._burst_mutations += 1
        self._schedule()

    def flush(self) -> bool:
        """Diff an outstanding burst now.  Returns ``True`` if there was one."""
        self._cancel_timer()
        return self._diff_burst()

    # ------------------------------------------------------------------
    # Host operations
    # ------------------------------------------------------------------

    def drain(self) -> ChangeSet:
        """Return every pending change and clear them.

        An outstanding burst is diffed first so the result covers every
        mutation observed before the call.
        """
        if self._closed:
            return ChangeSet()
        self.flush()
        changes = ChangeSet(
            updates=list(self._updates.values()),
            inserts=list(self._inserts.values()),
            deletes=list(self._deletes),
        )
        self._clear_pending()
        self._metrics.increment("blocksync.drains_total")
        self._metrics.gauge("blocksync.pending_changes", 0)
        return changes

    def set_paused(self, paused: bool) -> None:
        """Suspend or resume change detection.

        Pausing diffs any outstanding burst first, so edits made before the
        pause are still reported and no timer outlives it.
        """
        if self._closed:
            return
        if paused and not self._paused:
            self.flush()
        self._paused = paused
        _log.debug("sync paused" if paused else "sync resumed",
                   extra=log_fields(op="pause", paused=paused))

    def reset_and_snapshot(self, tree: DocumentTree) -> None:
        """Install *tree* as the new baseline with nothing pending."""
        if self._closed:
            return
        self._discard_burst()
        self._clear_pending()
        self._tracker.assign(tree)
        self._baseline = self._snapshot(tree)
        _log.debug("baseline reset", extra=log_fields(op="reset", blocks=len(self._baseline)))

    def assign_flat(self, ordered_ids: Sequence[str], tree: DocumentTree) -> None:
        """Assign host ids by index and rebuild the baseline.

        Blocks beyond the end of *ordered_ids* receive provisional ids and
        are recorded as pending inserts.
        """
        if self._closed:
            return
        result = self._tracker.assign_flat(ordered_ids, tree)
        self._discard_burst()
        self._clear_pending()
        self._baseline = self._snapshot(tree)
        for block_id in result.minted:
            record = self._baseline.get(block_id)
            if record is not None:
                self._inserts[block_id] = BlockInsert.from_record(
                    record, self._baseline.preceding_id(block_id)
                )
        self._metrics.gauge("blocksync.pending_changes", self._pending_count())

    def rekey(self, mapping: Mapping[str, str]) -> None:
        """Replace old ids with confirmed ids everywhere the detector holds them.

        Pending inserts of confirmed ids are dropped; the host issued the
        confirmation, so it already knows the block.
        """
        if not mapping:
            return
        self._baseline = self._baseline.rekeyed(mapping)
        if self._burst_baseline is not None:
            self._burst_baseline = self._burst_baseline.rekeyed(mapping)

        self._updates = {
            mapping.get(bid, bid): dataclasses.replace(update, id=mapping.get(bid, bid))
            for bid, update in self._updates.items()
        }
        self._inserts = {
            bid: _reanchor(insert, mapping)
            for bid, insert in self._inserts.items()
            if bid not in mapping
        }
        self._deletes = {mapping.get(bid, bid): None for bid in self._deletes}
        _log.debug("ids rekeyed", extra=log_fields(op="rekey", ids=len(mapping)))

    def close(self) -> None:
        """Cancel the timer and drop all state.  Later calls are ignored."""
        self._discard_burst()
        self._clear_pending()
        self._baseline = Snapshot()
        self._closed = True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _snapshot(self, tree: DocumentTree) -> Snapshot:
        started = time.perf_counter()
        result = take_snapshot(
            tree,
            self._tracker.positions,
            self._serializer,
            previous=self._baseline,
            block_types=self._config.block_types,
        )
        self._metrics.timing(
            "blocksync.snapshot_duration_ms", (time.perf_counter() - started) * 1000.0
        )
        if result.skipped:
            self._metrics.increment("blocksync.blocks_skipped_total", len(result.skipped))
        return result.snapshot

    def _schedule(self) -> None:
        self._cancel_timer()
        self._timer = self._scheduler.call_later(self._config.debounce_seconds, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self._diff_burst()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _discard_burst(self) -> None:
        self._cancel_timer()
        self._burst_baseline = None
        self._burst_mutations = 0

    def _diff_burst(self) -> bool:
        if self._burst_baseline is None:
            return False
        changes = diff_snapshots(
            self._burst_baseline, self._baseline, self._config.provisional_prefix
        )
        mutations = self._burst_mutations
        self._burst_baseline = None
        self._burst_mutations = 0
        self._merge(changes)

        self._metrics.increment("blocksync.diffs_total")
        for kind, count in (
            (ChangeKind.UPDATE, len(changes.updates)),
            (ChangeKind.INSERT, len(changes.inserts)),
            (ChangeKind.DELETE, len(changes.deletes)),
        ):
            if count:
                self._metrics.increment("blocksync.changes_total", count, tags={"kind": kind.value})
        self._metrics.gauge("blocksync.pending_changes", self._pending_count())
        _log.debug(
            "burst diffed",
            extra=log_fields(
                op="diff",
                mutations=mutations,
                updates=len(changes.updates),
                inserts=len(changes.inserts),
                deletes=len(changes.deletes),
            ),
        )
        return True

    def _merge(self, changes: ChangeSet) -> None:
        for block_id in changes.deletes:
            self._updates.pop(block_id, None)
            if not self._drop_insert(block_id):
                self._deletes[block_id] = None

        for update in changes.updates:
            pending = self._inserts.get(update.id)
            if pending is not None:
                self._inserts[update.id] = dataclasses.replace(
                    pending,
                    block_type=update.block_type,
                    text_content=update.text_content,
                    markdown_fragment=update.markdown_fragment,
                    heading_level=update.heading_level,
                )
            else:
                self._updates[update.id] = update

        for insert in changes.inserts:
            if insert.temp_id in self._deletes:
                # Deleted and back again before a drain: the host still has it.
                del self._deletes[insert.temp_id]
                self._updates[insert.temp_id] = BlockUpdate(
                    id=insert.temp_id,
                    block_type=insert.block_type,
                    text_content=insert.text_content,
                    markdown_fragment=insert.markdown_fragment,
                    heading_level=insert.heading_level,
                )
            else:
                self._inserts[insert.temp_id] = insert

    def _drop_insert(self, block_id: str) -> bool:
        dropped = self._inserts.pop(block_id, None)
        if dropped is None:
            return False
        for bid, insert in list(self._inserts.items()):
            if insert.after_block_id == block_id:
                self._inserts[bid] = dataclasses.replace(
                    insert, after_block_id=dropped.after_block_id
                )
        return True

    def _clear_pending(self) -> None:
        self._updates = {}
        self._inserts = {}
        self._deletes = {}

    def _pending_count(self) -> int:
        return len(self._updates) + len(self._inserts) + len(self._deletes)


def _reanchor(insert: BlockInsert, mapping: Mapping[str, str]) -> BlockInsert:
    anchor = insert.after_block_id
    if anchor is not None and anchor in mapping:
        return dataclasses.replace(insert, after_block_id=mapping[anchor])
    return insert
