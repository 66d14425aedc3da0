"""Host-facing engine.

:class:`BlockSyncEngine` bundles the identity tracker, fragment serializer
and change detector behind the operations a host shell calls.  Each engine
owns its state outright, so several engines can live side by side.

Usage::

    from blocksync import BlockSyncEngine
    from blocksync.document import paragraph, Document

    engine = BlockSyncEngine()
    doc = engine.load_markdown("Hello\\n\\nWorld")
    ...
    engine.on_document_mutated(edited_doc)
    changes = engine.drain_change_set()
    engine.confirm_ids({insert.temp_id: "block-42" for insert in changes.inserts})
"""

from __future__ import annotations

import json
import sys
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from blocksync.config import BlockSyncConfig
from blocksync.document.markdown import parse_markdown
from blocksync.document.nodes import Document
from blocksync.document.protocol import DocumentTree
from blocksync.identity.tracker import BlockIdentityTracker
from blocksync.models import BlockLocation, ChangeSet, Snapshot, StoredBlock
from blocksync.observability import get_logger, log_fields, resolve_metrics
from blocksync.serializer.fragment import FragmentSerializer
from blocksync.serializer.inline import InlineRenderer, InlineRendererRegistry
from blocksync.sync.detector import ChangeDetector
from blocksync.sync.scheduling import ManualScheduler, Scheduler, default_scheduler

_log = get_logger("blocksync.engine")


class BlockSyncEngine:
    """Identity and change synchronization for one live document.

    Parameters
    ----------
    config:
        Engine configuration.  ``None`` builds one from *kwargs*.
    inline_renderers:
        Extra or replacement renderers for atomic inline kinds, merged over
        the built-in ones.
    **kwargs:
        Forwarded to :class:`BlockSyncConfig` (or applied to *config* with
        :meth:`BlockSyncConfig.replace`).
    """

    def __init__(
        self,
        config: BlockSyncConfig | None = None,
        *,
        inline_renderers: Mapping[str, InlineRenderer] | None = None,
        **kwargs: Any,
    ) -> None:
        if config is None:
            config = BlockSyncConfig(**kwargs)
        elif kwargs:
            config = config.replace(**kwargs)
        self._config = config
        self._metrics = resolve_metrics(config.metrics)
        self._scheduler: Scheduler = config.scheduler or default_scheduler()

        registry = InlineRendererRegistry()
        for kind, renderer in (inline_renderers or {}).items():
            registry.register(kind, renderer)
        self._serializer = FragmentSerializer(
            registry, unknown_block_policy=config.unknown_block_policy
        )
        self._tracker = BlockIdentityTracker(config, self._metrics)
        self._detector = ChangeDetector(
            self._tracker,
            self._serializer,
            config=config,
            scheduler=self._scheduler,
            metrics=self._metrics,
        )
        self._tree: DocumentTree | None = None

    def __enter__(self) -> BlockSyncEngine:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> BlockSyncConfig:
        return self._config

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def inline_renderers(self) -> InlineRendererRegistry:
        """The registry used for atomic inline kinds.  Mutable."""
        return self._serializer.registry

    @property
    def baseline(self) -> Snapshot:
        return self._detector.baseline

    @property
    def sync_paused(self) -> bool:
        return self._detector.paused

    @property
    def closed(self) -> bool:
        return self._detector.closed

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def on_document_mutated(self, tree: DocumentTree) -> None:
        """Report that *tree* changed.  Ids are reassigned now; the diff is debounced."""
        if self.closed:
            return
        self._tree = tree
        self._detector.on_mutation(tree)

    def drain_change_set(self) -> ChangeSet:
        """Return and clear every change recorded since the previous drain."""
        changes = self._detector.drain()
        if not changes.is_empty():
            _log.debug(
                "change set drained",
                extra=log_fields(
                    op="drain",
                    updates=len(changes.updates),
                    inserts=len(changes.inserts),
                    deletes=len(changes.deletes),
                ),
            )
        if self._config.debug_dump_changes:
            sys.stderr.write(json.dumps(changes.to_payload(), ensure_ascii=False) + "\n")
        return changes

    def has_pending_changes(self) -> bool:
        return self._detector.has_pending_changes()

    def flush(self) -> bool:
        """Diff a waiting burst immediately instead of when its timer fires."""
        return self._detector.flush()

    def tick(self) -> int:
        """Fire due debounce timers of a :class:`ManualScheduler`.

        Returns the number of timers fired; always ``0`` for other
        schedulers, which run their own timers.
        """
        if isinstance(self._scheduler, ManualScheduler):
            return self._scheduler.run_due()
        return 0

    # ------------------------------------------------------------------
    # Confirmations
    # ------------------------------------------------------------------

    def confirm(self, provisional_id: str, confirmed_id: str) -> None:
        """Record a confirmation without applying it.

        It is applied the next time the block's id is claimed, or by
        :meth:`apply_pending_confirmations_now`.
        """
        if self.closed:
            return
        self._tracker.confirmations.confirm(provisional_id, confirmed_id)

    def confirm_ids(self, mapping: Mapping[str, str]) -> dict[str, str]:
        """Record and immediately apply host confirmations.

        Confirmations for ids no longer in the document are dropped.
        Returns the provisional -> confirmed pairs that were applied.
        """
        if self.closed:
            return {}
        self._tracker.confirmations.confirm_many(mapping)
        applied = self.apply_pending_confirmations_now()
        self._tracker.confirmations.discard_stale(set(self._tracker.positions.values()))
        return applied

    def apply_pending_confirmations_now(self) -> dict[str, str]:
        """Apply every pending confirmation whose provisional id is mapped.

        The position map, baseline and pending change records are all
        re-keyed.  Returns the applied mapping.
        """
        if self.closed:
            return {}
        applied = self._tracker.apply_pending_confirmations()
        self._detector.rekey(applied)
        if applied:
            _log.debug("confirmations applied", extra=log_fields(op="confirm", ids=len(applied)))
        return applied

    def rekey_snapshot(self, mapping: Mapping[str, str]) -> None:
        """Replace ids in the baseline, pending records and position map.

        Pending inserts for re-keyed ids are dropped.
        """
        if self.closed or not mapping:
            return
        self._tracker.rekey(mapping)
        self._detector.rekey(mapping)

    # ------------------------------------------------------------------
    # Bulk replacement
    # ------------------------------------------------------------------

    def set_sync_paused(self, paused: bool) -> None:
        """Suspend change detection (identity tracking continues)."""
        self._detector.set_paused(paused)

    def reset_and_snapshot(self, tree: DocumentTree) -> None:
        """Adopt *tree* as the baseline, discarding the burst and pending changes."""
        if self.closed:
            return
        self._tree = tree
        self._detector.reset_and_snapshot(tree)

    def reset_for_project_switch(self) -> None:
        """Forget every id, confirmation and pending change.

        The engine stays open with an empty document, ready for the next
        project's :meth:`load_markdown` or :meth:`load_blocks`.
        """
        if self.closed:
            return
        self._tracker.reset()
        self._detector.reset_and_snapshot(Document())
        self._tree = None
        _log.debug("state reset for project switch", extra=log_fields(op="project_switch"))

    def assign_ids_for_flat_list(self, ordered_ids: Sequence[str], tree: DocumentTree) -> None:
        """Give the i-th top-level block the i-th id and rebuild the baseline.

        Raises
        ------
        BlockSyncValidationError
            If *ordered_ids* contains duplicates.
        """
        if self.closed:
            return
        self._detector.assign_flat(ordered_ids, tree)
        self._tree = tree
        _log.debug(
            "flat ids assigned",
            extra=log_fields(op="assign_flat", ids=len(ordered_ids),
                             blocks=len(self._detector.baseline)),
        )

    def load_markdown(self, markdown: str, block_ids: Sequence[str] | None = None) -> Document:
        """Parse *markdown* and install it as the document with no changes pending.

        Without *block_ids*, existing ids are kept where the new blocks line
        up with old ones.  With *block_ids*, the previous id map is dropped
        and the i-th top-level block receives ``block_ids[i]``; blocks past
        the end of the list get provisional ids, which are not reported.
        Blank *markdown* always starts from an empty map.

        Pending changes are discarded, so drain before loading.

        Raises
        ------
        BlockSyncValidationError
            If *block_ids* contains duplicates.
        """
        document = parse_markdown(markdown)
        if block_ids is not None and not self.closed:
            if block_ids and markdown.strip():
                self._tracker.assign_flat(block_ids, document)
            else:
                self._tracker.clear()
        self.reset_and_snapshot(document)
        return document

    def load_blocks(self, blocks: Iterable[StoredBlock]) -> Document:
        """Rebuild the document from stored blocks, keeping their ids.

        Fragments are joined in ``sort_order`` and parsed; the resulting
        top-level blocks receive the stored ids in order.
        """
        ordered = sorted(blocks, key=lambda b: b.sort_order)
        document = parse_markdown("\n\n".join(b.markdown_fragment for b in ordered))
        self.assign_ids_for_flat_list([b.id for b in ordered], document)
        return document

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def block_id_at(self, position: int) -> str | None:
        return self._tracker.block_id_at(position)

    def block_ids(self) -> dict[int, str]:
        """Copy of the position -> id map."""
        return self._tracker.positions

    def position_of(self, block_id: str) -> int | None:
        return self._tracker.position_of(block_id)

    def block_at(self, position: int, tree: DocumentTree | None = None) -> BlockLocation | None:
        """Find the tracked block containing *position* in *tree* (default: the last tree seen)."""
        tree = tree if tree is not None else self._tree
        if tree is None:
            return None
        return self._tracker.block_at(tree, position)

    def clear_block_ids(self) -> None:
        """Forget every mapped id.  The next pass treats all blocks as new."""
        self._tracker.clear()

    def serialize_document(self, tree: DocumentTree | None = None) -> str:
        """Whole-document Markdown: block fragments joined by blank lines."""
        tree = tree if tree is not None else self._tree
        if tree is None:
            return ""
        return self._serializer.serialize_document(tree)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Cancel the debounce timer and release all state."""
        if self.closed:
            return
        self._detector.close()
        self._tracker.reset()
        self._tree = None
        _log.debug("engine closed", extra=log_fields(op="close"))
