"""Block identity tracker.

Assigns durable ids to top-level blocks across edits.  Every pass walks the
classified top-level nodes in document order and gives each one an id,
preferring, in order:

1. *(content matching)* the previous id of the matching block in the
   unchanged leading and trailing runs of the document (the trailing run
   only while its shift stays inside the proximity window);
2. *(content matching)* the previous id at the same position when the
   block's content signature is unchanged;
3. *(content matching)* the nearest unclaimed previous id within the
   proximity window whose signature equals the block's, for blocks whose
   own position holds no unclaimed previous id, or holds one whose content
   reappears elsewhere in the edited region;
4. the unclaimed previous id recorded at the same position;
5. the nearest unclaimed previous id within the proximity window
   (``abs(old - new) < window``; ties go to the earlier entry);
6. a freshly minted provisional id.

Steps 1 to 3 only run when ``content_matching`` is enabled; without them
the tracker is purely positional.  Whenever a previous id is claimed and a
host confirmation is pending for it, the confirmed id is used instead and
the confirmation is consumed.  No id is handed out twice in one pass.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import cast

from blocksync.config import BlockSyncConfig
from blocksync.document.protocol import DocumentTree, TreeNode
from blocksync.errors import BlockSyncValidationError
from blocksync.models import BlockLocation, BlockSignature
from blocksync.observability import get_logger, log_fields
from blocksync.utils.ids import mint_provisional_id

from .classifier import iter_blocks
from .confirmation import ConfirmationLedger
from .signature import compute_signature

_log = get_logger("blocksync.identity")


@dataclass
class AssignmentResult:
    """Outcome of one identity pass.

    Attributes
    ----------
    positions:
        New position -> id map, in document order.
    signatures:
        Content signature per assigned id.  Empty when content matching is
        disabled.
    consumed:
        Confirmations applied during the pass (provisional -> confirmed).
    minted:
        Provisional ids created during the pass.
    recovered:
        How many previous ids were kept, by route (``"content"``,
        ``"position"``, ``"proximity"``).
    """

    positions: dict[int, str] = field(default_factory=dict)
    signatures: dict[str, BlockSignature] = field(default_factory=dict)
    consumed: dict[str, str] = field(default_factory=dict)
    minted: list[str] = field(default_factory=list)
    recovered: Counter[str] = field(default_factory=Counter)


def _nearest(
    previous: Sequence[tuple[int, str]],
    offset: int,
    window: int,
    claimed: set[str],
    accept: Callable[[str], bool] | None = None,
) -> str | None:
    best_id: str | None = None
    best_distance = window
    for old_offset, old_id in previous:
        if old_id in claimed:
            continue
        distance = abs(old_offset - offset)
        if distance >= best_distance:
            continue
        if accept is not None and not accept(old_id):
            continue
        best_id, best_distance = old_id, distance
    return best_id


def assign_ids(
    tree: DocumentTree,
    previous: Mapping[int, str],
    confirmations: ConfirmationLedger | None = None,
    *,
    config: BlockSyncConfig | None = None,
    previous_signatures: Mapping[str, BlockSignature] | None = None,
) -> AssignmentResult:
    """Run one identity pass over *tree*.

    Parameters
    ----------
    tree:
        The current document.
    previous:
        Position -> id map from the previous pass.
    confirmations:
        Pending host confirmations.  Entries used during the pass are
        consumed and reported in :attr:`AssignmentResult.consumed`.
    config:
        Supplies the block types, proximity window, id prefix/factory and
        the ``content_matching`` switch.
    previous_signatures:
        Signatures recorded by the previous pass, keyed by id.
    """
    config = config or BlockSyncConfig()
    blocks = list(iter_blocks(tree, config.block_types))
    previous_items = sorted(previous.items())
    window = config.proximity_window

    result = AssignmentResult()
    slots: list[str | None] = [None] * len(blocks)
    claimed: set[str] = set()

    def claim(index: int, old_id: str, via: str) -> None:
        new_id = old_id
        if confirmations is not None:
            confirmed = confirmations.consume(old_id)
            if confirmed is not None:
                new_id = confirmed
                result.consumed[old_id] = confirmed
                claimed.add(confirmed)
        claimed.add(old_id)
        slots[index] = new_id
        result.recovered[via] += 1

    signatures: list[BlockSignature] = []
    if config.content_matching:
        signatures = [compute_signature(node) for _, node in blocks]

    if signatures and previous_signatures:
        old_sigs = [previous_signatures.get(bid) for _, bid in previous_items]
        limit = min(len(blocks), len(previous_items))

        lead = 0
        while (
            lead < limit
            and signatures[lead] == old_sigs[lead]
            and previous_items[lead][1] not in claimed
        ):
            claim(lead, previous_items[lead][1], "content")
            lead += 1

        for k in range(1, limit - lead + 1):
            i, j = len(blocks) - k, len(previous_items) - k
            old_offset, old_id = previous_items[j]
            if (
                signatures[i] != old_sigs[j]
                or old_id in claimed
                or abs(blocks[i][0] - old_offset) >= window
            ):
                break
            claim(i, old_id, "content")

        for i, (offset, _) in enumerate(blocks):
            if slots[i] is not None:
                continue
            old_id = previous.get(offset)
            if (
                old_id is not None
                and old_id not in claimed
                and previous_signatures.get(old_id) == signatures[i]
            ):
                claim(i, old_id, "content")

        unmatched = {signatures[i] for i in range(len(blocks)) if slots[i] is None}
        for i, (offset, _) in enumerate(blocks):
            if slots[i] is not None:
                continue
            own_id = previous.get(offset)
            if (
                own_id is not None
                and own_id not in claimed
                and previous_signatures.get(own_id) not in unmatched
            ):
                continue
            target = signatures[i]
            match = _nearest(
                previous_items, offset, window, claimed,
                accept=lambda bid: previous_signatures.get(bid) == target,
            )
            if match is not None:
                claim(i, match, "content")

    for i, (offset, _) in enumerate(blocks):
        if slots[i] is not None:
            continue
        old_id = previous.get(offset)
        if old_id is not None and old_id not in claimed:
            claim(i, old_id, "position")
            continue
        match = _nearest(previous_items, offset, window, claimed)
        if match is not None:
            claim(i, match, "proximity")
            continue
        new_id = mint_provisional_id(config.provisional_prefix, config.id_factory)
        claimed.add(new_id)
        slots[i] = new_id
        result.minted.append(new_id)

    for i, (offset, _) in enumerate(blocks):
        block_id = cast(str, slots[i])
        result.positions[offset] = block_id
        if signatures:
            result.signatures[block_id] = signatures[i]

    return result


def assign_flat(
    ordered_ids: Sequence[str],
    tree: DocumentTree,
    *,
    config: BlockSyncConfig | None = None,
) -> AssignmentResult:
    """Assign host-supplied ids to top-level blocks by index.

    The i-th classified block receives ``ordered_ids[i]``.  Proximity
    matching is bypassed.  Surplus ids are ignored; surplus blocks receive
    freshly minted provisional ids (listed in :attr:`AssignmentResult.minted`).

    Raises
    ------
    BlockSyncValidationError
        If *ordered_ids* contains an id more than once.
    """
    config = config or BlockSyncConfig()
    duplicates = sorted(bid for bid, count in Counter(ordered_ids).items() if count > 1)
    if duplicates:
        raise BlockSyncValidationError(
            f"ordered id list contains duplicates: {duplicates!r}",
            context={"operation": "assign_ids_for_flat_list", "field": "ordered_ids",
                     "value": duplicates},
        )

    blocks = list(iter_blocks(tree, config.block_types))
    result = AssignmentResult()
    for index, (offset, node) in enumerate(blocks):
        if index < len(ordered_ids):
            block_id = ordered_ids[index]
        else:
            block_id = mint_provisional_id(config.provisional_prefix, config.id_factory)
            result.minted.append(block_id)
        result.positions[offset] = block_id
        if config.content_matching:
            result.signatures[block_id] = compute_signature(node)

    if len(ordered_ids) > len(blocks):
        _log.warning(
            "surplus ids ignored in flat assignment",
            extra=log_fields(op="assign_flat", ids=len(ordered_ids), blocks=len(blocks)),
        )
    return result


class BlockIdentityTracker:
    """Owns the position -> id map and the pending confirmations.

    Parameters
    ----------
    config:
        Shared engine configuration.
    metrics:
        A :class:`~blocksync.observability.MetricsHook`.
    """

    def __init__(self, config: BlockSyncConfig, metrics) -> None:
        self._config = config
        self._metrics = metrics
        self._positions: dict[int, str] = {}
        self._signatures: dict[str, BlockSignature] = {}
        self.confirmations = ConfirmationLedger()

    # -- Queries -------------------------------------------------------

    @property
    def positions(self) -> dict[int, str]:
        """Copy of the current position -> id map."""
        return dict(self._positions)

    def block_id_at(self, position: int) -> str | None:
        return self._positions.get(position)

    def position_of(self, block_id: str) -> int | None:
        for position, bid in self._positions.items():
            if bid == block_id:
                return position
        return None

    def block_at(self, tree: DocumentTree, position: int) -> BlockLocation | None:
        """Resolve *position* to the tracked top-level block containing it.

        Positions on a block's boundary tokens resolve to that block; the
        returned offset is clamped to its content.
        """
        for offset, node in iter_blocks(tree, self._config.block_types):
            end = offset + node.node_size
            if offset <= position < end:
                block_id = self._positions.get(offset)
                if block_id is None:
                    return None
                inner = max(0, min(position - offset - 1, _content_size(node)))
                return BlockLocation(block_id=block_id, offset=inner)
        return None

    # -- Passes --------------------------------------------------------

    def assign(self, tree: DocumentTree) -> AssignmentResult:
        """Run an identity pass and install its result."""
        result = assign_ids(
            tree,
            self._positions,
            self.confirmations,
            config=self._config,
            previous_signatures=self._signatures,
        )
        self._install(result)
        self.confirmations.discard_stale(set(self._positions.values()))

        if result.minted:
            self._metrics.increment("blocksync.ids_minted_total", len(result.minted))
        for via, count in result.recovered.items():
            self._metrics.increment("blocksync.ids_recovered_total", count, tags={"via": via})
        if result.consumed:
            self._metrics.increment("blocksync.confirmations_applied_total", len(result.consumed))
        _log.debug(
            "ids assigned",
            extra=log_fields(
                op="assign",
                blocks=len(result.positions),
                minted=len(result.minted),
                confirmed=len(result.consumed),
            ),
        )
        return result

    def assign_flat(self, ordered_ids: Sequence[str], tree: DocumentTree) -> AssignmentResult:
        result = assign_flat(ordered_ids, tree, config=self._config)
        self._install(result)
        if result.minted:
            self._metrics.increment("blocksync.ids_minted_total", len(result.minted))
        return result

    def apply_pending_confirmations(self) -> dict[str, str]:
        """Rewrite every mapped id that has a pending confirmation.

        Returns the applied provisional -> confirmed map so callers can
        re-key state derived from the old ids.
        """
        applied = self.confirmations.take_matching(list(self._positions.values()))
        if applied:
            self.rekey(applied)
            self._metrics.increment("blocksync.confirmations_applied_total", len(applied))
        return applied

    def rekey(self, mapping: Mapping[str, str]) -> None:
        self._positions = {pos: mapping.get(bid, bid) for pos, bid in self._positions.items()}
        self._signatures = {mapping.get(bid, bid): sig for bid, sig in self._signatures.items()}

    def clear(self) -> None:
        """Forget every mapped id.  Pending confirmations are kept."""
        self._positions = {}
        self._signatures = {}

    def reset(self) -> None:
        self.clear()
        self.confirmations.clear()

    def _install(self, result: AssignmentResult) -> None:
        self._positions = dict(result.positions)
        self._signatures = dict(result.signatures)


def _content_size(node: TreeNode) -> int:
    return max(0, node.node_size - 2)
