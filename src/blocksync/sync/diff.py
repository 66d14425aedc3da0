"""Pure snapshot diff."""

from __future__ import annotations

from blocksync.config import DEFAULT_PROVISIONAL_PREFIX
from blocksync.models import BlockInsert, BlockUpdate, ChangeSet, Snapshot
from blocksync.utils.ids import is_provisional


def diff_snapshots(
    before: Snapshot,
    after: Snapshot,
    provisional_prefix: str = DEFAULT_PROVISIONAL_PREFIX,
) -> ChangeSet:
    """Describe how *after* differs from *before*.

    * an id only in *before* is a delete;
    * an id in both whose record :meth:`~blocksync.models.BlockRecord.differs_from`
      the old one is an update carrying the new record's fields;
    * a provisional id only in *after* is an insert anchored after the
      block preceding it in *after*.

    Confirmed ids that appear without a previous record are not reported:
    the host issued them and already knows the block.
    """
    changes = ChangeSet()

    for block_id, old in before.items():
        new = after.get(block_id)
        if new is None:
            changes.deletes.append(block_id)
        elif old.differs_from(new):
            changes.updates.append(BlockUpdate.from_record(new))

    for block_id, new in after.items():
        if block_id in before or not is_provisional(block_id, provisional_prefix):
            continue
        changes.inserts.append(BlockInsert.from_record(new, after.preceding_id(block_id)))

    return changes
