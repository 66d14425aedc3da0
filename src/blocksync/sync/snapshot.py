"""Snapshotting: the live tree as an immutable :class:`Snapshot`."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field

from blocksync.config import DEFAULT_BLOCK_TYPES
from blocksync.document.protocol import DocumentTree, TreeNode
from blocksync.errors import BlockSyncError, BlockSyncTreeError
from blocksync.identity.classifier import iter_blocks
from blocksync.models import BlockRecord, Snapshot
from blocksync.observability import get_logger, log_fields
from blocksync.serializer.fragment import FragmentSerializer

_log = get_logger("blocksync.sync")


@dataclass
class SnapshotResult:
    """A snapshot plus the ids that could not be read this pass.

    Attributes
    ----------
    snapshot:
        Records in document order.
    skipped:
        Ids whose block failed validation or serialization.  When the
        previous snapshot held a record for such an id, that record was
        carried forward with its position updated.
    """

    snapshot: Snapshot
    skipped: list[str] = field(default_factory=list)


def build_record(
    block_id: str,
    position: int,
    node: TreeNode,
    serializer: FragmentSerializer,
    content_size: int,
) -> BlockRecord:
    """Read one block into a :class:`BlockRecord`.

    Raises
    ------
    BlockSyncTreeError
        If the block's extent falls outside the document or the node cannot
        be inspected.
    BlockSyncSerializationError
        If the fragment cannot be rendered.
    """
    try:
        node_size = int(node.node_size)
        block_type = node.type_name
        text_content = node.text_content
        heading_level = int(node.attrs.get("level") or 1) if block_type == "heading" else None
    except (AttributeError, TypeError, ValueError) as exc:
        raise BlockSyncTreeError(
            message=f"Cannot inspect block at {position}: {exc}",
            context={"position": position},
            cause=exc,
        ) from exc

    if position < 0 or node_size < 1 or position + node_size > content_size:
        raise BlockSyncTreeError(
            message=f"Block at {position} (size {node_size}) lies outside the document",
            context={
                "position": position,
                "node_size": node_size,
                "content_size": content_size,
                "block_type": block_type,
            },
        )

    return BlockRecord(
        id=block_id,
        position=position,
        block_type=block_type,
        text_content=text_content,
        markdown_fragment=serializer.serialize_block(node),
        heading_level=heading_level,
        tree_size=node_size,
    )


def take_snapshot(
    tree: DocumentTree,
    positions: Mapping[int, str],
    serializer: FragmentSerializer,
    *,
    previous: Snapshot | None = None,
    block_types: frozenset[str] = DEFAULT_BLOCK_TYPES,
) -> SnapshotResult:
    """Snapshot every classified top-level block that has an id.

    A block that cannot be read is skipped rather than aborting the whole
    snapshot.

    Parameters
    ----------
    tree:
        The current document.
    positions:
        Position -> id map from the identity tracker.
    serializer:
        Renders ``markdown_fragment``.
    previous:
        The snapshot being replaced.  Used to carry forward records of
        skipped blocks so they do not read as deletions.
    block_types:
        Classified node types.
    """
    content_size = tree.content_size
    records: list[BlockRecord] = []
    skipped: list[str] = []

    for offset, node in iter_blocks(tree, block_types):
        block_id = positions.get(offset)
        if block_id is None:
            continue
        try:
            records.append(build_record(block_id, offset, node, serializer, content_size))
        except BlockSyncError as exc:
            skipped.append(block_id)
            _log.warning(
                "block skipped in snapshot",
                extra=log_fields(
                    op="snapshot",
                    block_id=block_id,
                    position=offset,
                    code=exc.code,
                    error=exc.message,
                ),
            )
            if previous is not None and block_id in previous:
                records.append(dataclasses.replace(previous[block_id], position=offset))

    return SnapshotResult(snapshot=Snapshot.from_records(records), skipped=skipped)
