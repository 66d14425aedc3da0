"""Block classifier: which top-level nodes receive stable ids."""

from __future__ import annotations

from collections.abc import Iterator

from blocksync.config import DEFAULT_BLOCK_TYPES
from blocksync.document.protocol import DocumentTree, TreeNode

BLOCK_TYPES: frozenset[str] = DEFAULT_BLOCK_TYPES


def is_block(node: TreeNode, block_types: frozenset[str] = BLOCK_TYPES) -> bool:
    """Return ``True`` if *node* is eligible for identity tracking."""
    return node.type_name in block_types


def iter_blocks(
    tree: DocumentTree,
    block_types: frozenset[str] = BLOCK_TYPES,
) -> Iterator[tuple[int, TreeNode]]:
    """Yield ``(offset, node)`` for classified top-level nodes in document order.

    Only direct children of the root are considered; blocks nested inside
    lists or quotes belong to their container's fragment.
    """
    for offset, node in tree.iter_top_level():
        if is_block(node, block_types):
            yield offset, node
