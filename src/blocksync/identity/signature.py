"""Content signatures for top-level blocks.

Computes a :class:`BlockSignature` for a tree node.  The identity tracker
uses signature equality to keep an id attached to its content when the
block's position shifts.  Signatures are content fingerprints only: two
blocks with the same text, formatting and attributes are indistinguishable.
"""

from __future__ import annotations

from typing import Any

from blocksync.document.protocol import TreeNode
from blocksync.models import BlockSignature
from blocksync.utils.hashing import hash_payload, md5_hash


def _mark_key(mark: Any) -> list[Any]:
    return [getattr(mark, "type_name", str(mark)), dict(getattr(mark, "attrs", {}) or {})]


def _inline_segments(node: TreeNode, segments: list[dict[str, Any]]) -> None:
    """Collect text runs (with marks) and atoms (with attrs) in order.

    Atoms are included because a citation edit leaves the plain text
    unchanged.
    """
    for child in node.children:
        if child.is_text:
            segment: dict[str, Any] = {"text": child.text or ""}
            marks = [_mark_key(m) for m in child.marks]
            if marks:
                segment["marks"] = marks
            segments.append(segment)
        elif not list(child.children):
            segments.append({"atom": child.type_name, "attrs": dict(child.attrs)})
        else:
            segments.append({"open": child.type_name})
            _inline_segments(child, segments)


def _outline(node: TreeNode) -> list[Any]:
    """Nested list of child type names."""
    return [
        [child.type_name, _outline(child)] if list(child.children) else child.type_name
        for child in node.children
        if not child.is_text
    ]


def compute_signature(node: TreeNode) -> BlockSignature:
    """Compute a content signature for a top-level block.

    Parameters
    ----------
    node:
        Any object satisfying :class:`~blocksync.document.TreeNode`.

    Returns
    -------
    BlockSignature
        A frozen dataclass suitable for equality comparison and hashing.
    """
    segments: list[dict[str, Any]] = []
    _inline_segments(node, segments)
    text_hash = hash_payload({"segments": segments})

    structural_hash = hash_payload({"outline": _outline(node), "size": node.node_size})

    attrs = dict(node.attrs)
    attrs_hash = hash_payload(attrs) if attrs else md5_hash("")

    return BlockSignature(
        block_type=node.type_name,
        text_hash=text_hash,
        structural_hash=structural_hash,
        attrs_hash=attrs_hash,
    )
