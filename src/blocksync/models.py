"""Public data models for blocksync.

Records and change types are plain dataclasses.  :class:`BlockRecord` and
:class:`BlockSignature` are frozen; :class:`Snapshot` is an immutable,
document-ordered mapping that is replaced wholesale, never edited.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ChangeKind(str, Enum):
    """Kinds of change record carried by a :class:`ChangeSet`."""

    UPDATE = "update"
    """A tracked block's content, size or heading level changed."""

    INSERT = "insert"
    """A block with a provisional id appeared."""

    DELETE = "delete"
    """A tracked block disappeared from the document."""


# ---------------------------------------------------------------------------
# Identity types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BlockSignature:
    """Content fingerprint of a top-level block used for identity matching.

    Two blocks with equal signatures are interchangeable as far as the
    identity tracker is concerned.

    Attributes
    ----------
    block_type:
        Node type name (``"paragraph"``, ``"heading"``, ...).
    text_hash:
        MD5 of the block's text runs including marks.
    structural_hash:
        MD5 of the child-type outline and node size.
    attrs_hash:
        MD5 of block attributes and atomic inline attributes.
    """

    block_type: str
    text_hash: str
    structural_hash: str
    attrs_hash: str


@dataclass(frozen=True)
class BlockRecord:
    """One live block as seen by a snapshot.

    Attributes
    ----------
    id:
        The block's provisional or confirmed id.
    position:
        Offset of the block in the document tree.
    block_type:
        Node type name.
    text_content:
        Flattened plain text.  Atomic inline elements contribute nothing.
    markdown_fragment:
        Canonical Markdown for the block, atomic elements included.
    heading_level:
        Level for ``heading`` blocks, ``None`` otherwise.
    tree_size:
        Node size of the block.  Catches structural edits that leave the
        plain text unchanged.
    """

    id: str
    position: int
    block_type: str
    text_content: str
    markdown_fragment: str
    heading_level: int | None = None
    tree_size: int = 0

    def differs_from(self, other: BlockRecord) -> bool:
        """Return ``True`` if *other* carries a change worth reporting."""
        return (
            self.text_content != other.text_content
            or self.tree_size != other.tree_size
            or self.markdown_fragment != other.markdown_fragment
            or self.heading_level != other.heading_level
        )


class Snapshot(Mapping[str, BlockRecord]):
    """Immutable mapping of block id to :class:`BlockRecord`.

    Iteration follows document order.  Build a new snapshot with
    :meth:`rekeyed` or :meth:`from_records` instead of mutating one.
    """

    __slots__ = ("_index", "_order", "_records")

    def __init__(self, records: Mapping[str, BlockRecord] | None = None) -> None:
        self._records: dict[str, BlockRecord] = dict(records or {})
        self._order: list[str] = list(self._records)
        self._index: dict[str, int] = {bid: i for i, bid in enumerate(self._order)}

    @classmethod
    def from_records(cls, records: list[BlockRecord]) -> Snapshot:
        """Build a snapshot from records already in document order."""
        return cls({record.id: record for record in records})

    def __getitem__(self, block_id: str) -> BlockRecord:
        return self._records[block_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._order)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"Snapshot({self._order!r})"

    def preceding_id(self, block_id: str) -> str | None:
        """Return the id of the block right before *block_id*, if any."""
        index = self._index.get(block_id)
        if not index:
            return None
        return self._order[index - 1]

    def rekeyed(self, mapping: Mapping[str, str]) -> Snapshot:
        """Return a copy with every id in *mapping* replaced by its target."""
        if not mapping or not any(bid in mapping for bid in self._order):
            return self
        records: dict[str, BlockRecord] = {}
        for bid in self._order:
            record = self._records[bid]
            new_id = mapping.get(bid)
            if new_id is not None:
                record = replace(record, id=new_id)
            records[record.id] = record
        return Snapshot(records)


@dataclass(frozen=True)
class BlockLocation:
    """A position resolved to the top-level block that contains it.

    Attributes
    ----------
    block_id:
        Id of the containing block.
    offset:
        Offset of the position inside the block's content (``0`` at the
        first content position).
    """

    block_id: str
    offset: int


# ---------------------------------------------------------------------------
# Change records
# ---------------------------------------------------------------------------

@dataclass
class BlockUpdate:
    """Externally relevant fields of a changed block."""

    id: str
    block_type: str
    text_content: str
    markdown_fragment: str
    heading_level: int | None = None

    @classmethod
    def from_record(cls, record: BlockRecord) -> BlockUpdate:
        return cls(
            id=record.id,
            block_type=record.block_type,
            text_content=record.text_content,
            markdown_fragment=record.markdown_fragment,
            heading_level=record.heading_level,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "blockType": self.block_type,
            "textContent": self.text_content,
            "markdownFragment": self.markdown_fragment,
        }
        if self.heading_level is not None:
            payload["headingLevel"] = self.heading_level
        return payload


@dataclass
class BlockInsert:
    """A newly appeared block, keyed by its provisional id.

    Attributes
    ----------
    temp_id:
        Provisional id the host should confirm.
    after_block_id:
        Id of the block immediately before this one in document order, or
        ``None`` when the block is first.
    """

    temp_id: str
    block_type: str
    text_content: str
    markdown_fragment: str
    heading_level: int | None = None
    after_block_id: str | None = None

    @classmethod
    def from_record(cls, record: BlockRecord, after_block_id: str | None) -> BlockInsert:
        return cls(
            temp_id=record.id,
            block_type=record.block_type,
            text_content=record.text_content,
            markdown_fragment=record.markdown_fragment,
            heading_level=record.heading_level,
            after_block_id=after_block_id,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "tempId": self.temp_id,
            "blockType": self.block_type,
            "textContent": self.text_content,
            "markdownFragment": self.markdown_fragment,
        }
        if self.heading_level is not None:
            payload["headingLevel"] = self.heading_level
        if self.after_block_id is not None:
            payload["afterBlockId"] = self.after_block_id
        return payload


@dataclass
class ChangeSet:
    """Changes accumulated between two host polls.

    Attributes
    ----------
    updates:
        Blocks whose content changed, one record per id.
    inserts:
        New blocks in the order they were first seen.
    deletes:
        Ids of blocks that disappeared.
    """

    updates: list[BlockUpdate] = field(default_factory=list)
    inserts: list[BlockInsert] = field(default_factory=list)
    deletes: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.updates or self.inserts or self.deletes)

    def __len__(self) -> int:
        return len(self.updates) + len(self.inserts) + len(self.deletes)

    def to_payload(self) -> dict[str, Any]:
        """Return the bridge payload: ``{"updates", "inserts", "deletes"}``."""
        return {
            "updates": [u.to_payload() for u in self.updates],
            "inserts": [i.to_payload() for i in self.inserts],
            "deletes": list(self.deletes),
        }


@dataclass(frozen=True)
class StoredBlock:
    """A block as the host persists it, used for full content loads.

    Attributes
    ----------
    id:
        The host's permanent id for the block.
    markdown_fragment:
        The block's Markdown, as last reported in a change set.
    sort_order:
        Position of the block in the document.
    """

    id: str
    markdown_fragment: str
    sort_order: float = 0.0
