"""Inspection interface the engine consumes from the editing framework.

The engine never mutates a tree; it only walks top-level children and
their inline content.  Any object shaped like these protocols can be fed to
:meth:`BlockSyncEngine.on_document_mutated`, including adapters over a live
editor model.  :mod:`blocksync.document.nodes` ships a concrete
implementation.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class TreeNode(Protocol):
    """A node of the document tree.

    ``text`` and ``marks`` are meaningful for text runs only; ``children``
    is empty for text runs and leaf atoms.
    """

    @property
    def type_name(self) -> str: ...

    @property
    def attrs(self) -> Mapping[str, Any]: ...

    @property
    def children(self) -> Iterable[TreeNode]: ...

    @property
    def text(self) -> str | None: ...

    @property
    def marks(self) -> Iterable[Any]: ...

    @property
    def is_text(self) -> bool: ...

    @property
    def node_size(self) -> int: ...

    @property
    def text_content(self) -> str: ...


@runtime_checkable
class DocumentTree(Protocol):
    """The root of a document tree."""

    @property
    def content_size(self) -> int: ...

    def iter_top_level(self) -> Iterator[tuple[int, TreeNode]]:
        """Yield ``(offset, node)`` for every direct child, in order."""
        ...
