"""Concrete document tree used by hosts, adapters and tests.

Sizes follow the editor's positional model: a text run counts its
characters, a leaf atom counts 1, and every other node counts its content
plus an opening and a closing token.

Builder helpers (:func:`paragraph`, :func:`heading`, :func:`citation`, ...)
produce nodes with the attribute names the serializer expects::

    doc = Document([
        heading(1, "Intro"),
        paragraph("See ", citation("smith2020", locators=["p. 4"]), "."),
    ])
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

# Node types that occupy a single position and hold no content.
LEAF_TYPES: frozenset[str] = frozenset({
    "horizontal_rule",
    "image",
    "section_break",
    "hard_break",
    "citation",
    "footnote_ref",
    "footnote_def",
})


@dataclass
class Mark:
    """Inline formatting applied to a text run (``strong``, ``link`` ...)."""

    type_name: str
    attrs: dict[str, Any] = field(default_factory=dict)


@dataclass
class Node:
    """A node in the document tree.

    Attributes
    ----------
    type_name:
        Node type (``"paragraph"``, ``"text"``, ``"citation"`` ...).
    attrs:
        Type-specific attributes (heading ``level``, citation ``citekeys``).
    children:
        Child nodes.  Empty for text runs and leaf atoms.
    text:
        Characters of a text run, ``None`` for every other node.
    marks:
        Formatting marks of a text run.
    """

    type_name: str
    attrs: dict[str, Any] = field(default_factory=dict)
    children: list[Node] = field(default_factory=list)
    text: str | None = None
    marks: list[Mark] = field(default_factory=list)

    @property
    def is_text(self) -> bool:
        return self.type_name == "text"

    @property
    def is_leaf(self) -> bool:
        return self.type_name in LEAF_TYPES

    @property
    def node_size(self) -> int:
        if self.is_text:
            return len(self.text or "")
        if self.is_leaf:
            return 1
        return 2 + sum(child.node_size for child in self.children)

    @property
    def content_size(self) -> int:
        if self.is_text or self.is_leaf:
            return 0
        return self.node_size - 2

    @property
    def text_content(self) -> str:
        if self.is_text:
            return self.text or ""
        return "".join(child.text_content for child in self.children)


class Document:
    """Root of a tree: an ordered list of top-level nodes."""

    __slots__ = ("children",)

    def __init__(self, children: list[Node] | None = None) -> None:
        self.children: list[Node] = list(children or [])

    def __repr__(self) -> str:
        return f"Document({[c.type_name for c in self.children]!r})"

    @property
    def content_size(self) -> int:
        return sum(child.node_size for child in self.children)

    def iter_top_level(self) -> Iterator[tuple[int, Node]]:
        offset = 0
        for child in self.children:
            yield offset, child
            offset += child.node_size

    def offsets(self) -> list[int]:
        return [offset for offset, _ in self.iter_top_level()]

    def replace(self, index: int, node: Node) -> Document:
        """Return a copy with the top-level node at *index* replaced."""
        children = list(self.children)
        children[index] = node
        return Document(children)

    def insert(self, index: int, node: Node) -> Document:
        """Return a copy with *node* inserted at top-level *index*."""
        children = list(self.children)
        children.insert(index, node)
        return Document(children)

    def remove(self, index: int) -> Document:
        """Return a copy without the top-level node at *index*."""
        children = list(self.children)
        del children[index]
        return Document(children)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def _inline(parts: tuple[Node | str, ...]) -> list[Node]:
    return [text(p) if isinstance(p, str) else p for p in parts if p != ""]


def text(value: str, *marks: Mark | str) -> Node:
    resolved = [Mark(m) if isinstance(m, str) else m for m in marks]
    return Node("text", text=value, marks=resolved)


def link(value: str, href: str) -> Node:
    return text(value, Mark("link", {"href": href}))


def paragraph(*parts: Node | str) -> Node:
    return Node("paragraph", children=_inline(parts))


def heading(level: int, *parts: Node | str) -> Node:
    return Node("heading", attrs={"level": level}, children=_inline(parts))


def code_block(code: str, language: str = "") -> Node:
    children = [text(code)] if code else []
    return Node("code_block", attrs={"language": language}, children=children)


def blockquote(*blocks: Node) -> Node:
    return Node("blockquote", children=list(blocks))


def list_item(*blocks: Node | str) -> Node:
    children = [paragraph(b) if isinstance(b, str) else b for b in blocks]
    return Node("list_item", children=children)


def bullet_list(*items: Node | str) -> Node:
    return Node(
        "bullet_list",
        children=[list_item(i) if isinstance(i, str) else i for i in items],
    )


def ordered_list(*items: Node | str, start: int = 1) -> Node:
    return Node(
        "ordered_list",
        attrs={"start": start},
        children=[list_item(i) if isinstance(i, str) else i for i in items],
    )


def horizontal_rule() -> Node:
    return Node("horizontal_rule")


def section_break() -> Node:
    return Node("section_break")


def hard_break() -> Node:
    return Node("hard_break")


def image(src: str, alt: str = "", title: str = "") -> Node:
    return Node("image", attrs={"src": src, "alt": alt, "title": title})


def table(*rows: list[Node | str], header: bool = True) -> Node:
    """Build a table from rows of cell contents; the first row is the header."""
    built: list[Node] = []
    for i, row in enumerate(rows):
        cell_type = "table_header" if header and i == 0 else "table_cell"
        cells = [Node(cell_type, children=_inline((c,))) for c in row]
        built.append(Node("table_row", children=cells))
    return Node("table", children=built)


def citation(
    *citekeys: str,
    locators: list[str] | None = None,
    prefix: str = "",
    suffix: str = "",
    suppress_author: bool = False,
    raw_syntax: str = "",
) -> Node:
    return Node(
        "citation",
        attrs={
            "citekeys": ",".join(citekeys),
            "locators": json.dumps(locators or []),
            "prefix": prefix,
            "suffix": suffix,
            "suppress_author": suppress_author,
            "raw_syntax": raw_syntax,
        },
    )


def annotation(kind: str, body: str = "", completed: bool = False) -> Node:
    children = [text(body)] if body else []
    return Node(
        "annotation",
        attrs={"type": kind, "is_completed": completed},
        children=children,
    )


def footnote_ref(label: str | int) -> Node:
    return Node("footnote_ref", attrs={"label": str(label)})


def footnote_def(label: str | int) -> Node:
    return Node("footnote_def", attrs={"label": str(label)})
