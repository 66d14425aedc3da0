"""Inline rendering: a block's inline children to Markdown.

Text runs are emitted verbatim with their marks applied.  Atomic inline
elements (citations, annotations, footnote markers) have no text of their
own; each kind is rendered by the function registered for it in an
:class:`InlineRendererRegistry`, so a new atom kind only needs a new
registry entry.

Mark combination order (innermost first)::

    code -> strong -> em -> strike -> highlight -> link
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import TYPE_CHECKING

from .atoms import (
    serialize_annotation,
    serialize_citation,
    serialize_footnote_def,
    serialize_footnote_ref,
)

if TYPE_CHECKING:
    from blocksync.document.protocol import TreeNode

InlineRenderer = Callable[["TreeNode"], str]

_MARK_WRAPPERS: list[tuple[str, str]] = [
    ("strong", "**"),
    ("em", "_"),
    ("strike", "~~"),
    ("highlight", "=="),
]


def _render_citation(node: TreeNode) -> str:
    return serialize_citation(node.attrs)


def _render_annotation(node: TreeNode) -> str:
    return serialize_annotation(node.attrs, node.text_content)


def _render_footnote_ref(node: TreeNode) -> str:
    return serialize_footnote_ref(node.attrs)


def _render_footnote_def(node: TreeNode) -> str:
    return serialize_footnote_def(node.attrs)


def _render_hard_break(node: TreeNode) -> str:
    return "\\\n"


DEFAULT_INLINE_RENDERERS: dict[str, InlineRenderer] = {
    "citation": _render_citation,
    "annotation": _render_annotation,
    "footnote_ref": _render_footnote_ref,
    "footnote_def": _render_footnote_def,
    "hard_break": _render_hard_break,
}


class InlineRendererRegistry:
    """Mapping of inline node kind to the function that renders it.

    Parameters
    ----------
    renderers:
        Initial entries.  ``None`` installs :data:`DEFAULT_INLINE_RENDERERS`.
    """

    def __init__(self, renderers: Mapping[str, InlineRenderer] | None = None) -> None:
        source = DEFAULT_INLINE_RENDERERS if renderers is None else renderers
        self._renderers: dict[str, InlineRenderer] = dict(source)

    def __contains__(self, kind: object) -> bool:
        return kind in self._renderers

    def __iter__(self) -> Iterator[str]:
        return iter(self._renderers)

    def __len__(self) -> int:
        return len(self._renderers)

    def register(self, kind: str, renderer: InlineRenderer) -> None:
        """Add or replace the renderer for *kind*."""
        self._renderers[kind] = renderer

    def unregister(self, kind: str) -> None:
        self._renderers.pop(kind, None)

    def get(self, kind: str) -> InlineRenderer | None:
        return self._renderers.get(kind)


def apply_marks(value: str, marks: Iterable[object]) -> str:
    """Wrap *value* in the Markdown syntax for *marks*."""
    names: dict[str, object] = {}
    for mark in marks:
        names[getattr(mark, "type_name", str(mark))] = mark

    if "code" in names:
        fence = "``" if "`" in value else "`"
        value = f"{fence}{value}{fence}"
    for name, token in _MARK_WRAPPERS:
        if name in names:
            value = f"{token}{value}{token}"
    link = names.get("link")
    if link is not None:
        href = (getattr(link, "attrs", None) or {}).get("href", "")
        value = f"[{value}]({href})"
    return value
