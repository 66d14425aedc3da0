"""Build a :class:`Document` tree from Markdown.

Full content loads arrive from the host as Markdown.  This module parses
them with mistune v3's AST renderer and maps the token stream onto the
node types the engine tracks, recognising the editor's own inline
constructs on the way:

* Pandoc citations ``[see @key, p. 4; @other]`` -> ``citation`` atoms
* footnote references ``[^3]`` -> ``footnote_ref`` atoms
* footnote definitions ``[^3]: text`` -> paragraphs opened by a
  ``footnote_def`` marker
* ``<!-- ::task:: [ ] text -->`` style comments -> ``annotation`` nodes
* ``<!-- ::break:: -->`` -> ``section_break`` blocks

Footnote definitions are collected by mistune and appended after the
body in reference order; definitions that are never referenced are
dropped by the parser.
"""

from __future__ import annotations

import re

import mistune

from blocksync.serializer.atoms import ANNOTATION_TYPES, parse_citation_bracket
from blocksync.serializer.fragment import SECTION_BREAK_MARKER

from .nodes import (
    Document,
    Mark,
    Node,
    annotation,
    footnote_def,
    footnote_ref,
    hard_break,
    horizontal_rule,
    image,
    section_break,
    text,
)

_INLINE_ATOM_RE = re.compile(
    r"(?P<footnote>\[\^(?P<label>\d+)\](?!:))"
    r"|(?P<citation>\[(?P<body>[^\]]*@[\w:.-][^\]]*)\])"
)

_ANNOTATION_RE = re.compile(r"^<!--\s*::(\w+)::\s*(.+?)\s*-->$", re.S)
_TASK_CHECKBOX_RE = re.compile(r"^\s*\[([ xX])\]\s*(.*)$", re.S)

# mistune inline container tokens -> mark names understood by the serializer
_MARK_TYPES: dict[str, str] = {
    "strong": "strong",
    "emphasis": "em",
    "strikethrough": "strike",
    "mark": "highlight",
}

_SKIP_TYPES: frozenset[str] = frozenset({"blank_line"})


class MarkdownTreeBuilder:
    """Parse Markdown into a :class:`Document`."""

    def __init__(self) -> None:
        self._parser = mistune.create_markdown(
            renderer="ast",
            plugins=[
                "strikethrough",
                "mark",
                "table",
                "footnotes",
            ],
        )

    def build(self, markdown: str) -> Document:
        tokens = self._parser(markdown)
        if isinstance(tokens, str):
            return Document()
        return Document(self._blocks(tokens))

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def _blocks(self, tokens: list[dict]) -> list[Node]:
        nodes: list[Node] = []
        for token in tokens:
            nodes.extend(self._block(token))
        return nodes

    def _block(self, token: dict) -> list[Node]:
        kind = token.get("type", "")
        attrs = token.get("attrs") or {}
        children = token.get("children") or []

        if kind in _SKIP_TYPES:
            return []

        if kind == "heading":
            return [Node("heading", attrs={"level": attrs.get("level", 1)},
                         children=self._inlines(children))]

        if kind in ("paragraph", "block_text"):
            inlines = self._inlines(children)
            # A paragraph holding nothing but an image is an image block.
            if len(inlines) == 1 and inlines[0].type_name == "image":
                return inlines
            return [Node("paragraph", children=inlines)]

        if kind == "block_quote":
            return [Node("blockquote", children=self._blocks(children))]

        if kind == "list":
            items = [
                Node("list_item", children=self._blocks(item.get("children") or []))
                for item in children
                if item.get("type") in ("list_item", "task_list_item")
            ]
            if attrs.get("ordered"):
                return [Node("ordered_list", attrs={"start": attrs.get("start", 1)},
                             children=items)]
            return [Node("bullet_list", children=items)]

        if kind == "block_code":
            code = token.get("raw", "")
            if code.endswith("\n"):
                code = code[:-1]
            info = (attrs.get("info") or "").strip()
            language = info.split()[0] if info else ""
            return [Node("code_block", attrs={"language": language},
                         children=[text(code)] if code else [])]

        if kind == "thematic_break":
            return [horizontal_rule()]

        if kind == "block_html":
            return [self._html_block(token.get("raw", ""))]

        if kind == "table":
            return [self._table(children)]

        if kind == "footnotes":
            return self._footnotes(children)

        return []

    def _html_block(self, raw: str) -> Node:
        value = raw.strip()
        if value == SECTION_BREAK_MARKER:
            return section_break()
        marker = _parse_annotation(value)
        if marker is not None:
            return Node("paragraph", children=[marker])
        return Node("paragraph", children=[text(value)] if value else [])

    def _table(self, parts: list[dict]) -> Node:
        rows: list[Node] = []
        for part in parts:
            part_type = part.get("type")
            if part_type == "table_head":
                cells = [
                    Node("table_header", children=self._inlines(cell.get("children") or []))
                    for cell in part.get("children") or []
                ]
                rows.append(Node("table_row", children=cells))
            elif part_type == "table_body":
                for row in part.get("children") or []:
                    cells = [
                        Node("table_cell", children=self._inlines(cell.get("children") or []))
                        for cell in row.get("children") or []
                    ]
                    rows.append(Node("table_row", children=cells))
        return Node("table", children=rows)

    def _footnotes(self, items: list[dict]) -> list[Node]:
        nodes: list[Node] = []
        for item in items:
            label = str((item.get("attrs") or {}).get("key", ""))
            body = self._blocks(item.get("children") or [])
            if body and body[0].type_name == "paragraph":
                first = body.pop(0)
                first.children.insert(0, footnote_def(label))
                nodes.append(first)
            else:
                nodes.append(Node("paragraph", children=[footnote_def(label)]))
            nodes.extend(body)
        return nodes

    # ------------------------------------------------------------------
    # Inlines
    # ------------------------------------------------------------------

    def _inlines(self, tokens: list[dict], marks: tuple[Mark, ...] = ()) -> list[Node]:
        return _split_atoms(_coalesce(self._collect_inlines(tokens, marks)))

    def _collect_inlines(self, tokens: list[dict], marks: tuple[Mark, ...]) -> list[Node]:
        nodes: list[Node] = []
        for token in tokens:
            kind = token.get("type", "")
            attrs = token.get("attrs") or {}
            children = token.get("children") or []

            if kind == "text":
                nodes.append(text(token.get("raw", ""), *marks))
            elif kind in _MARK_TYPES:
                nodes.extend(self._collect_inlines(children, (*marks, Mark(_MARK_TYPES[kind]))))
            elif kind == "codespan":
                nodes.append(text(token.get("raw", ""), *marks, Mark("code")))
            elif kind == "link":
                link_mark = Mark("link", {"href": attrs.get("url", "")})
                nodes.extend(self._collect_inlines(children, (*marks, link_mark)))
            elif kind == "image":
                alt = "".join(n.text_content for n in self._collect_inlines(children, ()))
                nodes.append(image(attrs.get("url", ""), alt, attrs.get("title") or ""))
            elif kind == "softbreak":
                nodes.append(text("\n", *marks))
            elif kind == "linebreak":
                nodes.append(hard_break())
            elif kind == "footnote_ref":
                nodes.append(footnote_ref(token.get("raw", "")))
            elif kind == "inline_html":
                raw = token.get("raw", "")
                marker = _parse_annotation(raw.strip())
                nodes.append(marker if marker is not None else text(raw, *marks))
            elif children:
                nodes.extend(self._collect_inlines(children, marks))
        return nodes


def _parse_annotation(value: str) -> Node | None:
    match = _ANNOTATION_RE.match(value)
    if not match:
        return None
    kind, body = match.group(1), match.group(2)
    if kind not in ANNOTATION_TYPES:
        return None
    completed = False
    if kind == "task":
        checkbox = _TASK_CHECKBOX_RE.match(body)
        if checkbox:
            completed = checkbox.group(1).lower() == "x"
            body = checkbox.group(2)
    return annotation(kind, body.strip(), completed)


def _coalesce(nodes: list[Node]) -> list[Node]:
    """Merge adjacent text runs that carry the same marks."""
    merged: list[Node] = []
    for node in nodes:
        if node.is_text and not node.text:
            continue
        previous = merged[-1] if merged else None
        if previous is not None and previous.is_text and node.is_text and previous.marks == node.marks:
            merged[-1] = Node("text", text=(previous.text or "") + (node.text or ""),
                              marks=list(previous.marks))
        else:
            merged.append(node)
    return merged


def _split_atoms(nodes: list[Node]) -> list[Node]:
    """Carve citation and footnote-reference atoms out of plain text runs."""
    result: list[Node] = []
    for node in nodes:
        if not node.is_text or any(m.type_name == "code" for m in node.marks):
            result.append(node)
            continue
        value = node.text or ""
        cursor = 0
        for match in _INLINE_ATOM_RE.finditer(value):
            if match.start() > cursor:
                result.append(Node("text", text=value[cursor:match.start()], marks=list(node.marks)))
            if match.group("footnote"):
                result.append(footnote_ref(match.group("label")))
            else:
                result.append(Node("citation", attrs=parse_citation_bracket(match.group("body"))))
            cursor = match.end()
        if cursor == 0:
            result.append(node)
        elif cursor < len(value):
            result.append(Node("text", text=value[cursor:], marks=list(node.marks)))
    return result


_default_builder: MarkdownTreeBuilder | None = None


def parse_markdown(markdown: str) -> Document:
    """Parse *markdown* with a shared :class:`MarkdownTreeBuilder`."""
    global _default_builder
    if _default_builder is None:
        _default_builder = MarkdownTreeBuilder()
    return _default_builder.build(markdown)
