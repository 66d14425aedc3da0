"""Block fragment serializer.

Renders one top-level block (or a whole document) as canonical Markdown.
Inline content goes through :mod:`.inline`, so atomic elements keep their
payload instead of flattening to plain text.  Container blocks recurse into
their children; leaf blocks wrap their inline content in the block's own
syntax (heading markers, quote prefix, code fences, list bullets).

Usage::

    from blocksync.serializer import FragmentSerializer

    serializer = FragmentSerializer()
    fragment = serializer.serialize_block(node)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from blocksync.errors import BlockSyncSerializationError, BlockSyncUnsupportedBlockError

from .inline import InlineRendererRegistry, apply_marks

if TYPE_CHECKING:
    from blocksync.document.protocol import DocumentTree, TreeNode

SECTION_BREAK_MARKER = "<!-- ::break:: -->"

_BLOCK_SEPARATOR = "\n\n"


class FragmentSerializer:
    """Render tree nodes to Markdown fragments.

    Parameters
    ----------
    registry:
        Renderers for atomic inline kinds.  Defaults to a fresh
        :class:`InlineRendererRegistry` with the built-in encoders.
    unknown_block_policy:
        ``"text"``, ``"comment"`` or ``"raise"``; see
        :class:`~blocksync.config.BlockSyncConfig`.
    """

    def __init__(
        self,
        registry: InlineRendererRegistry | None = None,
        *,
        unknown_block_policy: str = "text",
    ) -> None:
        self.registry = registry if registry is not None else InlineRendererRegistry()
        self._unknown_block_policy = unknown_block_policy

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def serialize_block(self, node: TreeNode) -> str:
        """Return the Markdown fragment for a single block.

        Raises
        ------
        BlockSyncSerializationError
            If an inline renderer fails, or the block type is unknown and
            the policy is ``"raise"``.
        """
        return self._dispatch(node)

    def serialize_inline(self, children: Iterable[TreeNode]) -> str:
        """Render inline children: text runs with marks, atoms via the registry."""
        parts: list[str] = []
        for child in children:
            if child.is_text:
                parts.append(apply_marks(child.text or "", child.marks))
                continue

            kind = child.type_name
            renderer = self.registry.get(kind)
            if renderer is not None:
                try:
                    parts.append(renderer(child))
                except Exception as exc:
                    raise BlockSyncSerializationError(
                        message=f"Inline renderer for {kind!r} failed: {exc}",
                        context={"inline_kind": kind},
                        cause=exc,
                    ) from exc
            elif kind == "image":
                parts.append(self._render_image(child))
            else:
                parts.append(child.text_content)
        return "".join(parts)

    def serialize_document(self, tree: DocumentTree) -> str:
        """Render every top-level node and join the fragments with blank lines."""
        fragments = [self._dispatch(node) for _, node in tree.iter_top_level()]
        return _BLOCK_SEPARATOR.join(f for f in fragments if f)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _dispatch(self, node: TreeNode) -> str:
        renderer = _BLOCK_RENDERERS.get(node.type_name)
        if renderer is not None:
            return renderer(self, node)
        return self._render_unknown(node)

    def _render_children(self, node: TreeNode, separator: str = _BLOCK_SEPARATOR) -> str:
        return separator.join(self._dispatch(child) for child in node.children)

    # ------------------------------------------------------------------
    # Block renderers
    # ------------------------------------------------------------------

    def _render_paragraph(self, node: TreeNode) -> str:
        return self.serialize_inline(node.children)

    def _render_heading(self, node: TreeNode) -> str:
        level = int(node.attrs.get("level") or 1)
        return f"{'#' * level} {self.serialize_inline(node.children)}"

    def _render_blockquote(self, node: TreeNode) -> str:
        body = self._render_children(node)
        return "\n".join(f"> {line}" if line else ">" for line in body.split("\n"))

    def _render_code_block(self, node: TreeNode) -> str:
        language = node.attrs.get("language") or ""
        code = node.text_content
        fence = "````" if "```" in code else "```"
        return f"{fence}{language}\n{code}\n{fence}"

    def _render_horizontal_rule(self, node: TreeNode) -> str:
        return "---"

    def _render_section_break(self, node: TreeNode) -> str:
        return SECTION_BREAK_MARKER

    def _render_bullet_list(self, node: TreeNode) -> str:
        return "\n".join(self._render_list_item(item, "- ") for item in node.children)

    def _render_ordered_list(self, node: TreeNode) -> str:
        start = int(node.attrs.get("start") or 1)
        return "\n".join(
            self._render_list_item(item, f"{start + i}. ")
            for i, item in enumerate(node.children)
        )

    def _render_list_item(self, node: TreeNode, marker: str) -> str:
        """Render an item's blocks under *marker*, indenting continuation lines."""
        if node.type_name != "list_item":
            body = self._dispatch(node)
        else:
            body = self._render_children(node, separator="\n")
        indent = " " * len(marker)
        lines = body.split("\n")
        rendered = [marker + lines[0]]
        rendered.extend(indent + line if line else "" for line in lines[1:])
        return "\n".join(rendered)

    def _render_table(self, node: TreeNode) -> str:
        rows: list[str] = []
        for index, row in enumerate(node.children):
            cells = [
                self.serialize_inline(cell.children).replace("|", "\\|").replace("\n", " ")
                for cell in row.children
            ]
            rows.append("| " + " | ".join(cells) + " |")
            if index == 0:
                rows.append("| " + " | ".join("---" for _ in cells) + " |")
        return "\n".join(rows)

    def _render_image(self, node: TreeNode) -> str:
        src = node.attrs.get("src") or ""
        alt = node.attrs.get("alt") or ""
        title = node.attrs.get("title") or ""
        if title:
            return f'![{alt}]({src} "{title}")'
        return f"![{alt}]({src})"

    # ------------------------------------------------------------------
    # Unknown block fallback
    # ------------------------------------------------------------------

    def _render_unknown(self, node: TreeNode) -> str:
        """Handle node types with no dedicated renderer.

        Behaviour is governed by ``unknown_block_policy``:

        * ``"text"`` -- render the inline children.
        * ``"comment"`` -- an HTML comment naming the type, then the text.
        * ``"raise"`` -- raise :class:`BlockSyncUnsupportedBlockError`.
        """
        block_type = node.type_name
        if self._unknown_block_policy == "raise":
            raise BlockSyncUnsupportedBlockError(
                message=f"Cannot serialize block type: {block_type}",
                context={"block_type": block_type},
            )

        text = self.serialize_inline(node.children)
        if self._unknown_block_policy == "comment":
            return f"<!-- block:{block_type} -->\n{text}" if text else f"<!-- block:{block_type} -->"
        return text


# ------------------------------------------------------------------
# Block renderer dispatch table
# ------------------------------------------------------------------

_BlockRenderer = Callable[["FragmentSerializer", "TreeNode"], str]

_BLOCK_RENDERERS: dict[str, _BlockRenderer] = {
    "paragraph": FragmentSerializer._render_paragraph,
    "heading": FragmentSerializer._render_heading,
    "blockquote": FragmentSerializer._render_blockquote,
    "code_block": FragmentSerializer._render_code_block,
    "horizontal_rule": FragmentSerializer._render_horizontal_rule,
    "section_break": FragmentSerializer._render_section_break,
    "bullet_list": FragmentSerializer._render_bullet_list,
    "ordered_list": FragmentSerializer._render_ordered_list,
    "table": FragmentSerializer._render_table,
    "image": FragmentSerializer._render_image,
}
