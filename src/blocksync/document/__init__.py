"""Document tree model consumed by the engine.

Exports
-------
TreeNode, DocumentTree
    Inspection protocols the engine reads.
Node, Mark, Document
    Concrete tree implementation.
parse_markdown, MarkdownTreeBuilder
    Markdown -> :class:`Document` loader.
"""

from .markdown import MarkdownTreeBuilder, parse_markdown
from .nodes import (
    LEAF_TYPES,
    Document,
    Mark,
    Node,
    annotation,
    blockquote,
    bullet_list,
    citation,
    code_block,
    footnote_def,
    footnote_ref,
    hard_break,
    heading,
    horizontal_rule,
    image,
    link,
    list_item,
    ordered_list,
    paragraph,
    section_break,
    table,
    text,
)
from .protocol import DocumentTree, TreeNode

__all__ = [
    "LEAF_TYPES",
    "Document",
    "DocumentTree",
    "Mark",
    "MarkdownTreeBuilder",
    "Node",
    "TreeNode",
    "annotation",
    "blockquote",
    "bullet_list",
    "citation",
    "code_block",
    "footnote_def",
    "footnote_ref",
    "hard_break",
    "heading",
    "horizontal_rule",
    "image",
    "link",
    "list_item",
    "ordered_list",
    "paragraph",
    "parse_markdown",
    "section_break",
    "table",
    "text",
]
