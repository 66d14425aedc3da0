"""Inline fragment serializer: blocks and atomic inline elements to Markdown."""

from .atoms import (
    ANNOTATION_TYPES,
    parse_citation_bracket,
    serialize_annotation,
    serialize_citation,
    serialize_footnote_def,
    serialize_footnote_ref,
)
from .fragment import SECTION_BREAK_MARKER, FragmentSerializer
from .inline import DEFAULT_INLINE_RENDERERS, InlineRenderer, InlineRendererRegistry, apply_marks

__all__ = [
    "ANNOTATION_TYPES",
    "DEFAULT_INLINE_RENDERERS",
    "SECTION_BREAK_MARKER",
    "FragmentSerializer",
    "InlineRenderer",
    "InlineRendererRegistry",
    "apply_marks",
    "parse_citation_bracket",
    "serialize_annotation",
    "serialize_citation",
    "serialize_footnote_def",
    "serialize_footnote_ref",
]
