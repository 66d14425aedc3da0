"""Property-based tests for blocksync using Hypothesis.

These tests verify invariant properties of identity assignment, snapshot
diffing and fragment serialization.  They complement the example-based
unit tests by exercising the code with a wide range of generated
documents.
"""

from __future__ import annotations

import itertools
import string

from hypothesis import given, settings
from hypothesis import strategies as st

from blocksync.config import BlockSyncConfig
from blocksync.document import Document, paragraph, parse_markdown
from blocksync.identity import assign_ids, compute_signature
from blocksync.serializer import FragmentSerializer
from blocksync.sync import diff_snapshots, take_snapshot

# ---------------------------------------------------------------------------
# Reusable strategies
# ---------------------------------------------------------------------------

_word_st = st.text(alphabet=string.ascii_letters + string.digits, min_size=1, max_size=12)

# Plain sentences: words separated by single spaces, never empty.
_sentence_st = st.lists(_word_st, min_size=1, max_size=6).map(" ".join)

_doc_st = st.lists(_sentence_st, max_size=12).map(
    lambda texts: Document([paragraph(t) for t in texts])
)

_unique_doc_st = st.lists(_sentence_st, max_size=12, unique=True).map(
    lambda texts: Document([paragraph(t) for t in texts])
)


def _config(**kwargs) -> BlockSyncConfig:
    counter = itertools.count(1)
    return BlockSyncConfig(id_factory=lambda: str(next(counter)), **kwargs)


def _assign_twice(before: Document, after: Document, **kwargs):
    config = _config(**kwargs)
    first = assign_ids(before, {}, config=config)
    second = assign_ids(
        after, first.positions, config=config, previous_signatures=first.signatures
    )
    return first, second


# ---------------------------------------------------------------------------
# Identity assignment
# ---------------------------------------------------------------------------


class TestIdentityProperties:
    """Invariants of :func:`assign_ids`."""

    @given(before=_doc_st, after=_doc_st, content_matching=st.booleans())
    @settings(max_examples=100)
    def test_no_id_handed_out_twice(
        self, before: Document, after: Document, content_matching: bool
    ) -> None:
        """Every block of the new document gets a distinct id."""
        _, second = _assign_twice(before, after, content_matching=content_matching)
        ids = list(second.positions.values())
        assert len(ids) == len(set(ids)) == len(after.children)

    @given(doc=_doc_st, content_matching=st.booleans())
    def test_unchanged_document_keeps_every_id(
        self, doc: Document, content_matching: bool
    ) -> None:
        """Re-running a pass on an unchanged document is a no-op."""
        first, second = _assign_twice(doc, doc, content_matching=content_matching)
        assert second.positions == first.positions
        assert second.minted == []

    @given(doc=_unique_doc_st, data=st.data())
    def test_insert_keeps_ids_with_their_content(self, doc: Document, data) -> None:
        """With content matching, inserting an empty block moves no id."""
        index = data.draw(st.integers(min_value=0, max_value=len(doc.children)))
        edited = doc.insert(index, paragraph())
        first, second = _assign_twice(doc, edited)

        before_ids = {n.text_content: bid for (_, n), bid in
                      zip(doc.iter_top_level(), first.positions.values())}
        for (offset, node) in edited.iter_top_level():
            if node.text_content:
                assert second.positions[offset] == before_ids[node.text_content]
        assert len(second.minted) == 1

    @given(doc=_doc_st.filter(lambda d: d.children), data=st.data())
    @settings(max_examples=200)
    def test_editing_one_block_moves_no_id(self, doc: Document, data) -> None:
        """Rewriting a single block, even into a copy of a neighbour, keeps every id."""
        index = data.draw(st.integers(min_value=0, max_value=len(doc.children) - 1))
        others = [n.text_content for n in doc.children]
        new_text = data.draw(st.one_of(st.just(""), st.sampled_from(others), _sentence_st))
        edited = doc.replace(index, paragraph(new_text))

        first, second = _assign_twice(doc, edited)
        assert list(second.positions.values()) == list(first.positions.values())
        assert second.minted == []

    @given(doc=_doc_st)
    def test_signature_ignores_position(self, doc: Document) -> None:
        """Equal blocks have equal signatures wherever they sit."""
        for node in doc.children:
            assert compute_signature(node) == compute_signature(paragraph(node.text_content))


# ---------------------------------------------------------------------------
# Diffing
# ---------------------------------------------------------------------------


class TestDiffProperties:
    @given(before=_doc_st, after=_doc_st)
    @settings(max_examples=100)
    def test_diff_partitions_ids(self, before: Document, after: Document) -> None:
        """Deletes are exactly the ids that vanished; inserts exactly the new ones."""
        serializer = FragmentSerializer()
        first, second = _assign_twice(before, after)
        old = take_snapshot(before, first.positions, serializer).snapshot
        new = take_snapshot(after, second.positions, serializer).snapshot

        changes = diff_snapshots(old, new)
        assert set(changes.deletes) == set(old) - set(new)
        assert {i.temp_id for i in changes.inserts} == set(new) - set(old)
        assert {u.id for u in changes.updates} <= set(old) & set(new)

    @given(doc=_doc_st)
    def test_identical_snapshots_produce_nothing(self, doc: Document) -> None:
        serializer = FragmentSerializer()
        result = assign_ids(doc, {}, config=_config())
        snap = take_snapshot(doc, result.positions, serializer).snapshot
        assert diff_snapshots(snap, snap).is_empty()


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


class TestSerializationProperties:
    @given(texts=st.lists(_sentence_st, min_size=1, max_size=8))
    def test_plain_paragraphs_survive_reload(self, texts: list[str]) -> None:
        """Serializing then re-parsing plain paragraphs is lossless."""
        serializer = FragmentSerializer()
        doc = Document([paragraph(t) for t in texts])
        markdown = serializer.serialize_document(doc)
        reloaded = parse_markdown(markdown)
        assert [n.text_content for n in reloaded.children] == texts
        assert serializer.serialize_document(reloaded) == markdown

    @given(text=_sentence_st)
    def test_paragraph_size(self, text: str) -> None:
        assert paragraph(text).node_size == len(text) + 2
