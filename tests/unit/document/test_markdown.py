"""Tests for document/markdown.py"""
import json

import pytest

from blocksync.document import Document, MarkdownTreeBuilder, parse_markdown


@pytest.fixture
def builder() -> MarkdownTreeBuilder:
    return MarkdownTreeBuilder()


def _types(doc: Document) -> list[str]:
    return [node.type_name for node in doc.children]


class TestBlocks:
    def test_heading_and_paragraph(self, builder):
        doc = builder.build("# Title\n\nBody text")
        assert _types(doc) == ["heading", "paragraph"]
        assert doc.children[0].attrs["level"] == 1
        assert doc.children[0].text_content == "Title"
        assert doc.children[1].text_content == "Body text"

    def test_blank_lines_produce_no_nodes(self, builder):
        doc = builder.build("a\n\n\n\nb")
        assert _types(doc) == ["paragraph", "paragraph"]

    def test_bullet_list(self, builder):
        doc = builder.build("- one\n- two")
        (lst,) = doc.children
        assert lst.type_name == "bullet_list"
        assert [item.type_name for item in lst.children] == ["list_item", "list_item"]
        assert lst.children[1].children[0].type_name == "paragraph"
        assert lst.text_content == "onetwo"

    def test_ordered_list_start(self, builder):
        doc = builder.build("3. a\n4. b")
        (lst,) = doc.children
        assert lst.type_name == "ordered_list"
        assert lst.attrs["start"] == 3

    def test_ordered_list_default_start(self, builder):
        (lst,) = builder.build("1. a").children
        assert lst.attrs["start"] == 1

    def test_fenced_code(self, builder):
        (code,) = builder.build("```python\nx = 1\n```").children
        assert code.type_name == "code_block"
        assert code.attrs["language"] == "python"
        assert code.text_content == "x = 1"

    def test_thematic_break(self, builder):
        doc = builder.build("a\n\n---\n\nb")
        assert _types(doc) == ["paragraph", "horizontal_rule", "paragraph"]

    def test_blockquote(self, builder):
        (quote,) = builder.build("> quoted").children
        assert quote.type_name == "blockquote"
        assert quote.children[0].text_content == "quoted"

    def test_section_break_marker(self, builder):
        doc = builder.build("a\n\n<!-- ::break:: -->\n\nb")
        assert _types(doc) == ["paragraph", "section_break", "paragraph"]

    def test_standalone_image_is_a_block(self, builder):
        (img,) = builder.build('![Alt text](pic.png "Title")').children
        assert img.type_name == "image"
        assert img.attrs == {"src": "pic.png", "alt": "Alt text", "title": "Title"}

    def test_table(self, builder):
        (tbl,) = builder.build("| A | B |\n| --- | --- |\n| 1 | 2 |").children
        assert tbl.type_name == "table"
        header, row = tbl.children
        assert [c.type_name for c in header.children] == ["table_header"] * 2
        assert [c.text_content for c in row.children] == ["1", "2"]


class TestInlines:
    def test_marks(self, builder):
        (para,) = builder.build("**bold** _it_ `code` ~~gone~~ ==hi==").children
        marked = {
            node.text: [m.type_name for m in node.marks]
            for node in para.children
            if node.marks
        }
        assert marked == {
            "bold": ["strong"],
            "it": ["em"],
            "code": ["code"],
            "gone": ["strike"],
            "hi": ["highlight"],
        }

    def test_link_mark_carries_href(self, builder):
        (para,) = builder.build("[docs](https://example.com)").children
        (node,) = para.children
        assert node.text == "docs"
        assert node.marks[0].attrs == {"href": "https://example.com"}

    def test_adjacent_text_runs_coalesce(self, builder):
        (para,) = builder.build("a [b c").children
        assert len(para.children) == 1
        assert para.children[0].text == "a [b c"

    def test_citation_split_out(self, builder):
        (para,) = builder.build("See [see -@smith2020, p. 4; @jones] now").children
        types = [n.type_name for n in para.children]
        assert types == ["text", "citation", "text"]
        cite = para.children[1]
        assert cite.attrs["citekeys"] == "smith2020,jones"
        assert json.loads(cite.attrs["locators"]) == ["p. 4", ""]
        assert cite.attrs["prefix"] == "see"
        assert cite.attrs["suppress_author"] is True

    def test_citation_inside_code_is_text(self, builder):
        (para,) = builder.build("`[@key]`").children
        assert [n.type_name for n in para.children] == ["text"]

    def test_unresolved_footnote_ref(self, builder):
        (para,) = builder.build("Claim[^2]").children
        assert [n.type_name for n in para.children] == ["text", "footnote_ref"]
        assert para.children[1].attrs["label"] == "2"

    def test_footnote_definition(self, builder):
        doc = builder.build("Claim[^1]\n\n[^1]: The source.")
        assert _types(doc) == ["paragraph", "paragraph"]
        body, note = doc.children
        assert body.children[-1].type_name == "footnote_ref"
        assert note.children[0].type_name == "footnote_def"
        assert note.children[0].attrs["label"] == "1"
        assert note.text_content == "The source."

    def test_annotation_comment(self, builder):
        (para,) = builder.build("Text <!-- ::task:: [x] Ship it --> end").children
        ann = next(n for n in para.children if n.type_name == "annotation")
        assert ann.attrs == {"type": "task", "is_completed": True}
        assert ann.text_content == "Ship it"

    def test_unknown_comment_stays_text(self, builder):
        (para,) = builder.build("a <!-- plain --> b").children
        assert all(n.type_name == "text" for n in para.children)

    def test_hard_break(self, builder):
        (para,) = builder.build("one\\\ntwo").children
        assert [n.type_name for n in para.children] == ["text", "hard_break", "text"]


class TestParseMarkdown:
    def test_module_level_helper(self):
        doc = parse_markdown("## Two")
        assert doc.children[0].attrs["level"] == 2

    def test_empty_input(self):
        assert parse_markdown("").children == []
