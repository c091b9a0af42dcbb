"""
Block lexer tests

Tests block rules, nested lists and tables, HTML/custom tags and the
closed flag that drives settlement.
"""

import pytest

from streammark.lib.blocks import BlockLexer, lines_split, indent_width, cells_split
from streammark.models.tokens import TokenKind


def blocks(src, **kwargs):
    return [token for token, _ in BlockLexer(**kwargs).blocks_iter(src, 0)]


class TestHelpers:
    """Line splitting and indentation helpers"""

    def test_lines_split_marks_incomplete_last_line(self):
        """Only newline-terminated lines are complete"""
        lines = lines_split("a\nbc\nd")
        assert [line.text for line in lines] == ["a", "bc", "d"]
        assert [line.complete for line in lines] == [True, True, False]
        assert lines[1].start == 2
        assert lines[1].end == 5

    def test_lines_split_from_offset(self):
        """Offsets are absolute buffer positions"""
        lines = lines_split("skip\nkeep\n", 5)
        assert len(lines) == 1
        assert lines[0].start == 5
        assert lines[0].text == "keep"

    def test_indent_width_expands_tabs(self):
        """Tabs advance to the next multiple of four"""
        assert indent_width("  x") == 2
        assert indent_width("\tx") == 4
        assert indent_width(" \tx") == 4

    def test_cells_split_strips_outer_pipes(self):
        """Leading/trailing pipes are optional, escaped pipes stay in the cell"""
        assert cells_split("| a | b |") == ["a", "b"]
        assert cells_split("a | b") == ["a", "b"]
        assert cells_split("| a \\| b | c |") == ["a \\| b", "c"]


class TestClosedFlag:
    """A block is closed once every line that decided it is complete"""

    def test_heading_then_open_paragraph(self):
        """Heading line is complete, the trailing paragraph is not"""
        result = [(token.type, closed) for token, closed in BlockLexer().blocks_iter("# Hi\n\nBody", 0)]
        assert result == [("heading", True), ("space", False), ("paragraph", False)]

    def test_heading_without_newline_is_open(self):
        """'# Tit' may still grow"""
        result = list(BlockLexer().blocks_iter("# Tit", 0))
        assert len(result) == 1
        assert result[0][1] is False

    def test_paragraph_closed_by_blank_line(self):
        """A complete blank line ends the paragraph for good"""
        result = list(BlockLexer().blocks_iter("one\ntwo\n\nthree", 0))
        assert result[0][0].type == TokenKind.PARAGRAPH
        assert result[0][0].text == "one\ntwo"
        assert result[0][1] is True

    def test_paragraph_open_while_next_line_is_partial(self):
        """'abc\\n-' could still become a setext heading"""
        result = list(BlockLexer().blocks_iter("abc\n-", 0))
        assert result[0][1] is False

    def test_tokens_cover_whole_buffer(self):
        """Concatenated raw text reproduces the source"""
        src = "# T\n\npara\n\n- a\n- b\n\n```\ncode\n```\n"
        assert "".join(token.raw for token in blocks(src)) == src


class TestHeadings:
    """ATX and setext headings"""

    def test_atx_depth_and_closing_hashes(self):
        """Closing hashes are not part of the text"""
        token = blocks("## Sub title ##\n")[0]
        assert token.type == TokenKind.HEADING
        assert token.attrs["depth"] == 2
        assert token.text == "Sub title"

    def test_setext_level_one(self):
        """'=' underline gives depth 1"""
        token = blocks("Title\n=====\n")[0]
        assert token.type == TokenKind.HEADING
        assert token.attrs == {"depth": 1, "setext": True}
        assert token.text == "Title"

    def test_setext_level_two(self):
        """'-' underline after a paragraph line gives depth 2"""
        token = blocks("Title\n---\n")[0]
        assert token.attrs["depth"] == 2

    def test_thematic_break(self):
        """Three dashes on their own make an hr"""
        assert blocks("---\n")[0].type == TokenKind.HR


class TestCode:
    """Fenced and indented code"""

    def test_closed_fence(self):
        """Language, body and closed attribute"""
        result = list(BlockLexer().blocks_iter("```js\nconst a = 1;\n```\n", 0))
        assert len(result) == 1
        token, closed = result[0]
        assert token.type == TokenKind.CODE
        assert token.attrs["lang"] == "js"
        assert token.attrs["closed"] is True
        assert token.text == "const a = 1;"
        assert closed is True

    def test_unterminated_fence_runs_to_end(self):
        """An open fence swallows the rest of the buffer"""
        result = list(BlockLexer().blocks_iter("```py\nx = 1\n\n# not a heading\n", 0))
        assert len(result) == 1
        token, closed = result[0]
        assert token.attrs["closed"] is False
        assert token.text == "x = 1\n\n# not a heading"
        assert closed is False

    def test_shorter_fence_does_not_close(self):
        """Closing fence must be at least as long as the opener"""
        token = blocks("````\na\n```\nb\n````\n")[0]
        assert token.text == "a\n```\nb"

    def test_indented_code(self):
        """Four spaces of indentation"""
        token = blocks("    code\n")[0]
        assert token.type == TokenKind.CODE
        assert token.attrs["indented"] is True
        assert token.text == "code"


class TestLists:
    """Bullet, ordered and task lists"""

    def test_tight_bullet_list(self):
        """Adjacent items make a tight list"""
        token = blocks("- a\n- b\n")[0]
        assert token.type == TokenKind.LIST
        assert token.attrs["ordered"] is False
        assert token.attrs["loose"] is False
        assert [item.children[0].text for item in token.children] == ["a", "b"]

    def test_loose_list(self):
        """A blank line between items makes the list loose"""
        token = blocks("- a\n\n- b\n")[0]
        assert token.attrs["loose"] is True
        assert all(item.attrs["loose"] for item in token.children)

    def test_ordered_start(self):
        """Ordered lists keep their start number and delimiter"""
        token = blocks("3. x\n4. y\n")[0]
        assert token.attrs["ordered"] is True
        assert token.attrs["start"] == 3
        assert token.attrs["delimiter"] == "."
        assert len(token.children) == 2

    def test_different_bullet_starts_new_list(self):
        """Changing the bullet character ends the list"""
        tokens = blocks("- a\n* b\n")
        assert [token.type for token in tokens] == [TokenKind.LIST, TokenKind.LIST]

    def test_continuation_line(self):
        """Indented lines continue the item"""
        token = blocks("- two\n  continued\n")[0]
        assert token.children[0].children[0].text == "two\ncontinued"

    def test_nested_list(self):
        """Deeper indented items nest inside the item"""
        token = blocks("- a\n  - b\n")[0]
        item = token.children[0]
        assert [child.type for child in item.children] == [TokenKind.PARAGRAPH, TokenKind.LIST]

    def test_task_items(self):
        """[x] and [ ] markers become task attributes"""
        token = blocks("- [x] done\n- [ ] todo\n")[0]
        first, second = token.children
        assert first.attrs == {"task": True, "checked": True, "loose": False}
        assert first.children[0].text == "done"
        assert second.attrs["checked"] is False


class TestTables:
    """GFM tables"""

    def test_table_with_alignment_and_padding(self):
        """Rows are padded/truncated to the header's column count"""
        token = blocks("| a | b |\n|---|:-:|\n| 1 |\n| 2 | 3 | 4 |\n")[0]
        assert token.type == TokenKind.TABLE
        assert token.attrs["columns"] == 2
        assert token.attrs["align"] == [None, "center"]
        rows = token.children
        assert len(rows) == 3
        assert rows[0].attrs["header"] is True
        assert [cell.text for cell in rows[1].children] == ["1", ""]
        assert [cell.text for cell in rows[2].children] == ["2", "3"]
        assert rows[1].children[1].attrs["align"] == "center"

    def test_header_without_delimiter_is_paragraph(self):
        """A lone header row is not a table yet"""
        token = blocks("| a | b |\n")[0]
        assert token.type == TokenKind.PARAGRAPH

    def test_mismatched_delimiter_is_paragraph(self):
        """Delimiter row must match the header's cell count"""
        token = blocks("| a | b |\n|---|\n")[0]
        assert token.type == TokenKind.PARAGRAPH

    def test_table_interrupts_paragraph(self):
        """A table directly under a paragraph line starts a new block"""
        tokens = blocks("intro\n| a |\n|---|\n")
        assert [token.type for token in tokens] == [TokenKind.PARAGRAPH, TokenKind.TABLE]


class TestHtmlAndCustomTags:
    """HTML blocks and registered component tags"""

    def test_block_html_until_blank(self):
        """Block-level tags run to the next blank line"""
        tokens = blocks("<div>\nhi\n</div>\n\nafter\n")
        assert tokens[0].type == TokenKind.HTML
        assert tokens[0].raw == "<div>\nhi\n</div>\n"
        assert tokens[-1].type == TokenKind.PARAGRAPH

    def test_custom_tag_spans_blank_lines(self):
        """Custom tags stay one block until their close tag"""
        src = "<think>\nstep one\n\nstep two\n</think>\n"
        tokens = blocks(src, custom_tags=["think"])
        assert len(tokens) == 1
        assert tokens[0].attrs == {"tag": "think", "closed": True, "custom": True}

    def test_unclosed_custom_tag(self):
        """Missing close tag leaves the block open"""
        token = blocks("<think>\npartial", custom_tags=["think"])[0]
        assert token.attrs["closed"] is False

    def test_unregistered_tag_is_not_custom(self):
        """Without registration the blank line ends the HTML"""
        tokens = blocks("<think>\nstep one\n\nstep two\n")
        assert tokens[0].attrs.get("custom") is False
        assert tokens[-1].type == TokenKind.PARAGRAPH


class TestOtherBlocks:
    """Blockquotes and footnote definitions"""

    def test_blockquote_children(self):
        """Quoted lines are lexed as nested blocks"""
        token = blocks("> quote\n> more\n")[0]
        assert token.type == TokenKind.BLOCKQUOTE
        assert token.children[0].type == TokenKind.PARAGRAPH
        assert token.children[0].text == "quote\nmore"

    def test_footnote_definition(self):
        """Footnote id and text"""
        token = blocks("[^1]: The note\n")[0]
        assert token.type == TokenKind.FOOTNOTE
        assert token.attrs["id"] == "1"
        assert token.text == "The note"
