"""
Incomplete construct detector tests

Tests provisional marking, placeholder resolution and the streaming
scenarios end to end through a session.
"""

import pytest

from streammark import create_session
from streammark.lib.detector import IncompleteConstructDetector
from streammark.lib.tokenizer import IncrementalTokenizer
from streammark.models.tokens import TokenKind


def streaming_session(**options):
    return create_session(streaming={"has_next_chunk": True}, **options)


class TestPlaceholders:
    """Component map resolution"""

    def test_default_link_and_image(self):
        """link and image have default placeholders"""
        detector = IncompleteConstructDetector()
        assert detector.placeholder_get("link") == "incomplete-link"
        assert detector.placeholder_get("image") == "incomplete-image"
        assert detector.placeholder_get("html") is None

    def test_map_overrides_default(self):
        """Caller map wins and adds new kinds"""
        detector = IncompleteConstructDetector({"link": "link-loading", "html": "html-loading"})
        assert detector.placeholder_get("link") == "link-loading"
        assert detector.placeholder_get("html") == "html-loading"
        assert detector.hidden_is("html") is False

    def test_empty_string_disables_placeholder(self):
        """'' means no placeholder at all"""
        detector = IncompleteConstructDetector({"link": ""})
        assert detector.placeholder_get("link") is None
        assert detector.hidden_is("link") is False

    def test_hidden_kinds(self):
        """html, table, codespan and list render nothing by default"""
        detector = IncompleteConstructDetector()
        for kind in ("html", "table", "codespan", "list"):
            assert detector.hidden_is(kind)
        assert not detector.hidden_is("link")


class TestMark:
    """Provisional flags and construct collection"""

    def test_tail_marked_settled_untouched(self):
        """Only tokens after the checkpoint become provisional"""
        result = IncrementalTokenizer().tokenize("# Done\n\nSee [a](http://x")
        constructs = IncompleteConstructDetector().mark(result.tokens, result.checkpoint, True)

        heading, space, paragraph = result.tokens
        assert heading.provisional is False
        assert space.provisional is True
        assert paragraph.provisional is True
        assert len(constructs) == 1
        assert constructs[0].kind == "link"
        assert constructs[0].owner == paragraph.uid
        assert constructs[0].component == "incomplete-link"

    def test_end_of_stream_clears_flags(self):
        """No token stays provisional once the stream ended"""
        tokenizer = IncrementalTokenizer()
        detector = IncompleteConstructDetector()
        result = tokenizer.tokenize("Hello **wor")
        detector.mark(result.tokens, result.checkpoint, True)
        assert result.tokens[0].provisional is True

        final = tokenizer.tokenize("Hello **wor", result.checkpoint, result.tokens, final=True)
        assert detector.mark(final.tokens, final.checkpoint, False) == []
        assert not any(token.provisional for token in final.tokens[0].walk())

    def test_header_only_table_is_block_construct(self):
        """A table with just its header is an incomplete table"""
        detector = IncompleteConstructDetector()
        result = IncrementalTokenizer().tokenize("| a | b |\n|---|---|")
        assert result.tokens[0].type == TokenKind.TABLE
        constructs = detector.mark(result.tokens, result.checkpoint, True)
        top = detector.topLevel_get(constructs)
        assert top[result.tokens[0].uid].kind == "table"

    def test_bare_list_marker(self):
        """'-' alone is an incomplete list"""
        detector = IncompleteConstructDetector()
        result = IncrementalTokenizer().tokenize("Intro\n\n-")
        constructs = detector.mark(result.tokens, result.checkpoint, True)
        assert [construct.kind for construct in constructs] == ["list"]


class TestScenarios:
    """Streaming behaviour seen through a session"""

    def test_unclosed_bold(self):
        """'Hello **wor' renders literally until the closer arrives"""
        session = streaming_session()
        result = session.append("Hello **wor")
        assert result.html() == "<p>Hello **wor</p>\n"
        assert result.nodes[0].node.provisional is True

        result = session.append("ld**")
        assert result.html() == "<p>Hello <strong>world</strong></p>\n"

    def test_heading_settles(self):
        """Heading split across chunks settles once its line is complete"""
        session = streaming_session()
        result = session.append("# Tit")
        assert result.html() == "<h1>Tit</h1>\n"
        assert result.nodes[0].node.provisional is True

        result = session.append("le\n\nBody")
        assert result.html() == "<h1>Title</h1>\n<p>Body</p>\n"
        assert result.checkpoint.token_count == 1
        heading = result.nodes[0].node
        assert heading.provisional is False
        assert session.tokens[0].attrs["depth"] == 1
        assert session.tokens[0].text == "Title"

        result = session.append("\n\nMore")
        assert result.nodes[0].node is heading

    def test_unclosed_fence_finalizes(self):
        """An open code fence finishes as code when the stream ends"""
        session = streaming_session()
        result = session.append("```js\ncode\n")
        assert 'data-state="loading"' in result.html()
        assert result.nodes[0].node.props["stream_status"] == "loading"

        result = session.set_streaming_state(False)
        token = session.tokens[0]
        assert token.type == TokenKind.CODE
        assert token.attrs["lang"] == "js"
        assert token.text == "code"
        assert 'data-state="done"' in result.html()
        assert 'data-lang="js"' in result.html()
        assert result.nodes[0].node.provisional is False

    def test_link_placeholder_swaps_without_flash(self):
        """Placeholder until ')' arrives, then the real link"""
        session = streaming_session(incomplete_markdown_component_map={"link": "link-loading"})
        source = "See [text](http://a.com)"
        for end in range(len("See ["), len(source)):
            html = session.update(source[:end]).html()
            assert "[text" not in html
            assert "](" not in html
            assert "<link-loading" in html

        result = session.update(source)
        assert result.html() == '<p>See <a href="http://a.com">text</a></p>\n'

    def test_placeholder_listed_in_props(self):
        """Inline placeholders are reported on the node"""
        session = streaming_session(incomplete_markdown_component_map={"link": "link-loading"})
        result = session.append("See [text](http://a.c")
        assert result.html() == '<p>See <link-loading data-kind="link"></link-loading></p>\n'
        assert result.nodes[0].node.props["placeholders"] == ["link-loading"]

    def test_disabled_placeholder_shows_raw(self):
        """With the placeholder disabled the raw text is escaped"""
        session = streaming_session(incomplete_markdown_component_map={"link": ""})
        result = session.append("See [text](http://a.c")
        assert result.html() == "<p>See [text](http://a.c</p>\n"

    def test_partial_table_hidden(self):
        """Table syntax never shows as pipes"""
        session = streaming_session()
        assert "|" not in session.append("| a | b |").html()
        assert session.append("\n|---|---|").html() == ""
        result = session.append("\n| 1 | 2 |")
        assert "<table>" in result.html()
        assert "<td>1</td>" in result.html()

    def test_partial_html_hidden(self):
        """Half a tag renders nothing, then the whole block appears"""
        session = streaming_session()
        assert session.append("<div cla").html() == ""
        result = session.append('ss="x">hi</div>\n')
        assert result.html() == '<div class="x">hi</div>\n'

    def test_partial_html_placeholder(self):
        """A mapped html placeholder replaces the hidden default"""
        session = streaming_session(incomplete_markdown_component_map={"html": "html-loading"})
        result = session.append("<div cla")
        assert result.html() == '<html-loading data-kind="html"></html-loading>'
        assert result.nodes[0].node.placeholder is True

    def test_lone_bang_hidden(self):
        """A trailing '!' waits for the next character"""
        session = streaming_session()
        assert session.append("Wow!").html() == "<p>Wow</p>\n"
        assert session.append(" yes").html() == "<p>Wow! yes</p>\n"
