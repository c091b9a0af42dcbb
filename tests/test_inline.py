"""
Inline lexer tests

Tests emphasis resolution, links, code spans, escapes, breaks and the
incomplete tokens produced at the live end of the stream.
"""

import pytest

from streammark.lib.inline import InlineLexer
from streammark.models.tokens import TokenKind


@pytest.fixture
def lexer():
    return InlineLexer()


def types(tokens):
    return [token.type for token in tokens]


class TestEmphasis:
    """Delimiter runs"""

    def test_strong_and_em(self, lexer):
        """** and * pair up independently"""
        tokens = lexer.lex("**bold** and *em*")
        assert types(tokens) == [TokenKind.STRONG, TokenKind.TEXT, TokenKind.EMPHASIS]
        assert tokens[0].children[0].text == "bold"
        assert tokens[1].text == " and "
        assert tokens[2].children[0].text == "em"

    def test_rule_of_three(self, lexer):
        """*foo**bar**baz* nests strong inside em"""
        tokens = lexer.lex("*foo**bar**baz*")
        assert types(tokens) == [TokenKind.EMPHASIS]
        inner = tokens[0].children
        assert types(inner) == [TokenKind.TEXT, TokenKind.STRONG, TokenKind.TEXT]
        assert inner[1].children[0].text == "bar"

    def test_underscore_inside_word_is_literal(self, lexer):
        """snake_case_name has no emphasis"""
        tokens = lexer.lex("snake_case_name")
        assert types(tokens) == [TokenKind.TEXT]
        assert tokens[0].text == "snake_case_name"

    def test_strikethrough_needs_two_tildes(self, lexer):
        """~~x~~ is del, ~x~ is text"""
        assert types(lexer.lex("~~gone~~")) == [TokenKind.DEL]
        tokens = lexer.lex("~single~")
        assert types(tokens) == [TokenKind.TEXT]
        assert tokens[0].text == "~single~"

    def test_unmatched_opener_is_text(self, lexer):
        """Without a closer the run stays literal"""
        tokens = lexer.lex("Hello **wor")
        assert types(tokens) == [TokenKind.TEXT]
        assert tokens[0].text == "Hello **wor"
        assert tokens[0].provisional is False


class TestLinks:
    """Links, images, autolinks and footnote references"""

    def test_link_with_title(self, lexer):
        """Destination and quoted title"""
        token = lexer.lex('[site](http://a.com "T")')[0]
        assert token.type == TokenKind.LINK
        assert token.attrs["href"] == "http://a.com"
        assert token.attrs["title"] == "T"
        assert token.children[0].text == "site"

    def test_image_alt_is_plain_text(self, lexer):
        """Emphasis in the alt text is flattened"""
        token = lexer.lex("![alt *x*](/i.png)")[0]
        assert token.type == TokenKind.IMAGE
        assert token.text == "alt x"
        assert token.attrs["href"] == "/i.png"

    def test_autolink(self, lexer):
        """<scheme:...> becomes a link"""
        token = lexer.lex("<https://x.io/a>")[0]
        assert token.type == TokenKind.LINK
        assert token.attrs["href"] == "https://x.io/a"
        assert token.attrs["autolink"] is True

    def test_email_autolink(self, lexer):
        """Email autolinks get a mailto: href"""
        token = lexer.lex("<a@b.co>")[0]
        assert token.attrs["href"] == "mailto:a@b.co"

    def test_footnote_reference(self, lexer):
        """[^id] is a footnote reference"""
        tokens = lexer.lex("see [^1]")
        assert tokens[-1].type == TokenKind.FOOTNOTE_REF
        assert tokens[-1].attrs["id"] == "1"

    def test_bracket_without_destination_is_text(self, lexer):
        """[label] followed by text is literal"""
        tokens = lexer.lex("[label] text")
        assert types(tokens) == [TokenKind.TEXT]
        assert tokens[0].text == "[label] text"


class TestCodeEscapesBreaks:
    """Code spans, backslash escapes and line breaks"""

    def test_codespan_strips_one_space(self, lexer):
        """Padding spaces around a backtick are removed"""
        token = lexer.lex("`` a`b ``")[0]
        assert token.type == TokenKind.CODESPAN
        assert token.text == "a`b"

    def test_codespan_protects_emphasis(self, lexer):
        """Stars inside code are literal"""
        tokens = lexer.lex("`*x*`")
        assert types(tokens) == [TokenKind.CODESPAN]
        assert tokens[0].text == "*x*"

    def test_escape(self, lexer):
        """Backslash-escaped punctuation is literal"""
        tokens = lexer.lex("\\*not\\*")
        assert types(tokens) == [TokenKind.ESCAPE, TokenKind.TEXT, TokenKind.ESCAPE]
        assert tokens[0].text == "*"

    def test_hard_break(self, lexer):
        """Two trailing spaces make a hard break"""
        tokens = lexer.lex("a  \nb")
        assert types(tokens) == [TokenKind.TEXT, TokenKind.BR, TokenKind.TEXT]
        assert tokens[0].text == "a"

    def test_soft_break(self, lexer):
        """A plain newline stays in the text"""
        tokens = lexer.lex("a\nb")
        assert types(tokens) == [TokenKind.TEXT]
        assert tokens[0].text == "a\nb"

    def test_inline_html(self, lexer):
        """Complete tags pass through as inline html"""
        tokens = lexer.lex("x <b>y</b>")
        assert types(tokens) == [TokenKind.TEXT, TokenKind.HTML, TokenKind.TEXT, TokenKind.HTML]
        assert tokens[1].attrs["tag"] == "b"
        assert tokens[3].attrs["closing"] is True


class TestTail:
    """Constructs cut off by the end of the stream"""

    def test_unmatched_emphasis_is_provisional(self, lexer):
        """Opener without closer stays text, flagged provisional"""
        tokens = lexer.lex("Hello **wor", tail=True)
        assert types(tokens) == [TokenKind.TEXT]
        assert tokens[0].text == "Hello **wor"
        assert tokens[0].provisional is True

    def test_unclosed_codespan(self, lexer):
        """Open backtick swallows the rest"""
        tokens = lexer.lex("see `code", tail=True)
        assert types(tokens) == [TokenKind.TEXT, TokenKind.INCOMPLETE]
        assert tokens[1].attrs["kind"] == "codespan"
        assert tokens[1].raw == "`code"

    def test_unclosed_codespan_not_tail(self, lexer):
        """Outside the tail an unmatched backtick is literal"""
        tokens = lexer.lex("see `code")
        assert types(tokens) == [TokenKind.TEXT]

    def test_partial_destination(self, lexer):
        """[text](http://a.com without ')'"""
        tokens = lexer.lex("[text](http://a.com", tail=True)
        assert types(tokens) == [TokenKind.INCOMPLETE]
        assert tokens[0].attrs == {"kind": "link"}

    def test_unterminated_label(self, lexer):
        """'![' at the end is an incomplete image"""
        tokens = lexer.lex("look ![", tail=True)
        assert tokens[-1].type == TokenKind.INCOMPLETE
        assert tokens[-1].attrs["kind"] == "image"

    def test_label_at_end_is_ambiguous(self, lexer):
        """[text] could still grow a destination"""
        tokens = lexer.lex("go [text]", tail=True)
        assert tokens[-1].type == TokenKind.INCOMPLETE
        assert tokens[-1].attrs == {"kind": "link", "ambiguous": True}

    def test_trailing_bang(self, lexer):
        """A final '!' may start an image"""
        tokens = lexer.lex("wow!", tail=True)
        assert types(tokens) == [TokenKind.TEXT, TokenKind.INCOMPLETE]
        assert tokens[1].raw == "!"

    def test_partial_html_tag(self, lexer):
        """'<span cla' at the end"""
        tokens = lexer.lex("a <span cla", tail=True)
        assert tokens[-1].type == TokenKind.INCOMPLETE
        assert tokens[-1].attrs["kind"] == "html"

    def test_link_across_lines_is_not_streamed(self, lexer):
        """An open bracket on an earlier line stays literal"""
        tokens = lexer.lex("[a\nb", tail=True)
        assert types(tokens) == [TokenKind.TEXT]


class TestCustomTags:
    """Inline component tags"""

    def test_pair_closes_opener(self):
        """An opener followed by its close tag is closed"""
        tokens = InlineLexer(custom_tags=["Think"]).lex("a <think>b</think> c")
        opener = [token for token in tokens if token.type == TokenKind.HTML][0]
        assert opener.attrs["custom"] is True
        assert opener.attrs["closed"] is True

    def test_open_at_live_end(self):
        """An unmatched opener stays open only in the tail"""
        tokens = InlineLexer(custom_tags=["think"]).lex("a <think>b", tail=True)
        assert tokens[1].attrs["closed"] is False
        tokens = InlineLexer(custom_tags=["think"]).lex("a <think>b")
        assert tokens[1].attrs["closed"] is True

    def test_self_closing(self):
        """<think/> needs no close tag"""
        tokens = InlineLexer(custom_tags=["think"]).lex("a <think/>", tail=True)
        assert tokens[-1].attrs["closed"] is True

    def test_other_tags_untouched(self):
        """Tags outside the set carry no component attrs"""
        tokens = InlineLexer(custom_tags=["think"]).lex("a <span>b</span>")
        assert "custom" not in tokens[1].attrs
