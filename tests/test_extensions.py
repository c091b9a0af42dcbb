"""
Extension registry tests

Tests registration validation, precedence over built-ins, failure isolation,
the walk hook and the bundled LaTeX extensions.
"""

import re

import pytest

from streammark import ConfigError, ExtensionError, ExtensionSpec, create_session, latex_extensions
from streammark.lib.extensions import ExtensionRegistry, token_coerce
from streammark.models.extensions import ExtensionLevel
from streammark.models.tokens import Token


RE_MENTION = re.compile(r'^@(\w+)')


def mention_tokenize(src):
    match = RE_MENTION.match(src)
    if not match:
        return None
    return {"type": "mention", "raw": match.group(0), "text": match.group(1)}


def mention_spec(**overrides):
    fields = dict(
        name="mention",
        level="inline",
        start=lambda src: src.find("@") if "@" in src else None,
        tokenizer=mention_tokenize,
        renderer=lambda token: f'<span class="mention">{token.text}</span>',
    )
    fields.update(overrides)
    return ExtensionSpec(**fields)


NOTE_BLOCK = re.compile(r'^:::note\n([\s\S]*?)\n:::\n')


def note_spec():
    def tokenize(src):
        match = NOTE_BLOCK.match(src)
        if not match:
            return None
        return Token(type="note", raw=match.group(0), text=match.group(1))

    return ExtensionSpec(
        name="note",
        level=ExtensionLevel.BLOCK,
        start=lambda src: 0 if src.startswith(":::") else None,
        tokenizer=tokenize,
        renderer=lambda token: f'<aside>{token.text}</aside>\n',
    )


class TestRegistration:
    """Validation at registration time"""

    def test_register_and_lookup(self):
        """Registered specs are found by name and level"""
        registry = ExtensionRegistry()
        registry.register(mention_spec())
        assert registry.get("mention") is not None
        assert registry.inlineRules_get()[0].name == "mention"
        assert registry.blockRules_get() == []

    def test_string_level_is_normalized(self):
        """'inline' becomes ExtensionLevel.INLINE"""
        registry = ExtensionRegistry()
        spec = mention_spec()
        registry.register(spec)
        assert spec.level is ExtensionLevel.INLINE

    def test_duplicate_name(self):
        """Two extensions cannot share a name"""
        registry = ExtensionRegistry()
        registry.register(mention_spec())
        with pytest.raises(ConfigError):
            registry.register(mention_spec())

    def test_invalid_level(self):
        """Level must be block or inline"""
        with pytest.raises(ConfigError):
            create_session(extensions=[mention_spec(level="sideways")])

    def test_neither_tokenizer_nor_renderer(self):
        """An extension has to do something"""
        with pytest.raises(ConfigError):
            create_session(extensions=[ExtensionSpec(name="empty")])

    def test_duplicate_in_session_config(self):
        """Duplicates are rejected before the session exists"""
        with pytest.raises(ConfigError):
            create_session(extensions=[mention_spec(), mention_spec()])

    def test_token_coerce_mapping(self):
        """Plain mappings become tokens; extra keys land in attrs"""
        token = token_coerce({"type": "x", "raw": "@a", "level": 2})
        assert token.type == "x"
        assert token.text == "@a"
        assert token.attrs == {"level": 2}


class TestPrecedence:
    """Extensions run before built-in rules and renderers"""

    def test_inline_extension(self):
        """Mentions are tokenized and rendered by the extension"""
        session = create_session(extensions=[mention_spec()])
        result = session.append("hi @bob!")
        assert result.html() == '<p>hi <span class="mention">bob</span>!</p>\n'

    def test_renderer_only_extension_overrides_builtin(self):
        """An extension named like a built-in kind replaces its renderer"""
        spec = ExtensionSpec(name="heading", level="block",
                             renderer=lambda token: f'<div class="h">{token.text}</div>\n')
        override_calls = []
        session = create_session(
            extensions=[spec],
            renderer={"heading": lambda token, renderer: override_calls.append(token) or "x"},
        )
        assert session.append("# Hi").html() == '<div class="h">Hi</div>\n'
        assert override_calls == []

    def test_block_extension_settles(self):
        """A block extension token settles once its raw ends with a newline"""
        session = create_session(extensions=[note_spec()], streaming={"has_next_chunk": True})
        result = session.append(":::note\nhi\n")
        assert session.tokens[0].type == "paragraph"
        assert result.checkpoint.token_count == 0

        result = session.append(":::\n")
        assert session.tokens[0].type == "note"
        assert result.checkpoint.token_count == 1
        assert result.html() == "<aside>hi</aside>\n"
        assert result.nodes[0].node.component == "note"

    def test_first_registered_wins(self):
        """Ties go to the earlier registration"""
        shout = mention_spec(name="shout", renderer=lambda token: "<b>!</b>")
        tokenizer = shout.tokenizer
        shout.tokenizer = lambda src: dict(tokenizer(src), type="shout") if tokenizer(src) else None
        session = create_session(extensions=[shout, mention_spec()])
        assert session.append("@bob").html() == "<p><b>!</b></p>\n"


class TestFailureIsolation:
    """Throwing hooks never break the render"""

    def test_renderer_failure_falls_back_to_raw(self):
        """The failing token renders as escaped source"""
        errors = []

        def broken(token):
            raise RuntimeError("boom")

        session = create_session(extensions=[mention_spec(renderer=broken)], on_error=errors.append)
        result = session.append("hi @bob & co")
        assert result.html() == "<p>hi @bob &amp; co</p>\n"
        assert len(errors) == 1
        assert isinstance(errors[0], ExtensionError)
        assert errors[0].extension == "mention"
        assert errors[0].phase == "render"
        assert isinstance(errors[0].__cause__, RuntimeError)

    def test_tokenizer_failure_uses_builtin(self):
        """A throwing tokenizer is skipped"""
        errors = []

        def broken(src):
            raise ValueError("bad input")

        session = create_session(extensions=[mention_spec(tokenizer=broken)], on_error=errors.append)
        assert session.append("hi @bob").html() == "<p>hi @bob</p>\n"
        assert [error.phase for error in errors] == ["tokenize"]

    def test_tokenizer_must_consume_prefix(self):
        """A token whose raw is not a prefix of the input is rejected"""
        errors = []
        spec = mention_spec(tokenizer=lambda src: {"type": "mention", "raw": "nope"})
        session = create_session(extensions=[spec], on_error=errors.append)
        assert session.append("@bob").html() == "<p>@bob</p>\n"
        assert errors[0].phase == "tokenize"

    def test_override_failure(self):
        """Renderer overrides are isolated too"""
        errors = []

        def broken(token, renderer):
            raise KeyError("depth")

        session = create_session(renderer={"heading": broken}, on_error=errors.append)
        assert session.append("# Title").html() == "# Title"
        assert errors[0].extension == "renderer:heading"

    def test_on_error_failure_is_contained(self):
        """A throwing error channel does not escape"""
        def noisy(error):
            raise RuntimeError("channel down")

        def broken(token):
            raise RuntimeError("boom")

        session = create_session(extensions=[mention_spec(renderer=broken)], on_error=noisy)
        assert session.append("@bob").html() == "<p>@bob</p>\n"
        assert len(session.registry.errors) == 1


class TestWalkHook:
    """walk_tokens runs on a private copy"""

    def test_walk_modifies_rendered_copy(self):
        """Changes show in the output but not in the tokenizer's tokens"""
        def shout(token):
            if token.type == "text":
                token.text = token.text.upper()

        session = create_session(walk_tokens=shout)
        assert session.append("hello").html() == "<p>HELLO</p>\n"
        assert session.tokens[0].children[0].text == "hello"

    def test_walk_mutation_invalidates_cached_node(self):
        """A hook that starts changing a settled token re-renders it"""
        shouting = []

        def shout(token):
            if shouting and token.type == "text":
                token.text = token.text.upper()

        session = create_session(walk_tokens=shout, streaming={"has_next_chunk": True})
        first = session.append("hello\n\n").nodes[0].node
        assert session.checkpoint.token_count == 1
        assert first.html == "<p>hello</p>\n"
        assert session.append("more").nodes[0].node is first

        shouting.append(True)
        changed = session.append(" text").nodes[0].node
        assert changed.html == "<p>HELLO</p>\n"
        assert session.append("!").nodes[0].node is changed

    def test_walk_failure_isolated(self):
        """A failure on one token does not stop the walk"""
        errors = []
        seen = []

        def picky(token):
            seen.append(token.type)
            if token.type == "heading":
                raise ValueError("no headings")

        session = create_session(walk_tokens=picky, on_error=errors.append)
        result = session.append("# A\n\nbody\n")
        assert "<p>body</p>" in result.html()
        assert "paragraph" in seen
        assert [(error.extension, error.phase) for error in errors] == [("walkTokens", "walk")]


class TestLatex:
    """Bundled math extensions"""

    def test_inline_math(self):
        """$...$ inside a paragraph"""
        session = create_session(extensions=latex_extensions())
        html = session.append("Euler: $e^{i\\pi}$ ok").html()
        assert html == '<p>Euler: <span class="inline-katex">e^{i\\pi}</span> ok</p>\n'

    def test_block_math(self):
        """$$ fences on their own lines"""
        session = create_session(extensions=latex_extensions())
        html = session.append("$$\nx < 2\n$$\n").html()
        assert html == '<div class="katex-block">x &lt; 2</div>\n'

    def test_align_replaced(self):
        """{align*} is rewritten to {aligned}"""
        session = create_session(extensions=latex_extensions())
        session.append("$$\n\\begin{align*}a\\end{align*}\n$$\n")
        assert session.tokens[0].text == "\\begin{aligned}a\\end{aligned}"

    def test_align_kept_when_disabled(self):
        """replace_align_start=False leaves the source alone"""
        session = create_session(extensions=latex_extensions(replace_align_start=False))
        session.append("$\\begin{align*}a\\end{align*}$")
        math = session.tokens[0].children[0]
        assert math.type == "inlineKatex"
        assert "{align*}" in math.text

    def test_open_block_math_waits(self):
        """An unterminated $$ block keeps the tail unsettled"""
        session = create_session(extensions=latex_extensions(), streaming={"has_next_chunk": True})
        result = session.append("$$\nx\n")
        assert result.checkpoint.token_count == 0
        result = session.append("$$\n")
        assert session.tokens[0].type == "blockKatex"
        assert result.checkpoint.token_count == 1
