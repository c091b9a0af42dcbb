"""
Inline lexer for streaming markdown

Turns the text of a leaf block (paragraph, heading, table cell, footnote)
into inline tokens. Emphasis, strong emphasis and strikethrough are resolved
with a delimiter stack (left/right flanking runs, rule of three).

When lexing the live tail of the stream, constructs that are opened but not
yet closed at the end of the text are reported as `incomplete` tokens (kind
link, image, html or codespan) instead of being rendered as literal text:
the missing input has simply not arrived yet. Unmatched emphasis openers in
the tail stay literal text but are flagged provisional.
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

from ..models.tokens import Token, TokenKind


ASCII_PUNCTUATION = frozenset('!"#$%&\'()*+,-./:;<=>?@[\\]^_`{|}~')

RE_SPECIAL = re.compile(r'[\\`*_~\[\]!<\n]')
RE_AUTOLINK = re.compile(r'<([A-Za-z][A-Za-z0-9+.-]{1,31}:[^\s<>]*)>')
RE_EMAIL = re.compile(
    r'<([A-Za-z0-9.!#$%&\'*+/=?^_`{|}~-]+@[A-Za-z0-9]'
    r'(?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*)>'
)
RE_HTML_INLINE = re.compile(
    r'<([A-Za-z][A-Za-z0-9-]*)(?:\s+[A-Za-z_:][\w:.-]*'
    r'(?:\s*=\s*(?:[^\s"\'=<>`]+|\'[^\']*\'|"[^"]*"))?)*\s*/?>'
    r'|</([A-Za-z][A-Za-z0-9-]*)\s*>'
    r'|<!--[\s\S]*?-->'
)
RE_HTML_PARTIAL = re.compile(r'</?[A-Za-z][^>\n]*$')
RE_FOOTNOTE_REF = re.compile(r'\[\^([^\]\s]+)\]')
RE_BACKSLASH_ESCAPE = re.compile(r'\\([!-/:-@\[-`{-~])')

# Destination parse ran out of input
PARTIAL = object()


def punctuation_is(ch: str) -> bool:
    if ch in ASCII_PUNCTUATION:
        return True
    return unicodedata.category(ch)[0] in ('P', 'S')


def escapes_resolve(text: str) -> str:
    return RE_BACKSLASH_ESCAPE.sub(r'\1', text)


def incomplete_make(kind: str, raw: str, ambiguous: bool = False) -> Token:
    """
    Token for a construct cut off by the end of the stream

    `ambiguous` marks text that is already valid on its own but may still
    turn into `kind` (a bare `[label]` or a trailing `!`).
    """
    attrs = {'kind': kind}
    if ambiguous:
        attrs['ambiguous'] = True
    return Token(type=TokenKind.INCOMPLETE, raw=raw, text=raw, attrs=attrs, provisional=True)


@dataclass
class _Delimiter:
    """One run of `*`, `_` or `~` waiting to be paired"""
    token: Token
    char: str
    count: int
    length: int
    can_open: bool
    can_close: bool


class InlineLexer:
    """
    Inline tokenizer with extension support

    Rules are tried in order at each position: registered inline extensions,
    backslash escape, code span, emphasis delimiters, footnote reference,
    link/image, autolink, inline HTML, line break, text.
    """

    def __init__(self, registry=None, custom_tags: Iterable[str] = ()) -> None:
        self.registry = registry
        self.custom_tags = frozenset(tag.lower() for tag in custom_tags)

    def lex(self, src: str, tail: bool = False) -> List[Token]:
        """
        Lex inline content.

        Args:
            src: Inline source text
            tail: True when `src` ends at the live end of the stream

        Returns:
            List of inline tokens
        """
        items: List[Token] = []
        delimiters: List[_Delimiter] = []
        pos = 0
        size = len(src)

        while pos < size:
            token = self.extension_try(src, pos)
            if token is not None:
                items.append(token)
                pos += len(token.raw)
                continue

            ch = src[pos]
            if ch == '\\':
                token = self.escape_lex(src, pos)
            elif ch == '`':
                token = self.codespan_lex(src, pos, tail)
            elif ch in '*_~':
                token, delimiter = self.delimiter_lex(src, pos)
                if delimiter is not None:
                    delimiters.append(delimiter)
            elif ch in '[!':
                token = self.link_lex(src, pos, tail)
            elif ch == '<':
                token = self.angle_lex(src, pos, tail)
            elif ch == '\n':
                token = self.newline_lex(items)
            else:
                token = None

            if token is None:
                token = self.text_lex(src, pos)
            items.append(token)
            pos += len(token.raw)

        self.customTags_pair(items, tail)
        self.emphasis_process(items, delimiters)

        if tail:
            for delimiter in delimiters:
                if delimiter.can_open and delimiter.count > 0:
                    delimiter.token.provisional = True

        return self.texts_merge(items)

    def extension_try(self, src: str, pos: int) -> Optional[Token]:
        if self.registry is None:
            return None
        rest = src[pos:]
        for spec in self.registry.inlineRules_get():
            if spec.start is not None and self.registry.start_run(spec, rest) != 0:
                continue
            token = self.registry.tokenizer_run(spec, rest)
            if token is not None:
                return token
        return None

    def text_end(self, src: str, pos: int) -> int:
        """End of the plain text run starting at pos"""
        match = RE_SPECIAL.search(src, pos + 1)
        end = match.start() if match else len(src)
        if self.registry is not None:
            rest = src[pos + 1:]
            for spec in self.registry.inlineRules_get():
                if spec.start is None:
                    continue
                hint = self.registry.start_run(spec, rest)
                if hint is not None and hint >= 0:
                    end = min(end, pos + 1 + hint)
        return end

    def text_lex(self, src: str, pos: int) -> Token:
        end = self.text_end(src, pos)
        raw = src[pos:end]
        return Token(type=TokenKind.TEXT, raw=raw, text=raw)

    def escape_lex(self, src: str, pos: int) -> Optional[Token]:
        if pos + 1 >= len(src):
            return None
        following = src[pos + 1]
        if following in ASCII_PUNCTUATION:
            return Token(type=TokenKind.ESCAPE, raw=src[pos:pos + 2], text=following)
        if following == '\n':
            return Token(type=TokenKind.BR, raw=src[pos:pos + 2])
        return None

    def codespan_lex(self, src: str, pos: int, tail: bool) -> Token:
        run = pos
        while run < len(src) and src[run] == '`':
            run += 1
        fence = src[pos:run]
        closer = re.compile(r'(?<!`)' + fence + r'(?!`)')
        match = closer.search(src, run)
        if match is None:
            if tail:
                return incomplete_make('codespan', src[pos:])
            return Token(type=TokenKind.TEXT, raw=fence, text=fence)

        content = src[run:match.start()].replace('\n', ' ')
        if len(content) >= 2 and content[0] == ' ' and content[-1] == ' ' and content.strip():
            content = content[1:-1]
        return Token(type=TokenKind.CODESPAN, raw=src[pos:match.end()], text=content)

    def delimiter_lex(self, src: str, pos: int) -> Tuple[Token, Optional[_Delimiter]]:
        ch = src[pos]
        end = pos
        while end < len(src) and src[end] == ch:
            end += 1
        raw = src[pos:end]
        token = Token(type=TokenKind.TEXT, raw=raw, text=raw)
        length = end - pos
        if ch == '~' and length != 2:
            return token, None

        before = src[pos - 1] if pos > 0 else ' '
        after = src[end] if end < len(src) else ' '
        left = not after.isspace() and (
            not punctuation_is(after) or before.isspace() or punctuation_is(before))
        right = not before.isspace() and (
            not punctuation_is(before) or after.isspace() or punctuation_is(after))

        if ch == '_':
            can_open = left and (not right or punctuation_is(before))
            can_close = right and (not left or punctuation_is(after))
        else:
            can_open = left
            can_close = right

        return token, _Delimiter(token, ch, length, length, can_open, can_close)

    def link_lex(self, src: str, pos: int, tail: bool) -> Optional[Token]:
        """
        Footnote reference, link or image starting at pos.

        Returns None when the brackets turn out to be plain text.
        """
        size = len(src)
        image = src[pos] == '!'
        kind = 'image' if image else 'link'
        rest = src[pos:]
        streamable = tail and '\n' not in rest

        if image:
            if pos + 1 >= size:
                return incomplete_make('image', rest, ambiguous=True) if tail else None
            if src[pos + 1] != '[':
                return None
            opener = pos + 1
        else:
            opener = pos
            footnote = RE_FOOTNOTE_REF.match(src, pos)
            if footnote:
                return Token(type=TokenKind.FOOTNOTE_REF, raw=footnote.group(0),
                             text=footnote.group(1), attrs={'id': footnote.group(1)})

        closer = self.bracket_match(src, opener)
        if closer < 0:
            return incomplete_make(kind, rest) if streamable else None

        label = src[opener + 1:closer]
        after = closer + 1
        if after >= size:
            # "[label]" could still grow a "(destination)"
            return incomplete_make(kind, rest, ambiguous=True) if streamable else None
        if src[after] != '(':
            return None

        destination = self.destination_parse(src, after)
        if destination is PARTIAL:
            return incomplete_make(kind, rest) if streamable else None
        if destination is None:
            return None

        href, title, end = destination
        raw = src[pos:end]
        attrs = {'href': escapes_resolve(href), 'title': title}
        if image:
            alt = ''.join(child.plainText() for child in self.lex(label))
            return Token(type=TokenKind.IMAGE, raw=raw, text=alt, attrs=attrs)
        return Token(type=TokenKind.LINK, raw=raw, text=label, children=self.lex(label), attrs=attrs)

    @staticmethod
    def bracket_match(src: str, opener: int) -> int:
        """Index of the `]` matching src[opener], or -1"""
        depth = 0
        index = opener
        while index < len(src):
            ch = src[index]
            if ch == '\\':
                index += 2
                continue
            if ch == '[':
                depth += 1
            elif ch == ']':
                depth -= 1
                if depth == 0:
                    return index
            index += 1
        return -1

    @staticmethod
    def destination_parse(src: str, paren: int) -> Union[None, object, Tuple[str, Optional[str], int]]:
        """
        Parse `(destination "title")` starting at the opening parenthesis.

        Returns:
            (href, title, end) on success, PARTIAL when the text ends before
            the closing parenthesis, None when the syntax is invalid
        """
        size = len(src)
        index = paren + 1
        while index < size and src[index] in ' \t\n':
            index += 1
        if index >= size:
            return PARTIAL

        if src[index] == '<':
            close = src.find('>', index)
            if close < 0:
                return PARTIAL if '\n' not in src[index:] else None
            href = src[index + 1:close]
            index = close + 1
        else:
            start = index
            depth = 0
            while index < size:
                ch = src[index]
                if ch == '\\' and index + 1 < size:
                    index += 2
                    continue
                if ch.isspace():
                    break
                if ch == '(':
                    depth += 1
                elif ch == ')':
                    if depth == 0:
                        break
                    depth -= 1
                index += 1
            if index >= size:
                return PARTIAL
            href = src[start:index]

        while index < size and src[index] in ' \t\n':
            index += 1
        if index >= size:
            return PARTIAL

        title = None
        if src[index] in '"\'(':
            quote = ')' if src[index] == '(' else src[index]
            close = index + 1
            while close < size and src[close] != quote:
                close += 2 if src[close] == '\\' else 1
            if close >= size:
                return PARTIAL
            title = escapes_resolve(src[index + 1:close])
            index = close + 1
            while index < size and src[index] in ' \t\n':
                index += 1
            if index >= size:
                return PARTIAL

        if src[index] != ')':
            return None
        return href, title, index + 1

    def angle_lex(self, src: str, pos: int, tail: bool) -> Optional[Token]:
        match = RE_AUTOLINK.match(src, pos)
        if match:
            url = match.group(1)
            return Token(type=TokenKind.LINK, raw=match.group(0), text=url,
                         children=[Token(type=TokenKind.TEXT, raw=url, text=url)],
                         attrs={'href': url, 'title': None, 'autolink': True})
        match = RE_EMAIL.match(src, pos)
        if match:
            email = match.group(1)
            return Token(type=TokenKind.LINK, raw=match.group(0), text=email,
                         children=[Token(type=TokenKind.TEXT, raw=email, text=email)],
                         attrs={'href': 'mailto:' + email, 'title': None, 'autolink': True})
        match = RE_HTML_INLINE.match(src, pos)
        if match:
            raw = match.group(0)
            tag = (match.group(1) or match.group(2) or '').lower()
            attrs = {'tag': tag, 'closing': raw.startswith('</'), 'inline': True}
            if tag in self.custom_tags:
                attrs['custom'] = True
                attrs['closed'] = attrs['closing'] or raw.endswith('/>')
            return Token(type=TokenKind.HTML, raw=raw, text=raw, attrs=attrs)
        if tail and RE_HTML_PARTIAL.match(src, pos):
            return incomplete_make('html', src[pos:])
        return None

    @staticmethod
    def customTags_pair(items: List[Token], tail: bool) -> None:
        """
        Mark inline custom component tags closed when their close tag follows.

        An opener left unmatched stays open only at the live end of the
        stream; anywhere else it can no longer be closed.
        """
        open_tags: List[Token] = []
        for token in items:
            if token.type != TokenKind.HTML or not token.attrs.get('custom'):
                continue
            if not token.attrs['closing']:
                if not token.attrs['closed']:
                    open_tags.append(token)
                continue
            for index in range(len(open_tags) - 1, -1, -1):
                if open_tags[index].attrs['tag'] == token.attrs['tag']:
                    open_tags.pop(index).attrs['closed'] = True
                    break
        if not tail:
            for token in open_tags:
                token.attrs['closed'] = True

    def newline_lex(self, items: List[Token]) -> Token:
        """Soft break, or hard break when the line ended with two spaces"""
        previous = items[-1] if items else None
        if previous is not None and previous.type == TokenKind.TEXT:
            stripped = previous.text.rstrip(' ')
            hard = len(previous.text) - len(stripped) >= 2
            previous.text = stripped
            if hard:
                return Token(type=TokenKind.BR, raw='\n')
        return Token(type=TokenKind.TEXT, raw='\n', text='\n')

    @staticmethod
    def opener_find(delimiters: List[_Delimiter], closer_index: int) -> int:
        closer = delimiters[closer_index]
        for index in range(closer_index - 1, -1, -1):
            opener = delimiters[index]
            if opener.char != closer.char or not opener.can_open or opener.count == 0:
                continue
            if closer.char == '~':
                if opener.count == closer.count:
                    return index
                continue
            both = opener.can_close or closer.can_open
            if both and (opener.length + closer.length) % 3 == 0 \
                    and not (opener.length % 3 == 0 and closer.length % 3 == 0):
                continue
            return index
        return -1

    @staticmethod
    def item_index(items: List[Token], token: Token) -> int:
        for index, item in enumerate(items):
            if item is token:
                return index
        raise ValueError("delimiter token not in item list")

    def emphasis_process(self, items: List[Token], delimiters: List[_Delimiter]) -> None:
        """Pair delimiter runs into em/strong/del tokens, in place"""
        closer_index = 0
        while closer_index < len(delimiters):
            closer = delimiters[closer_index]
            if not closer.can_close or closer.count == 0:
                closer_index += 1
                continue
            opener_index = self.opener_find(delimiters, closer_index)
            if opener_index < 0:
                closer_index += 1
                continue

            opener = delimiters[opener_index]
            if closer.char == '~':
                used, kind = 2, TokenKind.DEL
            elif opener.count >= 2 and closer.count >= 2:
                used, kind = 2, TokenKind.STRONG
            else:
                used, kind = 1, TokenKind.EMPHASIS

            start = self.item_index(items, opener.token)
            end = self.item_index(items, closer.token)
            inner = items[start + 1:end]
            marks = closer.char * used
            inner_raw = ''.join(token.raw for token in inner)
            node = Token(type=kind, raw=marks + inner_raw + marks, text=inner_raw,
                         children=self.texts_merge(inner))
            items[start + 1:end] = [node]

            opener.count -= used
            opener.token.raw = opener.token.raw[:opener.count]
            opener.token.text = opener.token.raw
            closer.count -= used
            closer.token.raw = closer.token.raw[used:]
            closer.token.text = closer.token.raw

            del delimiters[opener_index + 1:closer_index]
            closer_index = opener_index + 1
            if opener.count == 0:
                items.pop(self.item_index(items, opener.token))
                del delimiters[opener_index]
                closer_index -= 1
            if closer.count == 0:
                items.pop(self.item_index(items, closer.token))
                del delimiters[closer_index]

    @staticmethod
    def texts_merge(items: List[Token]) -> List[Token]:
        """Join adjacent plain text tokens"""
        merged: List[Token] = []
        for token in items:
            if merged and token.type == TokenKind.TEXT and merged[-1].type == TokenKind.TEXT:
                previous = merged[-1]
                merged[-1] = Token(
                    type=TokenKind.TEXT,
                    raw=previous.raw + token.raw,
                    text=previous.text + token.text,
                    provisional=previous.provisional or token.provisional,
                )
            else:
                merged.append(token)
        return merged
