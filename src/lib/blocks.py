"""
Block-level lexer for streaming markdown

Splits markdown into top-level block tokens, line by line, trying rules in
priority order: registered block extensions first, then the built-in rules
(space, thematic break, ATX heading, fenced code, indented code, blockquote,
list, table, HTML block, footnote definition, paragraph). First match wins.

Every block token is reported together with a `closed` flag. A token is
closed when every line the lexer had to look at to decide its extent was a
complete line (terminated by a newline) and the decision did not depend on
reaching the end of the buffer. Appending text can only change the last,
incomplete line and add new lines, so a closed token keeps its shape no
matter what arrives next.

Example:
    >>> lexer = BlockLexer()
    >>> [(t.type, closed) for t, closed in lexer.blocks_iter("# Hi\\n\\nBody", 0)]
    [('heading', True), ('space', False), ('paragraph', False)]
"""

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

from ..models.tokens import Token, TokenKind


RE_HR = re.compile(r'^ {0,3}(?:(?:\*[ \t]*){3,}|(?:-[ \t]*){3,}|(?:_[ \t]*){3,})$')
RE_ATX = re.compile(r'^ {0,3}(#{1,6})(?=[ \t]|$)(.*)$')
RE_ATX_CLOSE = re.compile(r'(?:^|[ \t]+)#+[ \t]*$')
RE_FENCE_OPEN = re.compile(r'^( {0,3})(`{3,}|~{3,})(.*)$')
RE_FENCE_CLOSE = re.compile(r'^ {0,3}(`{3,}|~{3,})[ \t]*$')
RE_QUOTE = re.compile(r'^ {0,3}> ?(.*)$')
RE_LIST = re.compile(r'^( {0,3})([*+-]|\d{1,9}[.)])(?=[ \t]|$)([ \t]*)(.*)$')
RE_SETEXT = re.compile(r'^ {0,3}(=+|-+)[ \t]*$')
RE_HTML_OPEN = re.compile(r'^ {0,3}<(/?)([A-Za-z][A-Za-z0-9-]*)(?=[\s/>]|$)')
RE_HTML_COMMENT = re.compile(r'^ {0,3}<!--')
RE_HTML_TAG_LINE = re.compile(r'^ {0,3}</?[A-Za-z][A-Za-z0-9-]*(?:\s[^<>]*)?/?>[ \t]*$')
RE_FOOTNOTE = re.compile(r'^ {0,3}\[\^([^\]\s]+)\]:[ \t]?(.*)$')
RE_TASK = re.compile(r'^\[([ xX])\][ \t]+')
RE_TABLE_DELIM_CELL = re.compile(r'^:?-+:?$')
RE_CELL_SPLIT = re.compile(r'(?<!\\)\|')

RAW_TAGS = frozenset({'pre', 'script', 'style', 'textarea'})

BLOCK_TAGS = frozenset({
    'address', 'article', 'aside', 'base', 'basefont', 'blockquote', 'body',
    'caption', 'center', 'col', 'colgroup', 'dd', 'details', 'dialog', 'dir',
    'div', 'dl', 'dt', 'fieldset', 'figcaption', 'figure', 'footer', 'form',
    'frame', 'frameset', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'head', 'header',
    'hr', 'html', 'iframe', 'legend', 'li', 'link', 'main', 'menu', 'menuitem',
    'nav', 'noframes', 'ol', 'optgroup', 'option', 'p', 'param', 'search',
    'section', 'summary', 'table', 'tbody', 'td', 'tfoot', 'th', 'thead',
    'title', 'tr', 'track', 'ul',
})


@dataclass
class Line:
    """
    One physical line of the buffer

    Attributes:
        text: Line content without the newline (and without a trailing \\r)
        start: Offset of the first character in the buffer
        end: Offset just past the newline (or buffer end)
        complete: True when the line is terminated by a newline
    """
    text: str
    start: int
    end: int
    complete: bool


def lines_split(src: str, offset: int = 0) -> List[Line]:
    """Split src[offset:] into Line records"""
    lines: List[Line] = []
    pos = offset
    size = len(src)
    while pos < size:
        newline = src.find('\n', pos)
        if newline == -1:
            lines.append(Line(src[pos:].rstrip('\r'), pos, size, False))
            break
        lines.append(Line(src[pos:newline].rstrip('\r'), pos, newline + 1, True))
        pos = newline + 1
    return lines


def indent_width(text: str) -> int:
    """Leading whitespace width, tabs advancing to the next multiple of 4"""
    width = 0
    for ch in text:
        if ch == ' ':
            width += 1
        elif ch == '\t':
            width += 4 - (width % 4)
        else:
            break
    return width


def indent_strip(text: str, columns: int) -> str:
    """Remove up to `columns` columns of leading whitespace"""
    width = 0
    index = 0
    while index < len(text) and width < columns:
        ch = text[index]
        if ch == ' ':
            width += 1
        elif ch == '\t':
            advance = 4 - (width % 4)
            if width + advance > columns:
                return ' ' * (width + advance - columns) + text[index + 1:]
            width += advance
        else:
            break
        index += 1
    return text[index:]


def blank_is(text: str) -> bool:
    return not text.strip()


def cells_split(text: str) -> List[str]:
    """Split a table row into cell strings, honoring escaped pipes"""
    row = text.strip()
    if row.startswith('|'):
        row = row[1:]
    if row.endswith('|') and not row.endswith('\\|'):
        row = row[:-1]
    return [cell.strip() for cell in RE_CELL_SPLIT.split(row)]


class LineCursor:
    """
    Line accessor that remembers how far a decision looked ahead

    All rules tried at one block start share a cursor, including rules that
    end up not matching: their lookahead influenced which rule won.
    """

    def __init__(self, lines: List[Line]) -> None:
        self.lines = lines
        self.furthest = -1
        self.eof = False

    def peek(self, index: int) -> Optional[Line]:
        if index >= len(self.lines):
            self.eof = True
            return None
        if index > self.furthest:
            self.furthest = index
        return self.lines[index]

    def eof_touch(self) -> None:
        """Mark the decision as dependent on everything up to the buffer end"""
        self.eof = True

    def decided(self) -> bool:
        if self.eof:
            return False
        if self.furthest < 0:
            return True
        return all(self.lines[index].complete for index in range(self.furthest + 1))


class BlockLexer:
    """
    Line-oriented block lexer

    Handles:
    - Extension block rules (registration order, before built-ins)
    - ATX and setext headings, thematic breaks
    - Fenced code (unterminated fences run to the end of the buffer)
    - Indented code, blockquotes, nested lists, GFM tables
    - HTML blocks, including registered custom component tags that span
      blank lines until their matching close tag
    - Footnote definitions and paragraphs
    """

    def __init__(self, registry=None, custom_tags: Iterable[str] = ()) -> None:
        """
        Initialize the block lexer

        Args:
            registry: Optional ExtensionRegistry supplying block extensions
            custom_tags: Tag names rendered as custom components
        """
        self.registry = registry
        self.custom_tags = frozenset(tag.lower() for tag in custom_tags)

    def blocks_iter(self, src: str, offset: int = 0) -> Iterator[Tuple[Token, bool]]:
        """
        Lex src[offset:] into top-level block tokens.

        Args:
            src: Whole document buffer
            offset: Block boundary to start from

        Yields:
            (token, closed) pairs in document order
        """
        lines = lines_split(src, offset)
        index = 0
        while index < len(lines):
            cursor = LineCursor(lines)
            token, next_index, closed_override = self.block_next(src, cursor, index)
            closed = cursor.decided() if closed_override is None else closed_override
            yield token, closed

            if next_index is None:
                # Extension consumed part of a line; restart line splitting there
                consumed_to = lines[index].start + len(token.raw)
                lines = lines_split(src, consumed_to)
                index = 0
            else:
                index = next_index

    def tokens_lex(self, src: str) -> List[Token]:
        """Lex a nested block (list item, blockquote body); closedness ignored"""
        return [token for token, _ in self.blocks_iter(src, 0)]

    def block_next(self, src: str, cursor: LineCursor, index: int
                   ) -> Tuple[Token, Optional[int], Optional[bool]]:
        """
        Produce the token starting at line `index`.

        Returns:
            (token, index of the next line or None for a mid-line end,
             closed override or None to use the cursor's verdict)
        """
        extension = self.extension_try(src, cursor, index)
        if extension is not None:
            return extension

        rules = (
            self.space_lex,
            self.hr_lex,
            self.heading_lex,
            self.fence_lex,
            self.indentedCode_lex,
            self.blockquote_lex,
            self.list_lex,
            self.table_lex,
            self.html_lex,
            self.footnote_lex,
        )
        for rule in rules:
            result = rule(src, cursor, index)
            if result is not None:
                token, next_index = result
                return token, next_index, None

        token, next_index = self.paragraph_lex(src, cursor, index)
        return token, next_index, None

    @staticmethod
    def raw_slice(src: str, cursor: LineCursor, first: int, last: int) -> str:
        """Source text of lines first..last-1"""
        return src[cursor.lines[first].start:cursor.lines[last - 1].end]

    def extension_try(self, src: str, cursor: LineCursor, index: int
                      ) -> Optional[Tuple[Token, Optional[int], Optional[bool]]]:
        """Try registered block extensions at line `index`"""
        if self.registry is None:
            return None

        line = cursor.peek(index)
        remaining = src[line.start:]
        for spec in self.registry.blockRules_get():
            if spec.start is not None:
                hint = self.registry.start_run(spec, remaining)
                if hint != 0:
                    continue
            token = self.registry.tokenizer_run(spec, remaining)
            if token is None:
                # Could still match once more text arrives
                cursor.eof_touch()
                continue

            end = line.start + len(token.raw)
            closed = token.raw.endswith('\n') and cursor.decided()
            for next_index in range(index, len(cursor.lines)):
                if cursor.lines[next_index].start == end:
                    return token, next_index, closed
            if end >= len(src):
                return token, len(cursor.lines), closed
            return token, None, closed
        return None

    def interrupts(self, src: str, cursor: LineCursor, index: int) -> bool:
        """
        Does line `index` start a block that ends a running paragraph?
        """
        line = cursor.peek(index)
        text = line.text
        if RE_HR.match(text) or RE_ATX.match(text) or RE_QUOTE.match(text):
            return True
        fence = RE_FENCE_OPEN.match(text)
        if fence and not (fence.group(2)[0] == '`' and '`' in fence.group(3)):
            return True
        item = RE_LIST.match(text)
        if item and item.group(4).strip():
            marker = item.group(2)
            if marker[-1] not in '.)' or int(marker[:-1]) == 1:
                return True
        if RE_HTML_COMMENT.match(text):
            return True
        html = RE_HTML_OPEN.match(text)
        if html:
            tag = html.group(2).lower()
            if tag in BLOCK_TAGS or tag in RAW_TAGS or tag in self.custom_tags:
                return True
        if RE_FOOTNOTE.match(text):
            return True
        if '|' in text and self.tableHeader_is(cursor, index):
            return True
        if self.registry is not None:
            remaining = src[line.start:]
            for spec in self.registry.blockRules_get():
                if spec.start is not None and self.registry.start_run(spec, remaining) == 0:
                    return True
        return False

    def tableHeader_is(self, cursor: LineCursor, index: int) -> bool:
        """True when line `index` and the next line form a table header"""
        head = cursor.peek(index)
        delimiter = cursor.peek(index + 1)
        if head is None or delimiter is None or '|' not in head.text:
            return False
        header_cells = cells_split(head.text)
        delimiter_cells = cells_split(delimiter.text)
        if len(header_cells) != len(delimiter_cells):
            return False
        return all(RE_TABLE_DELIM_CELL.match(cell) for cell in delimiter_cells)

    def space_lex(self, src, cursor, index):
        line = cursor.peek(index)
        if not blank_is(line.text):
            return None
        end = index + 1
        while True:
            nxt = cursor.peek(end)
            if nxt is None or not blank_is(nxt.text):
                break
            end += 1
        raw = self.raw_slice(src, cursor, index, end)
        return Token(type=TokenKind.SPACE, raw=raw), end

    def hr_lex(self, src, cursor, index):
        line = cursor.peek(index)
        if not RE_HR.match(line.text):
            return None
        return Token(type=TokenKind.HR, raw=self.raw_slice(src, cursor, index, index + 1)), index + 1

    def heading_lex(self, src, cursor, index):
        line = cursor.peek(index)
        match = RE_ATX.match(line.text)
        if not match:
            return None
        text = RE_ATX_CLOSE.sub('', match.group(2).strip()).strip()
        token = Token(
            type=TokenKind.HEADING,
            raw=self.raw_slice(src, cursor, index, index + 1),
            text=text,
            attrs={'depth': len(match.group(1))},
        )
        return token, index + 1

    def fence_lex(self, src, cursor, index):
        line = cursor.peek(index)
        match = RE_FENCE_OPEN.match(line.text)
        if not match:
            return None
        fence = match.group(2)
        info = match.group(3).strip()
        if fence[0] == '`' and '`' in info:
            return None

        indent = len(match.group(1))
        body: List[str] = []
        closed = False
        end = index + 1
        while True:
            nxt = cursor.peek(end)
            if nxt is None:
                break
            closing = RE_FENCE_CLOSE.match(nxt.text)
            end += 1
            if closing and closing.group(1)[0] == fence[0] and len(closing.group(1)) >= len(fence):
                closed = True
                break
            body.append(indent_strip(nxt.text, indent))

        token = Token(
            type=TokenKind.CODE,
            raw=self.raw_slice(src, cursor, index, end),
            text='\n'.join(body),
            attrs={
                'lang': info.split()[0] if info else '',
                'info': info,
                'fence': fence,
                'closed': closed,
            },
        )
        return token, end

    def indentedCode_lex(self, src, cursor, index):
        line = cursor.peek(index)
        if blank_is(line.text) or indent_width(line.text) < 4:
            return None
        body = [indent_strip(line.text, 4)]
        end = index + 1
        last_content = index + 1
        while True:
            nxt = cursor.peek(end)
            if nxt is None:
                break
            if blank_is(nxt.text):
                body.append(indent_strip(nxt.text, 4))
            elif indent_width(nxt.text) >= 4:
                body.append(indent_strip(nxt.text, 4))
                last_content = end + 1
            else:
                break
            end += 1
        body = body[:last_content - index]
        token = Token(
            type=TokenKind.CODE,
            raw=self.raw_slice(src, cursor, index, last_content),
            text='\n'.join(body),
            attrs={'lang': '', 'info': '', 'fence': '', 'closed': True, 'indented': True},
        )
        return token, last_content

    def blockquote_lex(self, src, cursor, index):
        line = cursor.peek(index)
        match = RE_QUOTE.match(line.text)
        if not match:
            return None
        body = [match.group(1)]
        end = index + 1
        while True:
            nxt = cursor.peek(end)
            if nxt is None or blank_is(nxt.text):
                break
            quoted = RE_QUOTE.match(nxt.text)
            if quoted:
                body.append(quoted.group(1))
            elif body[-1].strip() and not self.interrupts(src, cursor, end):
                # Lazy continuation of a quoted paragraph
                body.append(nxt.text.strip())
            else:
                break
            end += 1

        inner = '\n'.join(body)
        token = Token(
            type=TokenKind.BLOCKQUOTE,
            raw=self.raw_slice(src, cursor, index, end),
            text=inner,
            children=self.tokens_lex(inner),
        )
        return token, end

    def list_lex(self, src, cursor, index):
        line = cursor.peek(index)
        first = RE_LIST.match(line.text)
        if not first:
            return None

        marker = first.group(2)
        ordered = marker[-1] in '.)'
        delimiter = marker[-1] if ordered else marker
        start = int(marker[:-1]) if ordered else None

        items: List[Token] = []
        loose = False
        current = index
        end = index
        while True:
            nxt = cursor.peek(current)
            match = RE_LIST.match(nxt.text) if nxt is not None else None
            if match is None or RE_HR.match(nxt.text):
                break
            item_marker = match.group(2)
            if (item_marker[-1] if item_marker[-1] in '.)' else item_marker) != delimiter:
                break
            if ordered != (item_marker[-1] in '.)'):
                break

            item, item_end, item_loose = self.listItem_lex(src, cursor, current, match)
            loose = loose or item_loose

            # Blank lines belong to the list only if another item follows
            after = item_end
            while True:
                gap = cursor.peek(after)
                if gap is None or not blank_is(gap.text):
                    break
                after += 1
            follower = cursor.peek(after)
            continues = False
            if follower is not None:
                following = RE_LIST.match(follower.text)
                if following and not RE_HR.match(follower.text):
                    follower_marker = following.group(2)
                    follower_delimiter = follower_marker[-1] if follower_marker[-1] in '.)' else follower_marker
                    continues = follower_delimiter == delimiter

            if continues and after > item_end:
                loose = True
                item.raw = self.raw_slice(src, cursor, current, after)
                items.append(item)
                current = after
                end = after
            else:
                items.append(item)
                current = item_end
                end = item_end
                if not continues:
                    break

        for item in items:
            item.attrs['loose'] = loose

        attrs = {'ordered': ordered, 'loose': loose, 'delimiter': delimiter}
        if ordered:
            attrs['start'] = start
        token = Token(
            type=TokenKind.LIST,
            raw=self.raw_slice(src, cursor, index, end),
            children=items,
            attrs=attrs,
        )
        return token, end

    def listItem_lex(self, src, cursor, index, match) -> Tuple[Token, int, bool]:
        """
        Lex one list item starting at line `index`.

        Returns:
            (item token, index past the item, item contains blank-separated blocks)
        """
        marker_indent = indent_width(match.group(1))
        marker = match.group(2)
        gap = indent_width(match.group(3)) if match.group(4) else 0
        content = match.group(4)

        if not content.strip():
            content_indent = marker_indent + len(marker) + 1
            first_line = ''
        elif gap > 4:
            content_indent = marker_indent + len(marker) + 1
            first_line = ' ' * (gap - 1) + content
        else:
            content_indent = marker_indent + len(marker) + gap
            first_line = content

        body = [first_line]
        loose = False
        end = index + 1
        while True:
            nxt = cursor.peek(end)
            if nxt is None:
                break
            if blank_is(nxt.text):
                if not first_line.strip() and end == index + 1:
                    break
                ahead = end
                while True:
                    gap_line = cursor.peek(ahead)
                    if gap_line is None or not blank_is(gap_line.text):
                        break
                    ahead += 1
                resumed = cursor.peek(ahead)
                if resumed is None or indent_width(resumed.text) < content_indent:
                    break
                body.extend('' for _ in range(end, ahead))
                loose = True
                end = ahead
                continue
            if indent_width(nxt.text) >= content_indent:
                body.append(indent_strip(nxt.text, content_indent))
                end += 1
                continue
            if body[-1].strip() and not RE_LIST.match(nxt.text) and not self.interrupts(src, cursor, end):
                # Lazy continuation line
                body.append(nxt.text.strip())
                end += 1
                continue
            break

        inner = '\n'.join(body)
        children = self.tokens_lex(inner)
        attrs = {}
        if children and children[0].type == TokenKind.PARAGRAPH:
            task = RE_TASK.match(children[0].text)
            if task:
                attrs['task'] = True
                attrs['checked'] = task.group(1) in 'xX'
                children[0].text = children[0].text[task.end():]

        # Blank lines between child blocks make the item loose
        significant = [child for child in children if child.type != TokenKind.SPACE]
        trailing_space = bool(children) and children[-1].type == TokenKind.SPACE
        loose = loose and (len(significant) > 1 or not trailing_space)

        token = Token(
            type=TokenKind.LIST_ITEM,
            raw=self.raw_slice(src, cursor, index, end),
            text=inner,
            children=children,
            attrs=attrs,
        )
        return token, end, loose

    def table_lex(self, src, cursor, index):
        line = cursor.peek(index)
        if '|' not in line.text or not self.tableHeader_is(cursor, index):
            return None

        header_cells = cells_split(line.text)
        aligns = []
        for cell in cells_split(cursor.peek(index + 1).text):
            if cell.startswith(':') and cell.endswith(':'):
                aligns.append('center')
            elif cell.endswith(':'):
                aligns.append('right')
            elif cell.startswith(':'):
                aligns.append('left')
            else:
                aligns.append(None)
        columns = len(header_cells)

        rows = [self.tableRow_make(header_cells, aligns, header=True)]
        end = index + 2
        while True:
            nxt = cursor.peek(end)
            if nxt is None or blank_is(nxt.text) or '|' not in nxt.text:
                break
            if self.interrupts(src, cursor, end):
                break
            cells = cells_split(nxt.text)
            # Column count is fixed by the header row
            cells = (cells + [''] * columns)[:columns]
            rows.append(self.tableRow_make(cells, aligns, header=False))
            end += 1

        token = Token(
            type=TokenKind.TABLE,
            raw=self.raw_slice(src, cursor, index, end),
            children=rows,
            attrs={'align': aligns, 'columns': columns},
        )
        return token, end

    @staticmethod
    def tableRow_make(cells: List[str], aligns: List[Optional[str]], header: bool) -> Token:
        children = [
            Token(type=TokenKind.TABLE_CELL, raw=cell, text=cell,
                  attrs={'align': align, 'header': header})
            for cell, align in zip(cells, aligns)
        ]
        return Token(type=TokenKind.TABLE_ROW, raw=' | '.join(cells),
                     children=children, attrs={'header': header})

    def html_lex(self, src, cursor, index):
        line = cursor.peek(index)
        text = line.text

        if RE_HTML_COMMENT.match(text):
            return self.htmlUntil_lex(src, cursor, index, lambda t: '-->' in t, tag='!--')

        match = RE_HTML_OPEN.match(text)
        if not match:
            return None
        closing = match.group(1) == '/'
        tag = match.group(2).lower()

        if tag in self.custom_tags and not closing:
            return self.htmlCustom_lex(src, cursor, index, tag)
        if tag in RAW_TAGS and not closing:
            close = '</' + tag + '>'
            return self.htmlUntil_lex(src, cursor, index, lambda t: close in t.lower(), tag=tag)
        if tag in BLOCK_TAGS:
            return self.htmlUntilBlank_lex(src, cursor, index, tag)
        if RE_HTML_TAG_LINE.match(text):
            return self.htmlUntilBlank_lex(src, cursor, index, tag)
        return None

    def htmlUntil_lex(self, src, cursor, index, ends, tag):
        end = index
        closed = False
        while True:
            nxt = cursor.peek(end)
            if nxt is None:
                break
            end += 1
            if ends(nxt.text) and not (end == index + 1 and tag == '!--' and nxt.text.strip() == '<!--'):
                closed = True
                break
        raw = self.raw_slice(src, cursor, index, end)
        return Token(type=TokenKind.HTML, raw=raw, text=raw,
                     attrs={'tag': tag, 'closed': closed, 'custom': False}), end

    def htmlUntilBlank_lex(self, src, cursor, index, tag):
        end = index + 1
        while True:
            nxt = cursor.peek(end)
            if nxt is None or blank_is(nxt.text):
                break
            end += 1
        raw = self.raw_slice(src, cursor, index, end)
        return Token(type=TokenKind.HTML, raw=raw, text=raw,
                     attrs={'tag': tag, 'closed': True, 'custom': False}), end

    def htmlCustom_lex(self, src, cursor, index, tag):
        """
        Custom component tags stay one block until the matching close tag,
        blank lines included.
        """
        opener = re.compile(r'<' + re.escape(tag) + r'(?:\s[^<>]*)?>', re.IGNORECASE)
        self_closing = re.compile(r'<' + re.escape(tag) + r'(?:\s[^<>]*)?/>', re.IGNORECASE)
        closer = re.compile(r'</' + re.escape(tag) + r'\s*>', re.IGNORECASE)

        depth = 0
        end = index
        closed = False
        while True:
            nxt = cursor.peek(end)
            if nxt is None:
                break
            end += 1
            opened = len(opener.findall(nxt.text)) - len(self_closing.findall(nxt.text))
            depth += opened - len(closer.findall(nxt.text))
            if end == index + 1 and opened == 0 and self_closing.search(nxt.text):
                closed = True
                break
            if depth <= 0:
                closed = True
                break

        raw = self.raw_slice(src, cursor, index, end)
        return Token(type=TokenKind.HTML, raw=raw, text=raw,
                     attrs={'tag': tag, 'closed': closed, 'custom': True}), end

    def footnote_lex(self, src, cursor, index):
        line = cursor.peek(index)
        match = RE_FOOTNOTE.match(line.text)
        if not match:
            return None
        body = [match.group(2)]
        end = index + 1
        while True:
            nxt = cursor.peek(end)
            if nxt is None or blank_is(nxt.text):
                break
            if indent_width(nxt.text) < 2 and self.interrupts(src, cursor, end):
                break
            body.append(nxt.text.strip())
            end += 1
        token = Token(
            type=TokenKind.FOOTNOTE,
            raw=self.raw_slice(src, cursor, index, end),
            text='\n'.join(body).strip(),
            attrs={'id': match.group(1)},
        )
        return token, end

    def paragraph_lex(self, src, cursor, index):
        body = [cursor.peek(index).text.lstrip()]
        end = index + 1
        while True:
            nxt = cursor.peek(end)
            if nxt is None or blank_is(nxt.text):
                break
            setext = RE_SETEXT.match(nxt.text)
            if setext:
                token = Token(
                    type=TokenKind.HEADING,
                    raw=self.raw_slice(src, cursor, index, end + 1),
                    text='\n'.join(body).strip(),
                    attrs={'depth': 1 if setext.group(1)[0] == '=' else 2, 'setext': True},
                )
                return token, end + 1
            if self.interrupts(src, cursor, end):
                break
            body.append(nxt.text.lstrip())
            end += 1

        token = Token(
            type=TokenKind.PARAGRAPH,
            raw=self.raw_slice(src, cursor, index, end),
            text='\n'.join(body).rstrip(),
        )
        return token, end
