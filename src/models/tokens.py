"""
Token and checkpoint models

Type-safe structures produced by the block/inline lexers and consumed by the
detector, the render cache and the animation scheduler.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple


class TokenKind:
    """
    Built-in token type names

    Token.type is a plain string so that extensions can introduce their own
    kinds; these constants cover everything the built-in rules emit.
    """
    # Block level
    SPACE = "space"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    CODE = "code"
    BLOCKQUOTE = "blockquote"
    LIST = "list"
    LIST_ITEM = "list_item"
    TABLE = "table"
    HTML = "html"
    HR = "hr"
    FOOTNOTE = "footnote"
    TABLE_ROW = "table_row"
    TABLE_CELL = "table_cell"

    # Inline level
    TEXT = "text"
    ESCAPE = "escape"
    CODESPAN = "codespan"
    EMPHASIS = "em"
    STRONG = "strong"
    DEL = "del"
    LINK = "link"
    IMAGE = "image"
    BR = "br"
    FOOTNOTE_REF = "footnote_ref"

    # Unmatched construct at the live end of the stream
    INCOMPLETE = "incomplete"


BUILTIN_KINDS = frozenset(
    value for name, value in vars(TokenKind).items() if name.isupper()
)


@dataclass
class Token:
    """
    A single node of the token tree

    Attributes:
        type: Token kind (TokenKind constant or an extension-defined name)
        raw: Exact source substring consumed by this token
        text: Cleaned content (heading text without hashes, code without fences, ...)
        children: Nested tokens (inline content, list items, quoted blocks)
        attrs: Kind-specific fields (depth, lang, href, title, ordered, start, ...)
        provisional: Shape may still change once more text arrives
        uid: Creation sequence number; stable identity across chunks

    Example:
        For source "# Title\\n":
        Token(type="heading", raw="# Title\\n", text="Title",
              attrs={"depth": 1}, children=[Token(type="text", raw="Title", text="Title")])
    """
    type: str
    raw: str
    text: str = ""
    children: List['Token'] = field(default_factory=list)
    attrs: Dict[str, Any] = field(default_factory=dict)
    provisional: bool = False
    uid: int = 0

    def shape(self) -> Tuple[Any, ...]:
        """
        Structural identity of the token, ignoring provisional flag and uid.

        Two tokenizations are considered equivalent when the shapes of their
        top-level tokens are equal.
        """
        return (
            self.type,
            self.raw,
            self.text,
            tuple(sorted((key, repr(value)) for key, value in self.attrs.items())),
            tuple(child.shape() for child in self.children),
        )

    def fingerprint(self) -> int:
        """Hash of shape(); used by the render cache to notice mutations"""
        return hash(self.shape())

    def walk(self) -> Iterator['Token']:
        """Pre-order traversal over this token and all descendants"""
        yield self
        for child in self.children:
            yield from child.walk()

    def plainText(self) -> str:
        """
        Visible text of the token, used to size reveal animations.

        Leaf tokens contribute their text; containers concatenate children.
        """
        if self.type in (TokenKind.SPACE, TokenKind.HR):
            return ""
        if self.type == TokenKind.INCOMPLETE:
            return ""
        if self.children:
            return "".join(child.plainText() for child in self.children)
        if self.type == TokenKind.BR:
            return "\n"
        return self.text


@dataclass(frozen=True)
class Checkpoint:
    """
    Opaque cursor marking the end of the settled prefix

    Attributes:
        offset: Character offset in the document buffer; every top-level
                token ending at or before this offset is settled
        token_count: Number of settled top-level tokens
        tail_state: Construct still open after the checkpoint
                    (e.g. "code" for an unterminated fence), or None
    """
    offset: int = 0
    token_count: int = 0
    tail_state: Optional[str] = None


@dataclass
class TokenizeResult:
    """
    Result of one incremental tokenization pass

    Attributes:
        tokens: Complete top-level token list for the whole buffer
        checkpoint: New settled checkpoint
        reused: How many leading tokens were taken verbatim from the previous pass
    """
    tokens: List[Token]
    checkpoint: Checkpoint
    reused: int = 0
