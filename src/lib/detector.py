"""
Incomplete construct detector

Decides, after every chunk, which tokens are provisional and which
incomplete constructs get a placeholder instead of their literal text.

Rules, applied from the end of the token list back to the checkpoint:
    - every top-level token after the checkpoint is provisional while the
      stream is live
    - `incomplete` inline tokens (an opener whose closer has not arrived)
      and unmatched emphasis openers mark their token provisional
    - a configurable kind -> component map names the placeholder shown for
      an incomplete construct; `link` and `image` have default placeholders,
      `html`, `table`, `codespan` and a bare list marker render nothing

When the stream ends every provisional flag is cleared.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..config import appsettings
from ..models.tokens import Checkpoint, Token, TokenKind
from .log import LOG


HIDDEN_BY_DEFAULT = frozenset({'html', 'table', 'codespan', 'list'})

RE_BARE_MARKER = re.compile(r'^ {0,3}(?:[*+-]|\d{1,9}[.)])[ \t]*$')
RE_PARTIAL_TAG_LINE = re.compile(r'<[A-Za-z/][^>\n]*$')


@dataclass
class IncompleteConstruct:
    """
    One construct cut off by the end of the stream

    Attributes:
        kind: link, image, html, codespan, table or list
        token: The incomplete token (inline) or the top-level token
        owner: uid of the top-level token containing it
        component: Placeholder component id, or None (hidden or literal)
    """
    kind: str
    token: Token
    owner: int
    component: Optional[str]


class IncompleteConstructDetector:
    """
    Provisional marking and placeholder resolution

    Example:
        >>> detector = IncompleteConstructDetector({"html": "html-loading"})
        >>> detector.placeholder_get("link")
        'incomplete-link'
        >>> detector.placeholder_get("html")
        'html-loading'
    """

    def __init__(self, component_map: Optional[Dict[str, str]] = None) -> None:
        self.component_map: Dict[str, str] = {
            kind: appsettings.placeholder_forKind(kind) for kind in ('link', 'image')
        }
        self.component_map.update(component_map or {})

    def placeholder_get(self, kind: str) -> Optional[str]:
        """Placeholder component for `kind`; an empty string disables it"""
        return self.component_map.get(kind) or None

    def hidden_is(self, kind: str) -> bool:
        """Incomplete constructs of this kind render nothing until resolved"""
        return kind in HIDDEN_BY_DEFAULT and kind not in self.component_map

    def blockKind_get(self, token: Token) -> Optional[str]:
        """
        Kind of incomplete construct formed by a whole top-level tail token.
        """
        if token.type == TokenKind.TABLE and len(token.children) < 2:
            return 'table'
        if token.type == TokenKind.LIST and len(token.children) == 1:
            if RE_BARE_MARKER.match(token.raw.rstrip('\n')):
                return 'list'
        if token.type == TokenKind.HTML and not token.attrs.get('custom'):
            last_line = token.raw.rstrip('\n').rsplit('\n', 1)[-1]
            if RE_PARTIAL_TAG_LINE.search(last_line):
                return 'html'
        return None

    def mark(self,
             tokens: List[Token],
             checkpoint: Checkpoint,
             has_next_chunk: bool) -> List[IncompleteConstruct]:
        """
        Set provisional flags on the tail and collect incomplete constructs.

        Args:
            tokens: Top-level tokens of the whole buffer
            checkpoint: Current tokenizer checkpoint
            has_next_chunk: Whether more text may still arrive

        Returns:
            Incomplete constructs found in the tail (empty once the stream ended)
        """
        found: List[IncompleteConstruct] = []
        for index in range(len(tokens) - 1, checkpoint.token_count - 1, -1):
            top = tokens[index]
            if not has_next_chunk:
                for token in top.walk():
                    token.provisional = False
                continue

            top.provisional = True
            kind = self.blockKind_get(top) if index == len(tokens) - 1 else None
            if kind is not None:
                found.append(IncompleteConstruct(kind, top, top.uid, self.placeholder_get(kind)))
            for token in top.walk():
                if token.type == TokenKind.INCOMPLETE:
                    token.provisional = True
                    kind = token.attrs.get('kind', '')
                    found.append(IncompleteConstruct(kind, token, top.uid, self.placeholder_get(kind)))

        for construct in found:
            LOG(f"Incomplete {construct.kind} in token {construct.owner} -> "
                f"{construct.component or 'hidden'}", level=3)
        return found

    def topLevel_get(self, constructs: List[IncompleteConstruct]) -> Dict[int, IncompleteConstruct]:
        """Constructs that replace a whole top-level token, keyed by uid"""
        return {c.owner: c for c in constructs if c.token.uid == c.owner and c.token.type != TokenKind.INCOMPLETE}
