"""
Incremental tokenizer

Re-tokenizes only the unsettled tail of a growing buffer. Tokens before the
checkpoint are taken verbatim from the previous pass; lexing restarts at the
checkpoint offset, which always sits on a block boundary.

A top-level token becomes settled once the block lexer reports it closed and
every token before it is settled too. Settled tokens never change again, so
the checkpoint only moves forward while the buffer keeps growing.

Tail tokens keep their identity across chunks: a re-tokenized tail token
that starts at the same offset and has the same type as a previous
provisional token inherits its uid.
"""

import re
from typing import Iterable, List, Optional, Tuple

from ..models.tokens import Checkpoint, Token, TokenKind, TokenizeResult
from .blocks import BlockLexer
from .inline import InlineLexer, incomplete_make
from .log import LOG


INLINE_CONTAINERS = frozenset({
    TokenKind.PARAGRAPH,
    TokenKind.HEADING,
    TokenKind.TABLE_CELL,
    TokenKind.FOOTNOTE,
})

RE_TABLE_HEADER_ROW = re.compile(r'^\s*\|.*\|\s*$')
RE_TABLE_DELIMITER_PARTIAL = re.compile(r'^[ \t:|-]*$')

TAIL_STATES = {
    TokenKind.CODE: 'code',
    TokenKind.TABLE: 'table',
    TokenKind.LIST: 'list',
    TokenKind.BLOCKQUOTE: 'blockquote',
    TokenKind.HTML: 'html',
}


def tableCandidate_split(text: str) -> Tuple[str, str]:
    """
    Split off trailing lines that look like a table still being streamed.

    Returns:
        (head, candidate); candidate is empty when the text does not end in
        a header row optionally followed by a partial delimiter row
    """
    lines = text.split('\n')
    if len(lines) >= 2 and RE_TABLE_HEADER_ROW.match(lines[-2]) \
            and RE_TABLE_DELIMITER_PARTIAL.match(lines[-1]):
        cut = len(lines) - 2
    elif RE_TABLE_HEADER_ROW.match(lines[-1]):
        cut = len(lines) - 1
    else:
        return text, ''
    head = '\n'.join(lines[:cut])
    candidate = '\n'.join(lines[cut:])
    if head:
        head += '\n'
    return head, candidate


class IncrementalTokenizer:
    """
    Checkpointed tokenizer for append-only markdown buffers

    Example:
        >>> tokenizer = IncrementalTokenizer()
        >>> first = tokenizer.tokenize("# Title\\n\\nBo")
        >>> second = tokenizer.tokenize("# Title\\n\\nBody", first.checkpoint, first.tokens)
        >>> second.reused
        1
    """

    def __init__(self, registry=None, custom_tags: Iterable[str] = ()) -> None:
        self.blocks = BlockLexer(registry, custom_tags)
        self.inline = InlineLexer(registry, custom_tags)
        self._sequence = 0

    def uid_next(self) -> int:
        self._sequence += 1
        return self._sequence

    def tokenize(self,
                 buffer: str,
                 previous_checkpoint: Optional[Checkpoint] = None,
                 previous_tokens: Optional[List[Token]] = None,
                 final: bool = False) -> TokenizeResult:
        """
        Tokenize `buffer`, reusing everything before the previous checkpoint.

        Args:
            buffer: The full accumulated document
            previous_checkpoint: Checkpoint returned by the previous call
            previous_tokens: Token list returned by the previous call
            final: End-of-input semantics (no more text will arrive)

        Returns:
            TokenizeResult with the complete top-level token list
        """
        checkpoint = previous_checkpoint or Checkpoint()
        previous_tokens = previous_tokens or []
        if checkpoint.offset > len(buffer) or checkpoint.token_count > len(previous_tokens):
            LOG(f"Checkpoint {checkpoint} does not fit the buffer; tokenizing from scratch", level=2)
            checkpoint = Checkpoint()

        settled = previous_tokens[:checkpoint.token_count]
        prior = {}
        offset = checkpoint.offset
        for token in previous_tokens[checkpoint.token_count:]:
            prior[offset] = token
            offset += len(token.raw)

        fresh: List[Tuple[Token, bool]] = []
        offset = checkpoint.offset
        settled_count = checkpoint.token_count
        settled_offset = checkpoint.offset
        settling = True
        for token, closed in self.blocks.blocks_iter(buffer, checkpoint.offset):
            previous = prior.get(offset)
            if previous is not None and previous.type == token.type:
                token.uid = previous.uid
            else:
                token.uid = self.uid_next()
            fresh.append((token, closed))
            offset += len(token.raw)
            if settling and closed:
                settled_count += 1
                settled_offset = offset
            else:
                settling = False

        for index, (token, closed) in enumerate(fresh):
            tail = not final and not closed and index == len(fresh) - 1
            self.inline_fill(token, tail)

        tail_state = None
        if fresh and not fresh[-1][1]:
            last = fresh[-1][0]
            if last.type != TokenKind.CODE or not last.attrs.get('closed'):
                tail_state = TAIL_STATES.get(last.type)

        LOG(f"Tokenized {len(fresh)} tail tokens after {len(settled)} settled; "
            f"checkpoint {checkpoint.offset} -> {settled_offset}", level=2)

        return TokenizeResult(
            tokens=settled + [token for token, _ in fresh],
            checkpoint=Checkpoint(settled_offset, settled_count, tail_state),
            reused=len(settled),
        )

    def inline_fill(self, token: Token, tail: bool) -> None:
        """
        Lex the inline content of every leaf block inside `token`.

        Only the last leaf of the live tail token is lexed in tail mode.
        """
        containers = [
            node for node in token.walk()
            if node.type in INLINE_CONTAINERS and not node.children
        ]
        for index, container in enumerate(containers):
            leaf_tail = tail and index == len(containers) - 1
            if leaf_tail and container.type == TokenKind.PARAGRAPH:
                head, candidate = tableCandidate_split(container.text)
                if candidate:
                    container.children = self.inline.lex(head) + [incomplete_make('table', candidate)]
                    continue
            container.children = self.inline.lex(container.text, tail=leaf_tail)
