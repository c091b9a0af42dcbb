"""
Render diff and cache layer

Maps the current token list to render nodes, reusing the node of every
settled token whose identity is unchanged. Provisional tokens are
re-rendered on every chunk and never cached, so the first time a token
renders as settled its output equals a from-scratch render.

Settled tokens are reused by the tokenizer as the very same objects, so a
hit is an identity check and costs nothing per chunk. Only when a walk hook
hands over private copies (which it may have mutated) is a hit decided by
comparing fingerprints.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from ..models.render import RenderNode
from ..models.tokens import Checkpoint, Token
from .detector import IncompleteConstruct
from .log import LOG
from .renderer import HtmlRenderer


@dataclass
class CacheEntry:
    token: Token
    fingerprint: Optional[int]
    node: RenderNode


class RenderCache:
    """
    Per-session cache of rendered settled tokens

    Attributes:
        hits: Reused nodes over the session lifetime
        misses: Rendered nodes over the session lifetime
    """

    def __init__(self, renderer: HtmlRenderer) -> None:
        self.renderer = renderer
        self.entries: Dict[int, CacheEntry] = {}
        self.hits = 0
        self.misses = 0

    def render(self,
               tokens: List[Token],
               checkpoint: Checkpoint,
               constructs: Optional[Dict[int, IncompleteConstruct]] = None,
               copied: bool = False) -> List[RenderNode]:
        """
        Render the token list, reusing cached nodes of settled tokens.

        Args:
            tokens: Top-level tokens of the whole buffer
            checkpoint: Tokens before checkpoint.token_count are settled
            constructs: Top-level incomplete constructs keyed by token uid
            copied: `tokens` are walked copies, not the tokenizer's own objects

        Returns:
            RenderNodes in document order
        """
        constructs = constructs or {}
        nodes: List[RenderNode] = []
        live = set()
        hits = 0
        for index, token in enumerate(tokens):
            settled = index < checkpoint.token_count and not token.provisional
            live.add(token.uid)
            if settled:
                fingerprint = token.fingerprint() if copied else None
                entry = self.entries.get(token.uid)
                if copied:
                    hit = entry is not None and entry.fingerprint == fingerprint
                else:
                    hit = entry is not None and entry.token is token
                if hit:
                    nodes.append(entry.node)
                    hits += 1
                    continue
                node = self.renderer.node_render(token)
                self.entries[token.uid] = CacheEntry(token, fingerprint, node)
            else:
                node = self.renderer.node_render(token, constructs.get(token.uid))
                self.entries.pop(token.uid, None)
            nodes.append(node)

        for uid in [uid for uid in self.entries if uid not in live]:
            del self.entries[uid]

        self.hits += hits
        self.misses += len(tokens) - hits
        LOG(f"Render cache: {hits} hits, {len(tokens) - hits} rendered", level=2)
        return nodes

    def clear(self) -> None:
        self.entries.clear()
