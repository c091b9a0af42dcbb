"""
Render output models

Structures handed from the render cache to the animation scheduler and from
there to the UI layer.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .tokens import Checkpoint


class RevealState(Enum):
    """
    Animation state of one output node

    ENTER: first appearance, one-shot transition (fade-in) still running
    TYPING: text is being revealed step by step
    STEADY: fully shown, nothing left to animate
    """
    ENTER = "enter"
    TYPING = "typing"
    STEADY = "steady"


@dataclass
class RenderNode:
    """
    Rendered output for one top-level token

    Nodes for settled tokens are cached and the same object is handed out on
    every later chunk; nodes for provisional tokens are rebuilt every chunk.

    Attributes:
        key: Stable key for the UI layer ("<type>-<uid>")
        uid: Identity of the token this node was rendered from
        kind: Token type
        component: Built-in kind, extension name, custom component id or
                   placeholder component id
        props: Component props (stream_status, lang, href, ...)
        html: Rendered HTML fragment
        text: Plain text content (drives the typing effect)
        provisional: Rendered from a provisional token
        placeholder: The node stands in for an incomplete construct
    """
    key: str
    uid: int
    kind: str
    component: str
    html: str
    text: str = ""
    props: Dict[str, Any] = field(default_factory=dict)
    provisional: bool = False
    placeholder: bool = False


@dataclass
class FrameNode:
    """
    A render node together with its current reveal state

    Attributes:
        node: The (possibly cached) render node
        reveal: Current RevealState
        revealed_length: Characters of node.text currently visible
        fading_from: Characters before this offset are fully opaque; the rest
                     of the visible text is still fading in
    """
    node: RenderNode
    reveal: RevealState = RevealState.STEADY
    revealed_length: int = 0
    fading_from: int = 0

    @property
    def visible_text(self) -> str:
        return self.node.text[:self.revealed_length]


@dataclass
class RenderResult:
    """
    Ordered render list returned by Session.append()

    Attributes:
        nodes: FrameNodes in document order
        checkpoint: Tokenizer checkpoint after this chunk
        has_next_chunk: Whether the stream was still live when rendered
    """
    nodes: List[FrameNode] = field(default_factory=list)
    checkpoint: Optional[Checkpoint] = None
    has_next_chunk: bool = False

    def html(self) -> str:
        """Concatenated HTML of every node (animation state ignored)"""
        return "".join(frame.node.html for frame in self.nodes)

    def components(self) -> List[str]:
        return [frame.node.component for frame in self.nodes]

    def __len__(self) -> int:
        return len(self.nodes)
