"""
Animation scheduler

Tracks reveal progress per render node identity (uid) and advances it on
ticks. A cache hit hands the scheduler the same node again, which never
restarts its animation; only new nodes and nodes whose text changed start
(or continue) an effect.

Effects:
    typing   reveals `step` characters per tick
    fade-in  shows new text at once and fades it in over `fade_duration` ms
    callable custom effect (progress, config) -> bool, True when done

Ticks are driven either explicitly (`tick()`) or by an AsyncioTicker on a
running event loop.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..models.render import FrameNode, RenderNode, RevealState
from ..models.session import AnimationConfig
from .log import LOG, warn


class CancellationToken:
    """Cooperative cancellation flag shared by a scheduler and its ticker"""

    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class RevealProgress:
    """
    Reveal state of one node

    Attributes:
        uid: Node identity
        text: Text the animation currently targets
        revealed: Characters visible so far
        fading_from: Start of the text still fading in
        elapsed: Milliseconds spent in the current fade
        state: RevealState
        provisional: The node may still change
    """
    uid: int
    text: str = ""
    revealed: int = 0
    fading_from: int = 0
    elapsed: int = 0
    state: RevealState = RevealState.ENTER
    provisional: bool = False


def commonPrefix_length(first: str, second: str) -> int:
    length = 0
    for a, b in zip(first, second):
        if a != b:
            break
        length += 1
    return length


class AnimationScheduler:
    """
    Per-session reveal scheduler

    Example:
        >>> scheduler = AnimationScheduler(AnimationConfig(effect="typing", step=2))
        >>> frames = scheduler.schedule(nodes, has_next_chunk=True)
        >>> scheduler.tick()
        True
    """

    def __init__(self, config: Optional[AnimationConfig] = None, enabled: bool = True) -> None:
        self.config = config or AnimationConfig()
        self.enabled = enabled
        self.progress: Dict[int, RevealProgress] = {}
        self.active: Dict[int, None] = {}
        self.nodes: List[RenderNode] = []
        self.has_next_chunk = False
        self.token = CancellationToken()
        self.ticks = 0
        self._ticking = False

    def schedule(self, nodes: List[RenderNode], has_next_chunk: bool) -> List[FrameNode]:
        """
        Take the latest render list and start effects for new or changed nodes.

        Returns:
            FrameNodes reflecting the current reveal state
        """
        self.nodes = nodes
        self.has_next_chunk = has_next_chunk
        if not self.enabled or self.token.cancelled:
            return self.frames()

        seen = set()
        for node in nodes:
            seen.add(node.uid)
            progress = self.progress.get(node.uid)
            if progress is None:
                progress = RevealProgress(uid=node.uid, text=node.text)
                self.progress[node.uid] = progress
                self.effect_start(progress, 0)
            elif node.text != progress.text:
                self.text_change(progress, node.text)
            progress.provisional = node.provisional

        for uid in [uid for uid in self.progress if uid not in seen]:
            del self.progress[uid]
            self.active.pop(uid, None)

        return self.frames()

    def effect_start(self, progress: RevealProgress, keep: int) -> None:
        """(Re)start the effect, keeping the first `keep` characters as shown"""
        effect = self.config.effect
        progress.elapsed = 0
        if effect == 'typing':
            progress.revealed = min(progress.revealed, keep)
            progress.fading_from = progress.revealed
            progress.state = RevealState.TYPING
        elif effect == 'fade-in':
            progress.revealed = len(progress.text)
            progress.fading_from = min(keep, len(progress.text))
            progress.state = RevealState.ENTER
        else:
            progress.revealed = min(progress.revealed, keep)
            progress.fading_from = progress.revealed
            progress.state = RevealState.ENTER
        self.active[progress.uid] = None

    def text_change(self, progress: RevealProgress, text: str) -> None:
        previous = progress.text
        if text.startswith(previous):
            keep = len(previous)
        else:
            prefix = commonPrefix_length(previous, text)
            keep = prefix if self.config.keep_prefix else 0
            progress.revealed = min(progress.revealed, keep)
            LOG(f"Node {progress.uid} content replaced; resuming at {keep}", level=3)
        progress.text = text
        self.effect_start(progress, keep)

    def tick(self, elapsed_ms: Optional[int] = None) -> bool:
        """
        Advance every active animation by one tick.

        Ticks never overlap: a tick requested while another is running is
        dropped.

        Args:
            elapsed_ms: Time covered by this tick (default: the configured interval)

        Returns:
            True when any visible state changed
        """
        if self.token.cancelled or self._ticking or not self.enabled:
            return False
        self._ticking = True
        try:
            step_ms = self.config.interval if elapsed_ms is None else elapsed_ms
            changed = False
            for uid in list(self.active):
                progress = self.progress[uid]
                if self.effect_advance(progress, step_ms):
                    changed = True
                if self.done_is(progress):
                    progress.state = RevealState.STEADY
                    progress.fading_from = len(progress.text)
                    del self.active[uid]
                    changed = True
            self.ticks += 1
            return changed
        finally:
            self._ticking = False

    def effect_advance(self, progress: RevealProgress, step_ms: int) -> bool:
        effect = self.config.effect
        if effect == 'typing':
            if progress.revealed >= len(progress.text):
                return False
            progress.revealed = min(len(progress.text), progress.revealed + self.config.step)
            return True
        if effect == 'fade-in':
            progress.elapsed += step_ms
            return True
        progress.elapsed += step_ms
        try:
            finished = bool(effect(progress, self.config))
        except Exception as exc:
            warn(f"custom animation effect failed on node {progress.uid}; showing it in full", exc)
            finished = True
            progress.revealed = len(progress.text)
        if finished:
            progress.state = RevealState.STEADY
        return True

    def done_is(self, progress: RevealProgress) -> bool:
        """
        Whether a node can leave the active set.

        A typing node waits for the end of the stream only while it is
        provisional. A settled node's text can no longer grow, so it retires
        as soon as it is fully shown, even with more chunks pending; a later
        text change brings it back through schedule().
        """
        effect = self.config.effect
        if effect == 'typing':
            fully_shown = progress.revealed >= len(progress.text)
            return fully_shown and (not progress.provisional or not self.has_next_chunk)
        if effect == 'fade-in':
            return progress.elapsed >= self.config.fade_duration
        return progress.state == RevealState.STEADY

    def idle(self) -> bool:
        return not self.active or self.token.cancelled

    def frames(self) -> List[FrameNode]:
        frames = []
        for node in self.nodes:
            progress = self.progress.get(node.uid) if self.enabled else None
            if progress is None:
                frames.append(FrameNode(node, RevealState.STEADY, len(node.text), len(node.text)))
            else:
                frames.append(FrameNode(node, progress.state, progress.revealed, progress.fading_from))
        return frames

    def cancel(self) -> None:
        """Stop all animation; nothing fires after this returns"""
        self.token.cancel()
        self.active.clear()
        for progress in self.progress.values():
            progress.state = RevealState.STEADY
            progress.revealed = len(progress.text)
            progress.fading_from = len(progress.text)


class AsyncioTicker:
    """
    Drives a scheduler from an asyncio event loop

    `callback` runs once per tick interval and returns True to keep ticking.
    The ticker stops on its own when the callback returns False and never
    runs again once the scheduler's cancellation token is set.
    """

    def __init__(self,
                 scheduler: AnimationScheduler,
                 callback: Callable[[], bool],
                 loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self.scheduler = scheduler
        self.callback = callback
        self.loop = loop or asyncio.get_running_loop()
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        if self._handle is not None or self.scheduler.token.cancelled:
            return
        delay = self.scheduler.config.interval / 1000
        self._handle = self.loop.call_later(delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        if self.scheduler.token.cancelled:
            return
        keep_going = self.callback()
        if keep_going and not self.scheduler.token.cancelled:
            self.start()

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
