"""
Streaming render session

One Session per markdown widget. Chunks go in through append(); each call
runs the whole pipeline and returns the ordered render list:

    buffer -> IncrementalTokenizer (checkpointed)
           -> ExtensionRegistry walk hook
           -> IncompleteConstructDetector
           -> RenderCache (HtmlRenderer for misses)
           -> AnimationScheduler

Example:
    >>> session = create_session({"streaming": {"hasNextChunk": True}})
    >>> session.append("# Title\\n\\nHello **wor").html()
    '<h1>Title</h1>\\n<p>Hello **wor</p>\\n'
    >>> session.append("ld**").html()
    '<h1>Title</h1>\\n<p>Hello <strong>world</strong></p>\\n'
    >>> session.set_streaming_state(False)
"""

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from ..models.render import RenderResult
from ..models.session import SessionConfig
from ..models.tokens import Checkpoint, Token
from .animation import AnimationScheduler, AsyncioTicker
from .cache import RenderCache
from .detector import IncompleteConstruct, IncompleteConstructDetector
from .extensions import ConfigError, ExtensionRegistry
from .log import LOG, state_connectToLogger, warn
from .renderer import HtmlRenderer
from .tokenizer import IncrementalTokenizer


class SessionClosedError(RuntimeError):
    """Operation on a session after close()"""


class Session:
    """
    Streaming markdown render session

    Attributes:
        config: Validated SessionConfig
        buffer: Accumulated document text
        tokens: Current top-level tokens
        checkpoint: End of the settled prefix
        has_next_chunk: Whether more text is expected
        constructs: Incomplete constructs found by the last pass
        result: Last RenderResult
    """

    def __init__(self, config: SessionConfig) -> None:
        self.config = config
        self.verbosity = config.verbosity
        self.has_next_chunk = config.streaming.has_next_chunk
        self.closed = False

        self.registry = ExtensionRegistry(on_error=config.on_error)
        for spec in config.extensions:
            self.registry.register(spec)
        self.registry.walkHook_set(config.walk_tokens)

        self.detector = IncompleteConstructDetector(config.incomplete_markdown_component_map)
        self.renderer = HtmlRenderer(
            options=config.render,
            registry=self.registry,
            detector=self.detector,
            overrides=config.renderer,
        )
        self._ticker: Optional[AsyncioTicker] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.state_reset()

    def state_reset(self) -> None:
        """Drop buffer, tokens, cache and animation state"""
        if self._ticker is not None:
            self._ticker.stop()
            self._ticker = None
        self.buffer = ""
        self.tokens: List[Token] = []
        self.checkpoint = Checkpoint()
        self.constructs: List[IncompleteConstruct] = []
        self.tokenizer = IncrementalTokenizer(self.registry, self.config.render.components)
        self.cache = RenderCache(self.renderer)
        streaming = self.config.streaming
        self.scheduler = AnimationScheduler(streaming.animation_config, streaming.enable_animation)
        self.result = RenderResult(has_next_chunk=self.has_next_chunk)

    def closed_check(self) -> None:
        if self.closed:
            raise SessionClosedError("session is closed")

    def reset(self) -> RenderResult:
        """Start over with an empty document"""
        self.closed_check()
        state_connectToLogger(self)
        LOG("Session reset", level=1)
        self.state_reset()
        return self.result

    def close(self) -> None:
        """Cancel animation and refuse further input"""
        if self.closed:
            return
        state_connectToLogger(self)
        self.scheduler.cancel()
        if self._ticker is not None:
            self._ticker.stop()
            self._ticker = None
        self.closed = True
        LOG("Session closed", level=1)

    def append(self, chunk: str) -> RenderResult:
        """
        Append a chunk of markdown and re-render.

        Args:
            chunk: Next piece of the document (any size, any split point)

        Returns:
            RenderResult for the whole document
        """
        self.closed_check()
        state_connectToLogger(self)
        if not isinstance(chunk, str):
            raise TypeError(f"chunk must be str, got {type(chunk).__name__}")
        self.buffer += chunk
        LOG(f"Appended {len(chunk)} chars (buffer {len(self.buffer)})", level=2)
        return self.pass_run()

    def update(self, content: str) -> RenderResult:
        """
        Replace the document with `content`.

        When `content` extends the current buffer only the difference is
        appended; otherwise tokens and cache restart on the new content while
        the animation scheduler keeps per-node progress (honouring keep_prefix).
        """
        self.closed_check()
        state_connectToLogger(self)
        if content.startswith(self.buffer):
            return self.append(content[len(self.buffer):])

        LOG("Content does not extend the buffer; restarting tokenization", level=1)
        self.buffer = content
        self.tokens = []
        self.checkpoint = Checkpoint()
        self.tokenizer = IncrementalTokenizer(self.registry, self.config.render.components)
        self.cache.clear()
        return self.pass_run()

    def set_streaming_state(self, has_next_chunk: bool) -> RenderResult:
        """
        Tell the session whether more text is coming.

        Switching to False finalizes every provisional token with
        end-of-input semantics.
        """
        self.closed_check()
        state_connectToLogger(self)
        if has_next_chunk == self.has_next_chunk:
            return self.result
        self.has_next_chunk = has_next_chunk
        LOG(f"Streaming state -> has_next_chunk={has_next_chunk}", level=1)
        return self.pass_run()

    def pass_run(self) -> RenderResult:
        """Tokenize, walk, detect, render and schedule the current buffer"""
        tokenized = self.tokenizer.tokenize(
            self.buffer, self.checkpoint, self.tokens, final=not self.has_next_chunk
        )
        self.tokens = tokenized.tokens
        self.checkpoint = tokenized.checkpoint

        walked = self.registry.tokens_walk(self.tokens)
        self.constructs = self.detector.mark(walked, self.checkpoint, self.has_next_chunk)

        self.renderer.has_next_chunk = self.has_next_chunk
        nodes = self.cache.render(walked, self.checkpoint, self.detector.topLevel_get(self.constructs),
                                  copied=walked is not self.tokens)
        frames = self.scheduler.schedule(nodes, self.has_next_chunk)
        self.result = RenderResult(nodes=frames, checkpoint=self.checkpoint,
                                   has_next_chunk=self.has_next_chunk)
        self.ticker_ensure()
        return self.result

    def tick(self, elapsed_ms: Optional[int] = None) -> Optional[RenderResult]:
        """
        Advance animations by one tick.

        Returns:
            A fresh RenderResult when anything visible changed, else None
        """
        self.closed_check()
        state_connectToLogger(self)
        if not self.scheduler.tick(elapsed_ms):
            return None
        self.result = RenderResult(nodes=self.scheduler.frames(), checkpoint=self.checkpoint,
                                   has_next_chunk=self.has_next_chunk)
        return self.result

    def loop_attach(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """
        Drive animation ticks from an asyncio loop; results go to on_update.

        Must be called from the loop's thread (defaults to the running loop).
        """
        self.closed_check()
        self._loop = loop or asyncio.get_running_loop()
        self.ticker_ensure()

    def ticker_ensure(self) -> None:
        if self._loop is None or self.scheduler.idle():
            return
        if self._ticker is None:
            self._ticker = AsyncioTicker(self.scheduler, self.ticker_fire, self._loop)
        self._ticker.start()

    def ticker_fire(self) -> bool:
        if self.closed:
            return False
        result = self.tick()
        if result is not None and self.config.on_update is not None:
            try:
                self.config.on_update(result)
            except Exception as exc:
                warn("on_update callback raised", exc)
        return not self.scheduler.idle()


def create_session(config: Union[SessionConfig, Mapping[str, Any], None] = None,
                   **options: Any) -> Session:
    """
    Validate configuration and build a Session.

    Args:
        config: SessionConfig, plain mapping (snake_case or camelCase keys) or None
        **options: Extra top-level keys merged over a mapping config

    Raises:
        ConfigError: the configuration is invalid

    Returns:
        A ready Session
    """
    if isinstance(config, SessionConfig) and not options:
        validated = config
    else:
        data: Dict[str, Any] = dict(config or {})
        data.update(options)
        try:
            validated = SessionConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(str(exc)) from exc

    session = Session(validated)
    state_connectToLogger(session)
    LOG(f"Session created with {len(validated.extensions)} extensions", level=1)
    return session
