"""
streammark library: lexers, incremental tokenizer, detector, extension
registry, renderer, render cache, animation scheduler and session API.
"""

__version__ = "1.0.0"

from .blocks import BlockLexer
from .inline import InlineLexer
from .tokenizer import IncrementalTokenizer
from .detector import IncompleteConstructDetector, IncompleteConstruct
from .extensions import ExtensionRegistry, ConfigError, ExtensionError
from .latex import latex_extensions
from .renderer import HtmlRenderer
from .cache import RenderCache
from .animation import AnimationScheduler, AsyncioTicker, CancellationToken
from .session import Session, SessionClosedError, create_session
from .profile import Profile, ProfileError, load_profile
from .compiler import DocumentCompiler, frame_summarize
from .log import LOG, state_connectToLogger

__all__ = [
    "BlockLexer",
    "InlineLexer",
    "IncrementalTokenizer",
    "IncompleteConstructDetector",
    "IncompleteConstruct",
    "ExtensionRegistry",
    "ConfigError",
    "ExtensionError",
    "latex_extensions",
    "HtmlRenderer",
    "RenderCache",
    "AnimationScheduler",
    "AsyncioTicker",
    "CancellationToken",
    "Session",
    "SessionClosedError",
    "create_session",
    "Profile",
    "ProfileError",
    "load_profile",
    "DocumentCompiler",
    "frame_summarize",
    "LOG",
    "state_connectToLogger",
    "__version__",
]
