"""
Models package for streammark

Contains data structures and type definitions shared by the lexers, the
render pipeline and the CLI.
"""

from .state import ProgramState, pipeline
from .tokens import Token, TokenKind, Checkpoint, TokenizeResult, BUILTIN_KINDS
from .extensions import ExtensionSpec, ExtensionLevel
from .render import RenderNode, FrameNode, RenderResult, RevealState
from .session import SessionConfig, StreamingConfig, AnimationConfig, RenderOptions, SanitizeOptions

__all__ = [
    "ProgramState",
    "pipeline",
    "Token",
    "TokenKind",
    "Checkpoint",
    "TokenizeResult",
    "BUILTIN_KINDS",
    "ExtensionSpec",
    "ExtensionLevel",
    "RenderNode",
    "FrameNode",
    "RenderResult",
    "RevealState",
    "SessionConfig",
    "StreamingConfig",
    "AnimationConfig",
    "RenderOptions",
    "SanitizeOptions",
]
