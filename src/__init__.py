"""
streammark - Streaming incremental markdown renderer

Renders markdown that arrives chunk by chunk into stable, well-formed output.
"""

__version__ = "1.0.0"

from .lib import (
    create_session, Session, SessionClosedError, ConfigError, ExtensionError,
    latex_extensions, LOG, state_connectToLogger,
)
from .models import ExtensionSpec, ExtensionLevel, SessionConfig, Token

__all__ = [
    "create_session",
    "Session",
    "SessionClosedError",
    "ConfigError",
    "ExtensionError",
    "ExtensionSpec",
    "ExtensionLevel",
    "SessionConfig",
    "Token",
    "latex_extensions",
    "LOG",
    "state_connectToLogger",
    "__version__",
]
