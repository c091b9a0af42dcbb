"""
Centralized logging using Loguru with context-aware verbosity.

This module provides a LOG() function that respects the verbosity of the
currently connected context (a render Session or the CLI ProgramState)
without passing it through every lexer and renderer call.

Features:
- Context-aware logging tied to session/program verbosity
- Rich formatting with timestamps, colors, and metadata
- Safe across threads and asyncio tasks using contextvars
- warn() for failures that must always be visible (extension errors)

Usage:
    from lib.log import LOG, state_connectToLogger

    # At the start of Session.append() or a pipeline stage:
    state_connectToLogger(session)

    # Anywhere in that context:
    LOG("Session reset", level=1)
    LOG("Checkpoint moved to 120", level=2)
    LOG("Token paragraph-7 cache hit", level=3)
"""

from loguru import logger
from typing import Any, Optional
from contextvars import ContextVar
import sys

# Context variable to hold the current session/program state
_program_state: ContextVar[Optional[Any]] = ContextVar('program_state', default=None)

# Configure loguru with streammark-specific format
logger_format = (
    "<green>{time:HH:mm:ss}</green> │ "
    "<level>{level: <7}</level> │ "
    "<cyan>{function: <20}</cyan> @ "
    "<cyan>{line: <4}</cyan> ║ "
    "<level>{message}</level>"
)

logger.remove()  # Remove default handler
logger.add(sys.stderr, format=logger_format, level="DEBUG")


def state_connectToLogger(state: Any) -> None:
    """
    Connect a Session or ProgramState to the logging context.

    Call this on entry to every public session operation (and at the start
    of each CLI pipeline stage) so LOG() calls below it see the right
    verbosity.

    Args:
        state: Object with a `verbosity` attribute
    """
    _program_state.set(state)


def LOG(message: str, level: int = 1, **kwargs: Any) -> None:
    """
    Log message if current context's verbosity allows.

    Args:
        message: Log message to display
        level: Minimum verbosity level required (1=lifecycle, 2=per chunk, 3=per token)
        **kwargs: Additional loguru metadata

    Example:
        LOG("Finalized stream at 1337 chars", level=1)
        LOG("Re-tokenized 3 tail tokens", level=2)
    """
    state = _program_state.get()

    if state and hasattr(state, 'verbosity') and state.verbosity >= level:
        logger.opt(depth=1).debug(message, **kwargs)


def warn(message: str, exc: Optional[BaseException] = None) -> None:
    """
    Always-on warning, independent of verbosity.

    Used for isolated failures (a throwing extension or walk hook) that the
    engine recovers from but that a developer needs to see.

    Args:
        message: Warning text
        exc: Exception to attach (traceback is rendered by loguru)
    """
    logger.opt(depth=1, exception=exc).warning(message)
