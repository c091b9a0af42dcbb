"""
Extension definition models

Defines the shape of a pluggable markdown extension: a named unit with an
optional tokenizer, an optional renderer and the level it runs at.
"""

import re
from enum import Enum
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .tokens import BUILTIN_KINDS


class ExtensionLevel(Enum):
    """
    Where an extension's tokenizer is tried

    Block extensions run before the built-in block rules at every block
    start; inline extensions run before the built-in inline rules at every
    inline position.
    """
    BLOCK = "block"
    INLINE = "inline"


_NAME_PATTERN = re.compile(r'^[A-Za-z_][\w-]*$')


@dataclass
class ExtensionSpec:
    """
    Definition of a markdown extension

    Attributes:
        name: Unique extension name; also the default token type it renders
        level: ExtensionLevel (or "block"/"inline")
        tokenizer: (remaining) -> Token | None; tries to consume a prefix
        renderer: (token) -> str; renders tokens of type `name`
        start: (remaining) -> int | None; index where this extension could
               begin inside `remaining`, used to stop plain text runs early
               and to decide block attempts without lookahead
        description: Human-readable description

    Example:
        ExtensionSpec(
            name="mention",
            level="inline",
            start=lambda src: src.find("@") if "@" in src else None,
            tokenizer=mention_tokenize,
            renderer=lambda token: f'<span class="mention">{token.text}</span>',
        )
    """
    name: str
    level: Any = ExtensionLevel.INLINE
    tokenizer: Optional[Callable[..., Any]] = None
    renderer: Optional[Callable[..., Any]] = None
    start: Optional[Callable[..., Any]] = None
    description: str = ""

    def spec_validate(self) -> List[str]:
        """
        Check the shape of this spec.

        Returns:
            List of problems (empty when the definition is valid)
        """
        problems: List[str] = []

        if not isinstance(self.name, str) or not _NAME_PATTERN.match(self.name):
            problems.append(f"invalid extension name {self.name!r}")

        if not isinstance(self.level, ExtensionLevel):
            try:
                self.level = ExtensionLevel(self.level)
            except ValueError:
                problems.append(
                    f"extension {self.name!r}: level must be 'block' or 'inline', got {self.level!r}"
                )

        if self.tokenizer is None and self.renderer is None:
            problems.append(f"extension {self.name!r} has neither tokenizer nor renderer")

        for hook_name in ('tokenizer', 'renderer', 'start'):
            hook = getattr(self, hook_name)
            if hook is not None and not callable(hook):
                problems.append(f"extension {self.name!r}: {hook_name} is not callable")

        if self.start is not None and self.tokenizer is None:
            problems.append(f"extension {self.name!r}: start hint given without a tokenizer")

        return problems

    def overrides_builtin(self) -> bool:
        """True when the extension name shadows a built-in token kind"""
        return self.name in BUILTIN_KINDS
