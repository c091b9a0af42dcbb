"""
Extension registry for streammark

Holds the extensions of one session, in registration order, and runs their
hooks with failure isolation: a tokenizer, start hint, renderer or walk hook
that raises is reported on the session's error channel and skipped, and the
built-in behaviour takes over for that token.
"""

import copy
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..models.extensions import ExtensionLevel, ExtensionSpec
from ..models.tokens import Token
from .log import LOG, warn


class ConfigError(ValueError):
    """Invalid session configuration, raised before any chunk is processed"""


class ExtensionError(Exception):
    """
    A user hook failed while processing a chunk

    Attributes:
        extension: Name of the failing extension ("walkTokens" for the walk hook,
                   "renderer:<type>" for renderer overrides)
        phase: "start", "tokenize", "render" or "walk"
    """

    def __init__(self, extension: str, phase: str, cause: BaseException) -> None:
        super().__init__(f"extension {extension!r} failed during {phase}: {cause!r}")
        self.extension = extension
        self.phase = phase
        self.__cause__ = cause


def token_coerce(value: Any) -> Optional[Token]:
    """
    Accept a Token or a plain mapping ({"type", "raw", "text", ...}) from an
    extension tokenizer.
    """
    if value is None or isinstance(value, Token):
        return value
    if isinstance(value, Mapping):
        fields = dict(value)
        token_type = fields.pop('type')
        raw = fields.pop('raw')
        text = fields.pop('text', raw)
        children = [token_coerce(child) for child in fields.pop('children', [])]
        attrs = dict(fields.pop('attrs', {}))
        attrs.update(fields)
        return Token(type=token_type, raw=raw, text=text, children=children, attrs=attrs)
    raise TypeError(f"tokenizer returned {type(value).__name__}, expected Token or mapping")


class ExtensionRegistry:
    """
    Registry of extension definitions and hooks

    Maps extension names to ExtensionSpec objects and keeps the per-level
    rule lists in registration order (first registered wins on a tie).
    """

    def __init__(self, on_error: Optional[Callable[[ExtensionError], Any]] = None) -> None:
        self.specs: Dict[str, ExtensionSpec] = {}
        self.block_rules: List[ExtensionSpec] = []
        self.inline_rules: List[ExtensionSpec] = []
        self.walk_hook: Optional[Callable[[Token], Any]] = None
        self.on_error = on_error
        self.errors: List[ExtensionError] = []

    def register(self, spec: ExtensionSpec) -> None:
        """
        Register an extension definition

        Raises:
            ConfigError: invalid spec or duplicate name
        """
        problems = spec.spec_validate()
        if problems:
            raise ConfigError("; ".join(problems))
        if spec.name in self.specs:
            raise ConfigError(f"duplicate extension name {spec.name!r}")

        self.specs[spec.name] = spec
        if spec.tokenizer is not None:
            if spec.level == ExtensionLevel.BLOCK:
                self.block_rules.append(spec)
            else:
                self.inline_rules.append(spec)
        if spec.overrides_builtin():
            LOG(f"Extension {spec.name!r} overrides the built-in {spec.name} renderer", level=1)
        LOG(f"Registered {spec.level.value} extension {spec.name!r}", level=2)

    def walkHook_set(self, hook: Optional[Callable[[Token], Any]]) -> None:
        if hook is not None and not callable(hook):
            raise ConfigError("walk_tokens hook is not callable")
        self.walk_hook = hook

    def get(self, name: str) -> Optional[ExtensionSpec]:
        return self.specs.get(name)

    def blockRules_get(self) -> List[ExtensionSpec]:
        return self.block_rules

    def inlineRules_get(self) -> List[ExtensionSpec]:
        return self.inline_rules

    def renderer_get(self, token_type: str) -> Optional[Callable[[Token], str]]:
        """Renderer of the extension named after `token_type`, if any"""
        spec = self.specs.get(token_type)
        if spec is None:
            return None
        return spec.renderer

    def error_report(self, error: ExtensionError) -> None:
        """Send a hook failure to the log and the session error channel"""
        self.errors.append(error)
        warn(str(error))
        if self.on_error is None:
            return
        try:
            self.on_error(error)
        except Exception as exc:
            warn(f"on_error callback raised while reporting {error.extension!r}", exc)

    def start_run(self, spec: ExtensionSpec, remaining: str) -> Optional[int]:
        """Index where `spec` could start in `remaining`, None when it cannot"""
        try:
            hint = spec.start(remaining)
        except Exception as exc:
            self.error_report(ExtensionError(spec.name, 'start', exc))
            return None
        if hint is None or not isinstance(hint, int) or hint < 0:
            return None
        return hint

    def tokenizer_run(self, spec: ExtensionSpec, remaining: str) -> Optional[Token]:
        """
        Run an extension tokenizer against `remaining`.

        The returned token must consume a non-empty prefix of `remaining`;
        anything else counts as a failure of the extension.
        """
        try:
            token = token_coerce(spec.tokenizer(remaining))
            if token is not None and (not token.raw or not remaining.startswith(token.raw)):
                raise ValueError(f"token raw {token.raw!r} is not a prefix of the remaining input")
        except Exception as exc:
            self.error_report(ExtensionError(spec.name, 'tokenize', exc))
            return None
        if token is not None:
            LOG(f"Extension {spec.name!r} consumed {len(token.raw)} chars", level=3)
        return token

    def tokens_walk(self, tokens: List[Token]) -> List[Token]:
        """
        Run the walk hook on every token, pre-order.

        The hook sees a private deep copy so the tokenizer's own tokens stay
        untouched and the walk can be re-run on every chunk. A hook failing
        on one token is reported and the walk continues with the next token.

        Returns:
            The walked copy, or `tokens` itself when no hook is registered
        """
        if self.walk_hook is None:
            return tokens
        walked = copy.deepcopy(tokens)
        for top in walked:
            for token in top.walk():
                try:
                    self.walk_hook(token)
                except Exception as exc:
                    self.error_report(ExtensionError('walkTokens', 'walk', exc))
        return walked
