"""
Session configuration models

Explicit, validated configuration for one streaming render session. Keys are
accepted both in snake_case and in the camelCase used by UI-layer callers
(hasNextChunk, enableAnimation, incompleteMarkdownComponentMap, ...).
"""

import re
from typing import Any, Callable, Dict, List, Optional, Set, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..config import appsettings
from .extensions import ExtensionSpec


BUILTIN_EFFECTS = ('fade-in', 'typing')

_TAG_PATTERN = re.compile(r'^[A-Za-z][A-Za-z0-9-]*$')


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )


class AnimationConfig(_ConfigModel):
    """
    Reveal animation options

    Attributes:
        effect: 'fade-in', 'typing', or a callable custom effect
                (state, config) -> bool returning True once the node is done
        interval: Milliseconds per tick
        step: Characters revealed per tick (typing)
        keep_prefix: Resume from the first differing character when content
                     is replaced instead of appended
        fade_duration: Milliseconds a fade-in transition lasts
    """
    effect: Union[str, Callable[..., Any]] = "fade-in"
    interval: int = Field(default_factory=lambda: appsettings.interval_ms, ge=1)
    step: int = Field(default_factory=lambda: appsettings.step, ge=1)
    keep_prefix: bool = False
    fade_duration: int = Field(default_factory=lambda: appsettings.fade_duration_ms, ge=0)

    @field_validator("effect")
    @classmethod
    def effect_check(cls, value: Any) -> Any:
        if isinstance(value, str) and value not in BUILTIN_EFFECTS:
            raise ValueError(f"unknown effect {value!r}; expected one of {BUILTIN_EFFECTS} or a callable")
        return value


class StreamingConfig(_ConfigModel):
    """Streaming state and animation switch"""
    has_next_chunk: bool = False
    enable_animation: bool = False
    animation_config: AnimationConfig = Field(default_factory=AnimationConfig)


class SanitizeOptions(_ConfigModel):
    """
    Sanitization of raw HTML that appears in the markdown source

    Tokens carrying raw HTML are cleaned with nh3 after rendering; link and
    image URLs are checked against `url_schemes` in every token.

    Attributes:
        enabled: Clean raw HTML and filter URL schemes
        tags: Tags allowed on top of nh3.ALLOWED_TAGS and the custom component tags
        attributes: Extra allowed attributes per tag
        url_schemes: URL schemes kept in href/src; relative URLs always pass
    """
    enabled: bool = True
    tags: Set[str] = Field(default_factory=set)
    attributes: Dict[str, Set[str]] = Field(default_factory=dict)
    url_schemes: Set[str] = Field(default_factory=lambda: {"http", "https", "mailto", "tel", "ftp"})

    @field_validator("url_schemes")
    @classmethod
    def urlSchemes_normalize(cls, value: Set[str]) -> Set[str]:
        return {scheme.lower().rstrip(":") for scheme in value}


class RenderOptions(_ConfigModel):
    """
    Built-in renderer options

    Attributes:
        open_links_in_new_tab: Add target="_blank" to rendered links
        paragraph_tag: Tag used instead of <p> for paragraphs
        highlight_code: Highlight fenced code with Pygments
        components: Custom HTML tag name -> component id
        sanitize: Raw HTML sanitization (SanitizeOptions)
    """
    open_links_in_new_tab: bool = False
    paragraph_tag: Optional[str] = None
    highlight_code: bool = False
    components: Dict[str, str] = Field(default_factory=dict)
    sanitize: SanitizeOptions = Field(default_factory=SanitizeOptions)

    @field_validator("paragraph_tag")
    @classmethod
    def paragraphTag_check(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not _TAG_PATTERN.match(value):
            raise ValueError(f"invalid paragraph tag {value!r}")
        return value

    @field_validator("components")
    @classmethod
    def components_check(cls, value: Dict[str, str]) -> Dict[str, str]:
        normalized = {}
        for tag, component in value.items():
            if not _TAG_PATTERN.match(tag):
                raise ValueError(f"invalid custom tag name {tag!r}")
            normalized[tag.lower()] = component
        return normalized


class SessionConfig(_ConfigModel):
    """
    Full configuration of a render session

    Attributes:
        extensions: Extension specs, tried in registration order
        renderer: Token type -> render override (token, renderer) -> str
        walk_tokens: Hook called on every token (pre-order) before rendering
        incomplete_markdown_component_map: Construct kind -> placeholder component id
        streaming: StreamingConfig
        render: RenderOptions
        on_error: Error channel receiving ExtensionError instances
        on_update: Called with a fresh RenderResult after animation ticks
        verbosity: LOG verbosity for this session
    """
    extensions: List[ExtensionSpec] = Field(default_factory=list)
    renderer: Dict[str, Callable[..., Any]] = Field(default_factory=dict)
    walk_tokens: Optional[Callable[..., Any]] = None
    incomplete_markdown_component_map: Dict[str, str] = Field(default_factory=dict)
    streaming: StreamingConfig = Field(default_factory=StreamingConfig)
    render: RenderOptions = Field(default_factory=RenderOptions)
    on_error: Optional[Callable[..., Any]] = None
    on_update: Optional[Callable[..., Any]] = None
    verbosity: int = Field(default_factory=lambda: appsettings.default_verbosity, ge=0)

    @field_validator("extensions")
    @classmethod
    def extensions_checkUnique(cls, value: List[ExtensionSpec]) -> List[ExtensionSpec]:
        seen = set()
        for spec in value:
            if spec.name in seen:
                raise ValueError(f"duplicate extension name {spec.name!r}")
            seen.add(spec.name)
        return value
