"""
Application settings and configuration

Uses pydantic-settings for type-safe configuration via environment variables.
All settings use STREAMMARK_ prefix (e.g., STREAMMARK_INTERVAL_MS=50).

Settings can also be loaded from a .env file in the project root. These are
process-wide defaults only; anything that varies per markdown widget lives in
the explicit SessionConfig passed to create_session().
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application configuration via environment variables.

    Environment variables use STREAMMARK_ prefix.

    Examples:
        STREAMMARK_INTERVAL_MS=50
        STREAMMARK_STEP=2
        STREAMMARK_PYGMENTS_STYLE=friendly
    """

    model_config = SettingsConfigDict(
        env_prefix="STREAMMARK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Animation defaults
    interval_ms: int = Field(
        default=30,
        ge=1,
        description="Milliseconds between animation ticks",
    )

    step: int = Field(
        default=1,
        ge=1,
        description="Characters revealed per tick for the typing effect",
    )

    fade_duration_ms: int = Field(
        default=200,
        ge=0,
        description="Duration of the one-shot fade-in transition",
    )

    # Incomplete construct placeholders
    incomplete_link_component: str = Field(
        default="incomplete-link",
        description="Component shown in place of a link that is still streaming",
    )

    incomplete_image_component: str = Field(
        default="incomplete-image",
        description="Component shown in place of an image that is still streaming",
    )

    # Rendering
    pygments_style: str = Field(
        default="monokai",
        description="Pygments style used when code highlighting is enabled",
    )

    # Logging
    default_verbosity: int = Field(
        default=0,
        ge=0,
        description="Verbosity for sessions that do not set one (0 = quiet)",
    )

    def placeholder_forKind(self, kind: str) -> str | None:
        """
        Default placeholder component id for an incomplete construct kind.

        Args:
            kind: Construct kind ("link", "image", ...)

        Returns:
            Component id, or None when the kind has no default placeholder

        Example:
            >>> AppSettings().placeholder_forKind("link")
            'incomplete-link'
        """
        if kind == "link":
            return self.incomplete_link_component
        if kind == "image":
            return self.incomplete_image_component
        return None


# Singleton instance - import this in your code
appsettings = AppSettings()
