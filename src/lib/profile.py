"""
Session profiles loaded from YAML.

A profile file carries the declarative part of a SessionConfig (everything
except callables):

    streaming:
      hasNextChunk: true
      enableAnimation: true
      animationConfig:
        effect: typing
        step: 2
    render:
      openLinksInNewTab: true
      components:
        think: ThinkBlock
    incompleteMarkdownComponentMap:
      html: html-loading
    verbosity: 1
"""

import yaml
from pathlib import Path
from typing import Any, Dict, Union

from pydantic import ValidationError

from ..models.session import SessionConfig


class ProfileError(Exception):
    """Raised when a profile cannot be read or does not validate"""
    pass


CALLABLE_KEYS = frozenset({
    'extensions', 'renderer', 'walk_tokens', 'walkTokens',
    'on_error', 'onError', 'on_update', 'onUpdate',
})


class Profile:
    """
    A named, file-backed set of session options.
    """

    def __init__(self, path: Union[str, Path]):
        """
        Load a profile from a YAML file.

        Args:
            path: Profile file path

        Raises:
            ProfileError: If the file is missing, unparsable or not a mapping
        """
        self.path = Path(path)
        self.name = self.path.stem
        if not self.path.exists():
            raise ProfileError(f"Profile '{self.path}' not found")
        self.config = self._config_load()

    def _config_load(self) -> Dict[str, Any]:
        """Load and parse the YAML file"""
        try:
            with open(self.path, 'r') as f:
                config: Any = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ProfileError(f"Failed to parse {self.path.name}: {e}")
        except OSError as e:
            raise ProfileError(f"Failed to load {self.path.name}: {e}")

        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ProfileError(f"{self.path.name}: top level must be a mapping")
        forbidden = CALLABLE_KEYS.intersection(config)
        if forbidden:
            raise ProfileError(
                f"{self.path.name}: {', '.join(sorted(forbidden))} cannot be set from a profile"
            )
        return config

    def config_get(self, key: str, default: Any = None) -> Any:
        """
        Get a value with dot notation, e.g. 'streaming.animationConfig.step'
        """
        value: Any = self.config
        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def sessionConfig_build(self, **overrides: Any) -> SessionConfig:
        """
        Validate the profile into a SessionConfig.

        Args:
            **overrides: Extra keys (typically callables) merged on top

        Raises:
            ProfileError: If validation fails
        """
        data = dict(self.config)
        data.update(overrides)
        try:
            return SessionConfig.model_validate(data)
        except ValidationError as e:
            raise ProfileError(f"{self.path.name}: invalid session options: {e}")

    def __repr__(self) -> str:
        return f"Profile(name='{self.name}', path='{self.path}')"


def load_profile(path: Union[str, Path], **overrides: Any) -> SessionConfig:
    """Load and validate a profile file in one step"""
    return Profile(path).sessionConfig_build(**overrides)
