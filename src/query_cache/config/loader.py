"""
Configuration Loader - YAML Loading with Validation.

A config document holds client settings, optionally nested under a
``query_client`` key, plus an optional ``profiles`` section of named
overlays:

    query_client:
      retry: 2
      profiles:
        fast:
          backoff:
            max_delay_seconds: 1

A retry_delay callable cannot be expressed in YAML; use ``backoff``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from query_cache.config.models import QueryClientConfig

logger = logging.getLogger(__name__)

SECTION_KEY = "query_client"
PROFILES_KEY = "profiles"


class ConfigLoader:
    """Builds QueryClientConfig objects from YAML files or mappings."""

    def __init__(self, base_path: Optional[Path] = None) -> None:
        """
        Args:
            base_path: Directory relative config paths are resolved against
        """
        self._base_path = base_path or Path(".")

    def load(
        self,
        config_path: Union[str, Path],
        profile: Optional[str] = None,
    ) -> QueryClientConfig:
        """
        Load and validate a YAML config file.

        Args:
            config_path: Path to the YAML document
            profile: Name of a profile in the document's ``profiles`` section

        Raises:
            FileNotFoundError: If the file doesn't exist
            KeyError: If the profile isn't defined
            ValidationError: If the resulting settings are invalid
        """
        path = Path(config_path)
        if not path.is_absolute():
            path = self._base_path / path

        with open(path, encoding="utf-8") as f:
            document = yaml.safe_load(f) or {}

        logger.debug(f"Loaded query client config from {path}")
        return self.load_from_dict(document, profile)

    def load_from_dict(
        self,
        document: Mapping[str, Any],
        profile: Optional[str] = None,
    ) -> QueryClientConfig:
        """Validate settings held in an in-memory mapping."""
        settings = dict(document.get(SECTION_KEY) or document)
        profiles = settings.pop(PROFILES_KEY, None) or {}

        if profile is not None:
            if profile not in profiles:
                raise KeyError(f"Profile not found: {profile}")
            settings = deep_merge(settings, profiles[profile])

        return QueryClientConfig.model_validate(settings)


def deep_merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge ``overlay`` into a copy of ``base``, recursing into nested mappings."""
    result = dict(base)
    for key, value in overlay.items():
        if isinstance(result.get(key), Mapping) and isinstance(value, Mapping):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(
    config_path: Union[str, Path],
    profile: Optional[str] = None,
    base_path: Optional[Path] = None,
) -> QueryClientConfig:
    """Load a config file with an optional profile applied."""
    return ConfigLoader(base_path=base_path).load(config_path, profile)
