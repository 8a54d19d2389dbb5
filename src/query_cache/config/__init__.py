"""
Configuration Package - Models and Loaders.

    - Pydantic models for type-safe configuration
    - YAML loader with validation
    - Support for configuration profiles
"""

from query_cache.config.loader import ConfigLoader, load_config
from query_cache.config.models import (
    DEFAULT_GC_TIME,
    DEFAULT_RETRY,
    DEFAULT_STALE_TIME,
    BackoffConfig,
    QueryClientConfig,
)

__all__ = [
    "BackoffConfig",
    "ConfigLoader",
    "DEFAULT_GC_TIME",
    "DEFAULT_RETRY",
    "DEFAULT_STALE_TIME",
    "QueryClientConfig",
    "load_config",
]
