"""
Data Protection Strategies.

Controls how cached values are exposed to readers:
    - CLONE: deep copy on every read (default)
    - FREEZE: deep copy, then convert containers and dataclass instances
      to read-only equivalents
    - REFERENCE: hand out the stored object itself

Primitives are immutable and bypass every strategy. FREEZE only reaches
into builtin containers and dataclasses; other objects are deep copied but
stay writable.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import pickle
from enum import Enum
from functools import lru_cache
from types import MappingProxyType
from typing import Any, Callable, Dict, Type

logger = logging.getLogger(__name__)

_PRIMITIVES = (type(None), bool, int, float, complex, str, bytes)


class DataStrategy(str, Enum):
    """How data is exposed when read from the cache."""

    CLONE = "clone"
    FREEZE = "freeze"
    REFERENCE = "reference"


def is_primitive(value: Any) -> bool:
    """Check if a value is an immutable scalar."""
    return isinstance(value, _PRIMITIVES)


def clone(value: Any) -> Any:
    """Deep copy a value, falling back to a pickle round trip."""
    try:
        return copy.deepcopy(value)
    except (TypeError, copy.Error) as e:
        logger.debug(f"deepcopy failed ({e}), falling back to pickle round trip")
        return pickle.loads(pickle.dumps(value))


@lru_cache(maxsize=None)
def _frozen_twin(cls: Type[Any]) -> Type[Any]:
    """Frozen dataclass with the same field names as ``cls``."""
    return dataclasses.make_dataclass(
        cls.__name__,
        [(f.name, f.type) for f in dataclasses.fields(cls)],
        frozen=True,
    )


def deep_freeze(value: Any) -> Any:
    """
    Recursively convert builtin containers to read-only equivalents.

    dict -> MappingProxyType, list/tuple -> tuple, set -> frozenset,
    bytearray -> bytes, dataclass instance -> frozen dataclass with the
    same fields. Other objects are returned unchanged.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        twin = _frozen_twin(type(value))
        return twin(**{
            f.name: deep_freeze(getattr(value, f.name))
            for f in dataclasses.fields(value)
        })
    if is_primitive(value):
        return value
    if isinstance(value, dict):
        return MappingProxyType({k: deep_freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(deep_freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(deep_freeze(item) for item in value)
    if isinstance(value, bytearray):
        return bytes(value)
    return value


def freeze(value: Any) -> Any:
    """Deep copy then deep freeze a value."""
    return deep_freeze(clone(value))


def reference(value: Any) -> Any:
    """Return the value itself."""
    return value


_STRATEGIES: Dict[DataStrategy, Callable[[Any], Any]] = {
    DataStrategy.CLONE: clone,
    DataStrategy.FREEZE: freeze,
    DataStrategy.REFERENCE: reference,
}


def apply_strategy(value: Any, strategy: DataStrategy) -> Any:
    """
    Transform a cached value according to a protection strategy.

    Args:
        value: The stored value
        strategy: Strategy to apply

    Returns:
        The value as it should be exposed to the reader
    """
    if is_primitive(value):
        return value
    return _STRATEGIES[DataStrategy(strategy)](value)
