"""
Key Codec - Canonical Tokens and Partial Matching for Query Keys.

A query key is an ordered sequence of strings such as
``("users", "0", "profile")``. The store addresses entries by a canonical
token built by joining the segments with ``KEY_DELIMITER``.

Design Notes:
    - Segments must not contain the delimiter (documented, not enforced)
    - Partial matching is prefix-based and element-wise
    - Keys are normalized to tuples so they are hashable and immutable
"""

from __future__ import annotations

from typing import Sequence, Tuple, Union

KEY_DELIMITER = ":"

QueryKey = Tuple[str, ...]
QueryKeyLike = Union[Sequence[str], QueryKey]


def normalize_key(query_key: QueryKeyLike) -> QueryKey:
    """
    Normalize a key-like sequence into a tuple of segments.

    Args:
        query_key: Ordered sequence of key segments

    Returns:
        The key as a tuple

    Raises:
        TypeError: If a bare string (or bytes) is passed instead of a sequence
    """
    if isinstance(query_key, (str, bytes)):
        raise TypeError(
            f"query_key must be a sequence of strings, not {type(query_key).__name__}"
        )
    return tuple(query_key)


def encode(query_key: QueryKeyLike) -> str:
    """Join key segments into the canonical store token."""
    return KEY_DELIMITER.join(str(segment) for segment in normalize_key(query_key))


def decode(token: str) -> QueryKey:
    """Split a store token back into key segments."""
    return tuple(token.split(KEY_DELIMITER))


def partial_match(probe: QueryKeyLike, candidate: QueryKeyLike) -> bool:
    """
    Check whether ``probe`` is an element-wise prefix of ``candidate``.

    Example:
        >>> partial_match(["users", "0"], ["users", "0", "7"])
        True
        >>> partial_match(["users", "0"], ["users", "1"])
        False

    An empty probe matches every candidate.
    """
    probe_key = normalize_key(probe)
    candidate_key = normalize_key(candidate)

    if len(probe_key) > len(candidate_key):
        return False

    return all(
        probe_segment == candidate_segment
        for probe_segment, candidate_segment in zip(probe_key, candidate_key)
    )
