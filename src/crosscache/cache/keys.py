"""Cache key codec for crosscache.

Keys can be given as a plain string or as an ordered sequence of segments:

    "reviews:42:page1"
    ["reviews", 42, "page1"]

Both normalize to the same canonical form, an immutable tuple of strings:

    ("reviews", "42", "page1")

Canonical keys are compared by tuple equality for lookups and by tuple
prefix for pattern invalidation, so ("reviews", "42") matches
("reviews", "42", "page1") but never ("reviews", "420").
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import orjson

Scalar = str | int | float | bool | None
Segment = Scalar | Mapping[str, object]
KeyInput = str | Sequence[Segment]
CanonicalKey = tuple[str, ...]

SEPARATOR = ":"

# Emitted to subscribers by clear(); never produced by canonicalize()
ALL_KEYS: CanonicalKey = ("*",)


def _render_segment(segment: Segment) -> str:
    if isinstance(segment, str):
        return segment
    if segment is None:
        return "null"
    if isinstance(segment, bool):
        return "true" if segment else "false"
    if isinstance(segment, float) and segment.is_integer():
        return str(int(segment))
    if isinstance(segment, Mapping):
        # Structurally equal filters must produce the same segment
        return orjson.dumps(segment, option=orjson.OPT_SORT_KEYS).decode()
    return str(segment)


def canonicalize(key: KeyInput) -> CanonicalKey:
    """Normalize a string or segment sequence into a canonical key."""
    if isinstance(key, tuple) and all(isinstance(part, str) for part in key):
        return key
    if isinstance(key, str):
        return tuple(key.split(SEPARATOR))
    if isinstance(key, (bytes, bytearray)):
        raise TypeError("Cache keys must be str or a sequence of segments, not bytes")
    return tuple(_render_segment(segment) for segment in key)


def is_prefix(pattern: CanonicalKey, candidate: CanonicalKey) -> bool:
    """Return True if ``pattern`` is a prefix of ``candidate``."""
    return len(pattern) <= len(candidate) and candidate[: len(pattern)] == pattern


def render(key: CanonicalKey) -> str:
    """Render a canonical key as a flat string for logs."""
    return SEPARATOR.join(key)


class CacheKeys:
    """Key builders for the cached review entities."""

    LISTING = "reviews"
    ENTITY = "review"

    @classmethod
    def listing(cls, owner_id: str, *rest: Segment) -> CanonicalKey:
        """Key (or pattern) for the listings owned by ``owner_id``."""
        return canonicalize([cls.LISTING, owner_id, *rest])

    @classmethod
    def entity(cls, subject_id: str) -> CanonicalKey:
        """Key for a single cached entity."""
        return canonicalize([cls.ENTITY, subject_id])
