"""Tests for cache key canonicalization."""

import pytest

from crosscache.cache.keys import ALL_KEYS, CacheKeys, canonicalize, is_prefix, render


class TestCanonicalize:
    """Test key normalization."""

    def test_string_key_splits_on_separator(self) -> None:
        """String keys are split into segments."""
        assert canonicalize("user:42") == ("user", "42")

    def test_segment_key_renders_scalars(self) -> None:
        """Numbers and strings become string segments."""
        assert canonicalize(["reviews", 42, "page1"]) == ("reviews", "42", "page1")

    def test_string_and_segment_forms_are_equal(self) -> None:
        """Both input forms address the same entry."""
        assert canonicalize("reviews:42") == canonicalize(["reviews", 42])

    def test_bool_none_and_integral_float(self) -> None:
        """Special scalars render predictably."""
        assert canonicalize([True, False, None, 3.0, 2.5]) == (
            "true",
            "false",
            "null",
            "3",
            "2.5",
        )

    def test_mapping_segment_is_order_independent(self) -> None:
        """Filters with the same content produce the same segment."""
        first = canonicalize(["reviews", {"rating": 5, "sort": "new"}])
        second = canonicalize(["reviews", {"sort": "new", "rating": 5}])
        assert first == second
        assert first[1] == '{"rating":5,"sort":"new"}'

    def test_canonical_key_is_returned_unchanged(self) -> None:
        """Already canonical tuples pass through."""
        key = ("reviews", "42")
        assert canonicalize(key) is key

    def test_bytes_are_rejected(self) -> None:
        """Bytes are not a sequence of segments."""
        with pytest.raises(TypeError):
            canonicalize(b"reviews")


class TestPrefix:
    """Test prefix matching."""

    def test_prefix_matches_longer_key(self) -> None:
        assert is_prefix(("reviews", "42"), ("reviews", "42", "page1"))

    def test_prefix_matches_itself(self) -> None:
        assert is_prefix(("reviews", "42"), ("reviews", "42"))

    def test_prefix_is_segment_aware(self) -> None:
        """A partial segment never matches."""
        assert not is_prefix(("reviews", "42"), ("reviews", "420", "page1"))

    def test_longer_pattern_does_not_match(self) -> None:
        assert not is_prefix(("reviews", "42", "page1"), ("reviews", "42"))

    def test_render_joins_segments(self) -> None:
        assert render(("reviews", "42")) == "reviews:42"
        assert render(ALL_KEYS) == "*"


class TestCacheKeys:
    """Test entity key builders."""

    def test_listing_key(self) -> None:
        assert CacheKeys.listing("42") == ("reviews", "42")
        assert CacheKeys.listing("42", "page", 2) == ("reviews", "42", "page", "2")

    def test_entity_key(self) -> None:
        assert CacheKeys.entity("rev1") == ("review", "rev1")
