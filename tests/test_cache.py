"""Tests for the bounded resource cache."""

from __future__ import annotations

import pytest

from cutboard_browser.cache import BoundedCache


def test_rejects_non_positive_capacity() -> None:
    with pytest.raises(ValueError):
        BoundedCache(0)


def test_get_missing_returns_none() -> None:
    cache: BoundedCache[str, int] = BoundedCache(2)
    assert cache.get("missing") is None
    assert not cache.has("missing")


def test_evicts_oldest_inserted_key_when_full() -> None:
    cache: BoundedCache[str, str] = BoundedCache(3)
    for key in ("a", "b", "c"):
        cache.put(key, key.upper())

    cache.put("d", "D")

    assert not cache.has("a")
    assert [k for k, _ in cache.items()] == ["b", "c", "d"]
    assert len(cache) == 3


def test_lookup_does_not_promote_key() -> None:
    cache: BoundedCache[str, int] = BoundedCache(2)
    cache.put("a", 1)
    cache.put("b", 2)
    assert cache.get("a") == 1

    cache.put("c", 3)

    assert "a" not in cache
    assert cache.has("b") and cache.has("c")


def test_overwrite_keeps_position_and_does_not_evict() -> None:
    cache: BoundedCache[str, int] = BoundedCache(2)
    cache.put("a", 1)
    cache.put("b", 2)

    cache.put("a", 10)

    assert cache.items() == [("a", 10), ("b", 2)]
    cache.put("c", 3)
    assert list(cache) == ["b", "c"]


def test_clear_empties_cache() -> None:
    cache: BoundedCache[str, int] = BoundedCache(2)
    cache.put("a", 1)
    cache.clear()
    assert len(cache) == 0
    assert cache.get("a") is None
