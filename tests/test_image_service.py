"""Tests for batched image preview loading."""

from __future__ import annotations

import pytest

from cutboard_browser.cache import BoundedCache
from cutboard_browser.models import IMAGE_CACHE_SIZE
from cutboard_browser.services.image_service import ImagePreviewLoader, default_image_cache


@pytest.fixture
def loader(fake_store):
    return ImagePreviewLoader(fake_store, BoundedCache(3))


@pytest.mark.asyncio
async def test_fetches_only_uncached_paths(fake_store, loader, make_entry) -> None:
    fake_store.images = {"a.png": "A", "b.png": "B"}
    loader.cache.put("a.png", "cached-A")
    entries = [
        make_entry(content_kind="image", image_path="a.png"),
        make_entry(content_kind="image", image_path="b.png"),
        make_entry(content_kind="image", image_path="b.png"),
    ]

    result = await loader.load_page(entries)

    assert result == {"a.png": "cached-A", "b.png": "B"}
    assert fake_store.calls_to("get_images_batch") == [((["b.png"],), {})]


@pytest.mark.asyncio
async def test_fully_cached_page_skips_store(fake_store, loader, make_entry) -> None:
    loader.cache.put("a.png", "A")
    await loader.load_page([make_entry(content_kind="image", image_path="a.png")])
    assert fake_store.calls_to("get_images_batch") == []


@pytest.mark.asyncio
async def test_store_failure_returns_cached_subset(fake_store, loader, make_entry) -> None:
    loader.cache.put("a.png", "A")
    fake_store.fail("get_images_batch")

    result = await loader.load_page(
        [
            make_entry(content_kind="image", image_path="a.png"),
            make_entry(content_kind="image", image_path="z.png"),
        ]
    )

    assert result == {"a.png": "A"}


@pytest.mark.asyncio
async def test_cache_capacity_bounds_previews(fake_store, loader, make_entry) -> None:
    fake_store.images = {f"{i}.png": str(i) for i in range(5)}
    entries = [make_entry(content_kind="image", image_path=f"{i}.png") for i in range(5)]

    await loader.load_page(entries)

    assert len(loader.cache) == 3
    assert [path for path, _ in loader.cache.items()] == ["2.png", "3.png", "4.png"]


def test_default_image_cache_is_shared() -> None:
    cache = default_image_cache()
    assert cache is default_image_cache()
    assert cache.capacity == IMAGE_CACHE_SIZE


def test_default_image_cache_per_capacity() -> None:
    small = default_image_cache(5)
    assert small.capacity == 5
    assert small is default_image_cache(5)
    assert small is not default_image_cache(6)
