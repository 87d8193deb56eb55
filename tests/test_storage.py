"""Tests for local key/value storage and persisted bounded caches."""

from __future__ import annotations

import json

from cutboard_browser.storage import LocalStorage, PersistentBoundedCache


def test_missing_file_reads_as_empty(tmp_path) -> None:
    storage = LocalStorage(tmp_path / "missing.json")
    assert storage.get_item("anything") is None


def test_set_item_persists_to_disk(tmp_path) -> None:
    path = tmp_path / "nested" / "local_storage.json"
    storage = LocalStorage(path)

    assert storage.set_item("key", "value")

    assert json.loads(path.read_text(encoding="utf-8")) == {"key": "value"}
    assert LocalStorage(path).get_item("key") == "value"


def test_remove_item(tmp_path) -> None:
    storage = LocalStorage(tmp_path / "ls.json")
    storage.set_item("a", "1")
    storage.set_item("b", "2")

    storage.remove_item("a")

    assert LocalStorage(storage.path).get_item("a") is None
    assert LocalStorage(storage.path).get_item("b") == "2"


def test_corrupt_storage_file_starts_empty(tmp_path) -> None:
    path = tmp_path / "ls.json"
    path.write_text("{not json", encoding="utf-8")
    storage = LocalStorage(path)

    assert storage.get_item("key") is None
    assert storage.set_item("key", "fresh")
    assert LocalStorage(path).get_item("key") == "fresh"


def test_non_object_storage_file_starts_empty(tmp_path) -> None:
    path = tmp_path / "ls.json"
    path.write_text("[1, 2, 3]", encoding="utf-8")
    assert LocalStorage(path).get_item("0") is None


class TestPersistentBoundedCache:
    def test_put_persists_json_object(self, tmp_path) -> None:
        storage = LocalStorage(tmp_path / "ls.json")
        cache = PersistentBoundedCache(storage, "icons", capacity=5)

        cache.put("a.com", "https://a.com/favicon.ico")

        assert json.loads(storage.get_item("icons")) == {"a.com": "https://a.com/favicon.ico"}

    def test_corrupted_value_yields_empty_cache(self, tmp_path) -> None:
        storage = LocalStorage(tmp_path / "ls.json")
        storage.set_item("icons", "definitely not json")
        cache = PersistentBoundedCache(storage, "icons", capacity=5)

        assert len(cache) == 0
        cache.put("a.com", "u")
        assert cache.get("a.com") == "u"

    def test_non_object_value_yields_empty_cache(self, tmp_path) -> None:
        storage = LocalStorage(tmp_path / "ls.json")
        storage.set_item("icons", '["a.com"]')
        assert len(PersistentBoundedCache(storage, "icons", capacity=5)) == 0

    def test_load_keeps_newest_entries_over_capacity(self, tmp_path) -> None:
        storage = LocalStorage(tmp_path / "ls.json")
        stored = {f"d{i}.com": f"u{i}" for i in range(8)}
        storage.set_item("icons", json.dumps(stored))

        cache = PersistentBoundedCache(storage, "icons", capacity=3)

        assert len(cache) == 3
        assert not cache.has("d4.com")
        assert [cache.get(f"d{i}.com") for i in (5, 6, 7)] == ["u5", "u6", "u7"]

    def test_eviction_is_persisted(self, tmp_path) -> None:
        storage = LocalStorage(tmp_path / "ls.json")
        cache = PersistentBoundedCache(storage, "icons", capacity=2)
        for domain in ("a", "b", "c"):
            cache.put(domain, domain.upper())

        assert json.loads(storage.get_item("icons")) == {"b": "B", "c": "C"}
