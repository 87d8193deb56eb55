"""Tests for store payload parsing."""

from __future__ import annotations

from cutboard_browser.models import (
    FAVORITES_TARGET,
    EntryCounts,
    Query,
    parse_bucket,
    parse_entries,
    parse_entry,
    parse_entry_counts,
    parse_source_domain,
)


def test_parse_entry_reads_store_fields() -> None:
    entry = parse_entry(
        {
            "id": 3,
            "app_id": 1,
            "content_type": "image",
            "image_path": "img/3.png",
            "created_at": "2024-05-01 08:00:00",
            "is_favorite": 1,
            "is_sensitive": 0,
        }
    )
    assert entry is not None
    assert entry.content_kind == "image"
    assert entry.image_path == "img/3.png"
    assert entry.is_favorite is True
    assert entry.is_sensitive is False
    assert entry.text_body is None


def test_parse_entry_rejects_unknown_kind() -> None:
    assert parse_entry({"id": 1, "app_id": 1, "content_type": "video"}) is None


def test_parse_entries_skips_malformed_rows() -> None:
    rows = [{"id": 1, "app_id": 2, "content_type": "text"}, None, {"id": "x"}]
    assert [e.id for e in parse_entries(rows)] == [1]
    assert parse_entries({"not": "a list"}) == []


def test_parse_bucket_defaults() -> None:
    bucket = parse_bucket({"id": 5, "name": "Notes", "entry_count": "many"})
    assert bucket is not None
    assert bucket.display_name == "Notes"
    assert bucket.entry_count == 0
    assert parse_bucket({"name": "no id"}) is None


def test_parse_source_domain_requires_domain() -> None:
    assert parse_source_domain({"domain": "a.com", "count": 2}).count == 2
    assert parse_source_domain({"count": 2}) is None


def test_parse_entry_counts_missing_values_are_zero() -> None:
    assert parse_entry_counts({"image_count": 4}) == EntryCounts(0, 4)
    assert parse_entry_counts(None) == EntryCounts()


def test_decremented_never_goes_negative() -> None:
    counts = EntryCounts(text_count=0, image_count=2)
    assert counts.decremented("text") == EntryCounts(0, 2)
    assert counts.decremented("image") == EntryCounts(0, 1)


def test_favorites_mode() -> None:
    assert Query(target=FAVORITES_TARGET).favorites_mode
    assert not Query(target=3).favorites_mode
