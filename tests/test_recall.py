"""Recent-search store: ordering, cap, persistence and corrupt data."""
import json
import logging

import pytest

from fitsearch.recall import RecallStore, decode_entries, normalize_entries
from fitsearch.errors import StorageCorrupt


def _seeded(storage, entries):
    storage.set("recentSearches", json.dumps(entries))
    storage.writes.clear()
    return RecallStore(storage, key="recentSearches", cap=5)


@pytest.mark.asyncio
async def test_accepting_present_entry_moves_it_to_front(storage):
    """Known queries move to the front without growing the store."""

    store = _seeded(storage, ["brakes", "tires", "chain", "oil", "filter"])
    await store.load()

    result = await store.accept("chain")

    assert result == ["chain", "brakes", "tires", "oil", "filter"]
    assert json.loads(storage.get("recentSearches")) == result


@pytest.mark.asyncio
async def test_cap_keeps_most_recent_five(recall):
    for query in ["a1", "a2", "a3", "a4", "a5", "a6", "a7"]:
        await recall.accept(query)

    assert list(recall.entries) == ["a7", "a6", "a5", "a4", "a3"]


@pytest.mark.asyncio
async def test_accept_trims_and_ignores_blank(recall, storage):
    await recall.accept("  brakes  ")
    await recall.accept("   ")
    await recall.accept("")

    assert list(recall.entries) == ["brakes"]
    assert len(storage.writes) == 1


@pytest.mark.asyncio
async def test_every_change_is_one_whole_write(recall, storage):
    """Each accepted query is persisted as a complete JSON list in one call."""

    await recall.accept("brakes")
    await recall.accept("tires")

    assert [json.loads(value) for _, value in storage.writes] == [["brakes"], ["tires", "brakes"]]


@pytest.mark.asyncio
async def test_concurrent_accepts_persist_latest_state(recall, storage):
    import asyncio

    await asyncio.gather(recall.accept("one"), recall.accept("two"), recall.accept("three"))

    assert json.loads(storage.get("recentSearches")) == ["three", "two", "one"]


@pytest.mark.asyncio
async def test_missing_value_loads_empty(recall):
    assert await recall.load() == []
    assert recall.loaded


@pytest.mark.asyncio
@pytest.mark.parametrize("raw", ["{not json", '{"q": "brakes"}', '["ok", 3]'])
async def test_corrupt_value_loads_empty_and_logs(storage, raw, caplog):
    storage.set("recentSearches", raw)
    store = RecallStore(storage, key="recentSearches")

    with caplog.at_level(logging.WARNING, logger="fitsearch.recall"):
        assert await store.load() == []

    assert "Ignoring recent searches" in caplog.text


@pytest.mark.asyncio
async def test_loaded_entries_are_sanitized(storage):
    store = _seeded(storage, [" brakes", "brakes", "", "tires", "oil", "chain", "filter", "pads"])

    assert await store.load() == ["brakes", "tires", "oil", "chain", "filter"]


def test_matching_is_case_insensitive_substring(recall):
    recall.remember("tires")
    recall.remember("Brake pads")
    recall.remember("brakes")

    assert recall.matching("BRA") == ["brakes", "Brake pads"]
    assert recall.matching("") == ["brakes", "Brake pads", "tires"]
    assert recall.matching("chain") == []


def test_decode_entries_reports_shape_errors():
    assert decode_entries("k", None) == []
    with pytest.raises(StorageCorrupt):
        decode_entries("k", "[1, 2]")


def test_normalize_entries_keeps_first_occurrence():
    assert normalize_entries(["b", "a", "b", " "], cap=5) == ["b", "a"]


def test_cap_must_be_positive(storage):
    with pytest.raises(ValueError):
        RecallStore(storage, cap=0)
