"""Suggestion federation: merge order, degradation and stale answers."""
import asyncio

import pytest

from fitsearch.errors import LookupFailure, StaleResult
from fitsearch.suggestions import SuggestionFederator
from tests.fakes import FakeIndex


@pytest.mark.asyncio
async def test_remote_hits_come_before_recall_matches(recall):
    recall.remember("tires")
    recall.remember("brakes")
    index = FakeIndex({"bra": [{"title": "Brake Pad", "sku": "42"}]})
    federator = SuggestionFederator(index, recall)

    items = await federator.get_suggestions("bra")

    assert [(item.source, item.text) for item in items] == [("remote", "Brake Pad"), ("recall", "brakes")]
    assert items[0].payload.sku == "42"


@pytest.mark.asyncio
async def test_one_remote_lookup_per_call(recall):
    index = FakeIndex()
    federator = SuggestionFederator(index, recall, hits=6)

    await federator.get_suggestions("b")
    await federator.get_suggestions("br")

    assert [query for query, _ in index.calls] == ["b", "br"]
    options = index.calls[0][1]
    assert options.hits_per_page == 6
    assert options.attributes_to_retrieve == ["sku", "title", "brand"]


@pytest.mark.asyncio
async def test_empty_query_returns_default_hits_and_all_recall(recall):
    recall.remember("tires")
    recall.remember("oil")
    index = FakeIndex({"": [{"title": "Top seller"}]})
    federator = SuggestionFederator(index, recall)

    items = await federator.get_suggestions("")

    assert [item.text for item in items] == ["Top seller", "oil", "tires"]


@pytest.mark.asyncio
async def test_lookup_failure_degrades_to_recall_only(recall):
    recall.remember("brakes")
    index = FakeIndex(error=LookupFailure("bra", "connection refused"))
    federator = SuggestionFederator(index, recall)

    items = await federator.get_suggestions("bra")

    assert [(item.source, item.text) for item in items] == [("recall", "brakes")]


@pytest.mark.asyncio
async def test_lookup_failure_with_no_recall_is_empty(recall):
    federator = SuggestionFederator(FakeIndex(error=LookupFailure("x", "timeout")), recall)

    assert await federator.get_suggestions("x") == []


@pytest.mark.asyncio
async def test_superseded_suggestions_are_discarded(recall):
    """An older query finishing late must not replace a newer answer."""

    index = FakeIndex({"b": [{"title": "Bolt"}], "br": [{"title": "Brake Pad"}]})
    slow = index.gate("b")
    federator = SuggestionFederator(index, recall)

    first = asyncio.create_task(federator.suggest("b"))
    await asyncio.sleep(0)
    latest = await federator.suggest("br")
    slow.set()

    assert [item.text for item in latest] == ["Brake Pad"]
    with pytest.raises(StaleResult):
        await first


@pytest.mark.asyncio
async def test_debounce_skips_lookup_for_superseded_input(recall):
    index = FakeIndex({"br": [{"title": "Brake Pad"}]})
    federator = SuggestionFederator(index, recall, debounce_ms=20)

    first = asyncio.create_task(federator.suggest("b"))
    await asyncio.sleep(0)
    latest = await federator.suggest("br")

    with pytest.raises(StaleResult):
        await first
    assert [item.text for item in latest] == ["Brake Pad"]
    assert [query for query, _ in index.calls] == ["br"]


@pytest.mark.asyncio
async def test_accepted_query_lands_in_recall(recall, storage):
    federator = SuggestionFederator(FakeIndex(), recall)

    assert await federator.on_query_accepted("chain") == ["chain"]
    assert storage.get("recentSearches") == '["chain"]'


@pytest.mark.asyncio
async def test_recall_suggestion_carries_its_entry(recall):
    recall.remember("Brakes")
    federator = SuggestionFederator(FakeIndex(), recall)

    items = await federator.get_suggestions("bra")

    assert items[0].source == "recall"
    assert items[0].payload == "Brakes"
