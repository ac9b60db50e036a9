"""Compatibility lists: lookup shape, post-processing and identity changes."""
import asyncio

import pytest

from fitsearch.compatibility import (
    CompatibilityPanel,
    CompatibilityResolver,
    dedupe,
    filter_names,
    flatten_names,
)
from fitsearch.errors import LookupFailure, StaleResult
from fitsearch.models import ResultItem
from tests.fakes import FakeIndex

ROWS_42 = [{"moto_name": "CB500"}, {"moto_name": ""}, {"moto_name": "CB500"}, {"moto_name": "R6"}]


def _item(sku: str) -> ResultItem:
    return ResultItem(object_id=f"obj-{sku}", sku=sku, title=f"Part {sku}")


@pytest.mark.asyncio
async def test_empty_names_are_discarded_without_dedup():
    resolver = CompatibilityResolver(FakeIndex({"42": ROWS_42}), deduplicate=False)

    assert await resolver.resolve(_item("42")) == ["CB500", "CB500", "R6"]


@pytest.mark.asyncio
async def test_dedup_flag_keeps_first_occurrence():
    resolver = CompatibilityResolver(FakeIndex({"42": ROWS_42}), deduplicate=True)

    assert await resolver.resolve(_item("42")) == ["CB500", "R6"]


@pytest.mark.asyncio
async def test_lookup_is_keyed_on_sku_with_distinct_disabled():
    index = FakeIndex({"42": ROWS_42})
    resolver = CompatibilityResolver(index, lookup_size=250)

    await resolver.resolve(_item("42"))

    query, options = index.calls[0]
    assert query == "42"
    assert options.attributes_to_retrieve == ["moto_name"]
    assert options.distinct is False
    assert options.hits_per_page == 250
    assert options.filters == {"sku": "42"}


@pytest.mark.asyncio
async def test_list_valued_rows_are_flattened_in_order():
    rows = [{"moto_name": ["CB500", " CBR600 "]}, {"moto_name": "R6"}, {"moto_name": None}]
    resolver = CompatibilityResolver(FakeIndex({"7": rows}))

    assert await resolver.resolve(_item("7")) == ["CB500", "CBR600", "R6"]


@pytest.mark.asyncio
async def test_no_matches_is_empty():
    resolver = CompatibilityResolver(FakeIndex({"9": [{"moto_name": ""}]}))

    assert await resolver.resolve(_item("9")) == []
    assert await resolver.resolve(_item("missing")) == []


@pytest.mark.asyncio
async def test_lookup_failure_resolves_to_empty():
    resolver = CompatibilityResolver(FakeIndex(error=LookupFailure("42", "timeout")))
    panel = CompatibilityPanel(resolver)

    assert await panel.bind(_item("42")) == []
    assert panel.fit_available is False


@pytest.mark.asyncio
async def test_later_item_wins_over_slow_earlier_item():
    """A resolution for a replaced item is dropped when it completes."""

    index = FakeIndex({"A": [{"moto_name": "CB500"}], "B": [{"moto_name": "R6"}]})
    slow_a = index.gate("A")
    panel = CompatibilityPanel(CompatibilityResolver(index))

    first = asyncio.create_task(panel.bind(_item("A")))
    await asyncio.sleep(0)
    assert await panel.bind(_item("B")) == ["R6"]
    slow_a.set()

    with pytest.raises(StaleResult):
        await first
    assert panel.names == ["R6"]
    assert panel.current_identity == "B"


@pytest.mark.asyncio
async def test_earlier_item_finishing_first_is_still_dropped():
    index = FakeIndex({"A": [{"moto_name": "CB500"}], "B": [{"moto_name": "R6"}]})
    gate_a, gate_b = index.gate("A"), index.gate("B")
    panel = CompatibilityPanel(CompatibilityResolver(index))

    first = asyncio.create_task(panel.bind(_item("A")))
    second = asyncio.create_task(panel.bind(_item("B")))
    await asyncio.sleep(0)
    gate_a.set()
    with pytest.raises(StaleResult):
        await first
    assert panel.names == []

    gate_b.set()
    assert await second == ["R6"]
    assert panel.names == ["R6"]


@pytest.mark.asyncio
async def test_same_identity_does_not_resolve_twice():
    index = FakeIndex({"42": ROWS_42})
    panel = CompatibilityPanel(CompatibilityResolver(index))

    await panel.bind(_item("42"))
    await panel.bind(_item("42"))

    assert len(index.calls) == 1


@pytest.mark.asyncio
async def test_refresh_resolves_again():
    index = FakeIndex({"42": ROWS_42})
    panel = CompatibilityPanel(CompatibilityResolver(index))

    await panel.bind(_item("42"))
    await panel.refresh()

    assert len(index.calls) == 2
    assert panel.names == ["CB500", "CB500", "R6"]


@pytest.mark.asyncio
async def test_toggle_and_filter_leave_resolution_alone():
    index = FakeIndex({"42": [{"moto_name": "Honda CB500"}, {"moto_name": "Yamaha R6"}]})
    panel = CompatibilityPanel(CompatibilityResolver(index))
    await panel.bind(_item("42"))

    assert panel.toggle_visibility() is True
    assert panel.toggle_visibility() is False
    assert panel.filter("yam") == ["Yamaha R6"]
    assert panel.visible_names == ["Yamaha R6"]
    assert panel.names == ["Honda CB500", "Yamaha R6"]
    assert len(index.calls) == 1


def test_filter_is_idempotent_and_empty_returns_all():
    names = ["Honda CB500", "Honda CBR600", "Yamaha R6"]

    once = filter_names(names, "CB")
    assert filter_names(once, "CB") == once == ["Honda CB500", "Honda CBR600"]
    assert filter_names(names, "") == names


def test_flatten_and_dedupe_helpers():
    assert flatten_names([["a", ["b", ""]], "  c ", None]) == ["a", "b", "c"]
    assert dedupe(["a", "b", "a"]) == ["a", "b"]
