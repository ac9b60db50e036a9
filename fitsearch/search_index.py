"""Search-index lookups used by suggestions, compatibility and listings.

``SearchIndex.search`` is the single seam to Elasticsearch. Everything above it
works with :class:`~fitsearch.models.ResultItem` and never sees raw responses.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, List

from elasticsearch import ApiError, Elasticsearch, TransportError
from pydantic import ValidationError

from .config import settings
from .errors import LookupFailure
from .models import FacetValue, PriceStats, ResultItem, SearchOptions, SearchPage

logger = logging.getLogger(__name__)

TEXT_FIELDS = [
    "sku^4",
    "title^3",
    "title.autocomplete^1.5",
    "brand^2",
    "moto_name^1.5",
    "categories",
    "description",
]
HIGHLIGHT_FIELDS = ["title", "brand", "sku", "categories"]
CATEGORY_LEVELS = 4
CATEGORY_SEPARATOR = " > "
FACET_FIELDS = {
    "moto_name": "moto_name.raw",
    "brand": "brand.raw",
    "category": "hierarchical_categories.lvl0",
}
SUBCATEGORY_FACET = "subcategory"
DISTINCT_TOTAL = "distinct_total"
SORT_CLAUSES: Dict[str, List[Any]] = {
    "featured": ["_score"],
    "price_asc": [{"price": {"order": "asc", "missing": "_last"}}, "_score"],
    "price_desc": [{"price": {"order": "desc", "missing": "_last"}}, "_score"],
}


def category_level(value: str) -> int:
    return min(value.count(CATEGORY_SEPARATOR), CATEGORY_LEVELS - 1)


def _lucene_escape(text: str) -> str:
    return re.sub(r"([^0-9A-Za-z])", r"\\\1", text)


def _facet_terms(field: str, size: int, include: str | None = None) -> Dict[str, Any]:
    terms: Dict[str, Any] = {"field": field, "size": size}
    if include is not None:
        terms["include"] = include
    # Rows are per fitment group; count parts, not rows.
    return {"terms": terms, "aggs": {"parts": {"cardinality": {"field": settings.distinct_field}}}}


def _facet_aggs(filters: Dict[str, Any]) -> Dict[str, Any]:
    aggs: Dict[str, Any] = {}
    for name, field in FACET_FIELDS.items():
        size = settings.vehicle_facet_limit if name == "moto_name" else settings.facet_limit
        aggs[name] = _facet_terms(field, size)
    category = filters.get("category")
    if category:
        level = category_level(category)
        if level + 1 < CATEGORY_LEVELS:
            prefix = _lucene_escape(category + CATEGORY_SEPARATOR)
            aggs[SUBCATEGORY_FACET] = _facet_terms(
                f"hierarchical_categories.lvl{level + 1}", settings.facet_limit, include=f"{prefix}.*"
            )
    aggs["price_stats"] = {"stats": {"field": "price"}}
    return aggs


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _build_filters(filters: Dict[str, Any]) -> List[dict]:
    clauses: List[dict] = []
    if filters.get("sku"):
        clauses.append({"term": {"sku": str(filters["sku"])}})
    vehicles = [v for v in _as_list(filters.get("moto_name")) if v]
    if vehicles:
        clauses.append({"terms": {"moto_name.raw": vehicles}})
    brands = [b for b in _as_list(filters.get("brand")) if b]
    if brands:
        clauses.append({"terms": {"brand.raw": brands}})
    category = filters.get("category")
    if category:
        level = category_level(category)
        clauses.append({"term": {f"hierarchical_categories.lvl{level}": category}})
    price_range: Dict[str, float] = {}
    if filters.get("price_min") is not None:
        price_range["gte"] = filters["price_min"]
    if filters.get("price_max") is not None:
        price_range["lte"] = filters["price_max"]
    if price_range:
        clauses.append({"range": {"price": price_range}})
    return clauses


def build_query(query_text: str, options: SearchOptions, operator: str = "and") -> Dict[str, Any]:
    text = query_text.strip()
    if text:
        must: List[dict] = [
            {
                "multi_match": {
                    "query": text,
                    "fields": TEXT_FIELDS,
                    "type": "most_fields",
                    "operator": operator,
                    "lenient": True,
                }
            }
        ]
    else:
        must = [{"match_all": {}}]

    body: Dict[str, Any] = {
        "size": options.hits_per_page,
        "from": options.page * options.hits_per_page,
        "track_total_hits": True,
        "query": {"bool": {"must": must, "filter": _build_filters(options.filters)}},
        "sort": SORT_CLAUSES[options.sort],
    }
    if options.attributes_to_retrieve is not None:
        body["_source"] = options.attributes_to_retrieve
    else:
        body["highlight"] = {
            "fields": {name: {"number_of_fragments": 0} for name in HIGHLIGHT_FIELDS},
        }
        body["highlight"]["fields"]["description"] = {"fragment_size": 80, "number_of_fragments": 1}
    aggs: Dict[str, Any] = {}
    if options.distinct:
        body["collapse"] = {"field": settings.distinct_field}
        aggs[DISTINCT_TOTAL] = {"cardinality": {"field": settings.distinct_field}}
    if options.facets:
        aggs.update(_facet_aggs(options.filters))
    if aggs:
        body["aggs"] = aggs
    logger.debug("ES query payload=%s", body)
    return body


def parse_hit(hit: Dict[str, Any]) -> ResultItem:
    source = dict(hit.get("_source") or {})
    categories = source.get("categories")
    if isinstance(categories, str):
        source["categories"] = [categories]
    return ResultItem(
        **{
            **source,
            "object_id": str(hit.get("_id") or source.get("object_id") or ""),
            "score": hit.get("_score"),
            "highlight": hit.get("highlight") or {},
        }
    )


def _parse_facets(aggregations: Dict[str, Any]) -> Dict[str, List[FacetValue]]:
    facets: Dict[str, List[FacetValue]] = {}
    for name in [*FACET_FIELDS, SUBCATEGORY_FACET]:
        if name not in aggregations:
            continue
        buckets = aggregations[name].get("buckets", [])
        facets[name] = [
            FacetValue(value=str(b["key"]), count=b.get("parts", {}).get("value", b["doc_count"])) for b in buckets
        ]
    return facets


def _total_hits(response: Dict[str, Any]) -> int:
    distinct = (response.get("aggregations") or {}).get(DISTINCT_TOTAL)
    if distinct is not None:
        return int(distinct.get("value", 0))
    total = response.get("hits", {}).get("total", 0)
    if isinstance(total, dict):
        return int(total.get("value", 0))
    return int(total or 0)


class SearchIndex:
    def __init__(self, es: Elasticsearch, index: str = settings.es_index) -> None:
        self.es = es
        self.index = index

    async def _execute(self, query_text: str, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await asyncio.to_thread(self.es.search, index=self.index, body=body)
        except (ApiError, TransportError) as exc:
            logger.warning("search failed q=%r: %s", query_text, exc)
            raise LookupFailure(query_text, str(exc)) from exc
        return getattr(response, "body", response)

    async def search(self, query_text: str, options: SearchOptions | None = None) -> SearchPage:
        options = options or SearchOptions()
        query_text = query_text or ""
        response = await self._execute(query_text, build_query(query_text, options))
        relaxed = False
        # Retry with optional words when a multi-word query matches nothing.
        if not response.get("hits", {}).get("hits") and len(query_text.split()) > 1:
            response = await self._execute(query_text, build_query(query_text, options, operator="or"))
            relaxed = True

        try:
            hits = [parse_hit(hit) for hit in response.get("hits", {}).get("hits", [])]
        except ValidationError as exc:
            logger.warning("unexpected hit shape q=%r: %s", query_text, exc)
            raise LookupFailure(query_text, f"malformed hit: {exc.error_count()} error(s)") from exc
        page = SearchPage(
            query=query_text,
            hits=hits,
            nb_hits=_total_hits(response),
            page=options.page,
            hits_per_page=options.hits_per_page,
            took_ms=response.get("took", 0),
            relaxed=relaxed,
        )
        aggregations = response.get("aggregations")
        if options.facets and aggregations:
            page.facets = _parse_facets(aggregations)
            stats = aggregations.get("price_stats", {})
            page.price_stats = PriceStats(min=stats.get("min"), max=stats.get("max"))
        logger.info(
            "search q=%r hits=%s total=%s distinct=%s relaxed=%s took=%sms",
            query_text,
            len(hits),
            page.nb_hits,
            options.distinct,
            relaxed,
            page.took_ms,
        )
        return page
