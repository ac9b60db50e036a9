"""FastAPI application wiring search, suggestions and compatibility lookups."""
from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import List, Optional, Set

from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect

from .compatibility import CompatibilityResolver, filter_names
from .config import settings
from .errors import LookupFailure, StaleResult
from .es_client import get_client
from .importer import import_if_empty, reindex_data
from .indexing import ensure_index, index_is_empty
from .models import (
    AcceptRequest,
    CompatibilityResponse,
    RecentSearchesResponse,
    ResultItem,
    SearchOptions,
    SearchResponse,
    SortOrder,
    SuggestionsResponse,
)
from .presentation import to_view
from .recall import RecallStore
from .search_index import SearchIndex
from .storage import get_storage
from .suggestions import SuggestionFederator

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "elastic_transport"):
    logging.getLogger(name).setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())

app = FastAPI(title="Parts Search Service")


def get_index() -> SearchIndex:
    return SearchIndex(get_client(), settings.es_index)


@lru_cache(maxsize=1)
def _recall_store() -> RecallStore:
    return RecallStore(get_storage(), settings.recall_key, settings.recall_cap)


async def get_recall_store() -> RecallStore:
    store = _recall_store()
    await store.ensure_loaded()
    return store


def get_federator(
    index: SearchIndex = Depends(get_index),
    recall: RecallStore = Depends(get_recall_store),
) -> SuggestionFederator:
    return SuggestionFederator(index, recall)


def get_resolver(index: SearchIndex = Depends(get_index)) -> CompatibilityResolver:
    return CompatibilityResolver(index)


@app.on_event("startup")
async def startup_event() -> None:
    es = get_client()
    await ensure_index(es)
    if settings.load_on_startup:
        imported = await import_if_empty(es)
        if imported:
            logger.info("Imported %s catalog rows on startup", imported)
    await get_recall_store()


@app.get("/health")
async def health(recall: RecallStore = Depends(get_recall_store)) -> dict:
    es = get_client()
    status = await asyncio.to_thread(es.cluster.health)
    empty = await index_is_empty(es)
    return {
        "elasticsearch": status.get("status"),
        "index": settings.es_index,
        "empty": empty,
        "recent_searches": len(recall.entries),
    }


@app.get("/search", response_model=SearchResponse)
async def search(
    q: str = Query("", description="Search query"),
    page: int = Query(1, ge=1),
    hits_per_page: int = Query(16),
    sort: SortOrder = Query("featured"),
    moto_name: Optional[List[str]] = Query(None, description="Vehicle refinements"),
    brand: Optional[List[str]] = Query(None, description="Brand refinements"),
    category: Optional[str] = Query(None, description="Category path, levels joined by ' > '"),
    price_min: Optional[float] = Query(None, ge=0),
    price_max: Optional[float] = Query(None, ge=0),
    index: SearchIndex = Depends(get_index),
) -> SearchResponse:
    if hits_per_page not in settings.hits_per_page_options:
        raise HTTPException(status_code=400, detail=f"hits_per_page must be one of {list(settings.hits_per_page_options)}")
    filters = {
        "moto_name": moto_name,
        "brand": brand,
        "category": category,
        "price_min": price_min,
        "price_max": price_max,
    }
    options = SearchOptions(
        hits_per_page=hits_per_page,
        page=page - 1,
        sort=sort,
        filters={key: value for key, value in filters.items() if value is not None},
        facets=True,
    )
    try:
        result = await index.search(q, options)
    except LookupFailure as exc:
        raise HTTPException(status_code=503, detail="Search index unavailable") from exc
    return SearchResponse(
        query=result.query,
        results=[to_view(hit) for hit in result.hits],
        nb_hits=result.nb_hits,
        page=page,
        hits_per_page=hits_per_page,
        facets=result.facets,
        price_stats=result.price_stats,
        took_ms=result.took_ms,
    )


@app.get("/suggestions", response_model=SuggestionsResponse)
async def suggestions(
    q: str = Query("", description="Current query input"),
    federator: SuggestionFederator = Depends(get_federator),
) -> SuggestionsResponse:
    items = await federator.get_suggestions(q)
    return SuggestionsResponse(query=q, suggestions=items, count=len(items))


@app.post("/searches", response_model=RecentSearchesResponse)
async def accept_search(
    payload: AcceptRequest,
    federator: SuggestionFederator = Depends(get_federator),
) -> RecentSearchesResponse:
    if not payload.query.strip():
        raise HTTPException(status_code=400, detail="Query must not be empty")
    searches = await federator.on_query_accepted(payload.query)
    return RecentSearchesResponse(searches=searches)


@app.get("/searches/recent", response_model=RecentSearchesResponse)
async def recent_searches(recall: RecallStore = Depends(get_recall_store)) -> RecentSearchesResponse:
    return RecentSearchesResponse(searches=list(recall.entries))


@app.get("/items/{sku}/compatibility", response_model=CompatibilityResponse)
async def compatibility(
    sku: str,
    q: str = Query("", description="Filter applied to the vehicle names"),
    resolver: CompatibilityResolver = Depends(get_resolver),
) -> CompatibilityResponse:
    names = await resolver.resolve(ResultItem(object_id=sku, sku=sku))
    return CompatibilityResponse(
        sku=sku,
        query=q,
        names=filter_names(names, q),
        total=len(names),
        fit_available=bool(names),
    )


@app.websocket("/ws/suggest")
async def suggest_socket(
    websocket: WebSocket,
    index: SearchIndex = Depends(get_index),
    recall: RecallStore = Depends(get_recall_store),
) -> None:
    """One suggestion session per connection; superseded answers are dropped."""
    await websocket.accept()
    federator = SuggestionFederator(index, recall)
    pending: Set[asyncio.Task] = set()

    async def answer(query: str) -> None:
        try:
            items = await federator.suggest(query)
        except StaleResult:
            return
        await websocket.send_json(
            {"query": query, "suggestions": [item.model_dump() for item in items]}
        )

    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                message = None
            if not isinstance(message, dict):
                await websocket.send_json({"error": "messages must be JSON objects"})
                continue
            if "accept" in message:
                searches = await federator.on_query_accepted(str(message["accept"]))
                await websocket.send_json({"recent": searches})
                continue
            task = asyncio.create_task(answer(str(message.get("query", ""))))
            pending.add(task)
            task.add_done_callback(pending.discard)
    except WebSocketDisconnect:
        logger.debug("suggestion session closed")
    finally:
        for task in list(pending):
            task.cancel()


@app.post("/reindex")
async def reindex() -> dict:
    es = get_client()
    count = await reindex_data(es)
    return {"indexed": count}
