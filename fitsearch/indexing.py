"""Index lifecycle for the parts catalog.

The mapping lives in ``product-mapping.json``: keyword ``sku`` (used for
collapsing and compatibility lookups), ``.raw`` keyword sub-fields for the
brand and vehicle facets and four hierarchical category levels.
"""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from elasticsearch import Elasticsearch
from elasticsearch.exceptions import BadRequestError, NotFoundError

from .config import settings

logger = logging.getLogger(__name__)


def load_mapping(mapping_path: Path) -> dict:
    with mapping_path.open("r", encoding="utf-8") as fh:
        body = json.load(fh)
    properties = body.get("mappings", {}).get("properties", {})
    if settings.distinct_field not in properties:
        raise ValueError(f"{mapping_path} does not map the distinct field {settings.distinct_field!r}")
    return body


async def ensure_index(es: Elasticsearch, index: str = settings.es_index) -> bool:
    """Create ``index`` from the mapping file. Returns True if it was created."""

    if await asyncio.to_thread(es.indices.exists, index=index):
        return False
    mapping_path = Path(settings.mapping_path)
    body = load_mapping(mapping_path)
    logger.info("Creating index %s using %s", index, mapping_path)
    try:
        await asyncio.to_thread(es.indices.create, index=index, body=body)
    except BadRequestError as exc:
        if getattr(exc, "error", "") == "resource_already_exists_exception":
            logger.info("Index %s was created concurrently", index)
            return False
        logger.exception("Failed to create index %s: %s", index, exc)
        raise
    return True


async def drop_index(es: Elasticsearch, index: str = settings.es_index) -> None:
    try:
        await asyncio.to_thread(es.indices.delete, index=index)
    except NotFoundError:
        logger.debug("Index %s did not exist", index)


async def index_is_empty(es: Elasticsearch, index: str = settings.es_index) -> bool:
    try:
        stats = await asyncio.to_thread(es.count, index=index)
    except NotFoundError:
        return True
    return stats.get("count", 0) == 0
