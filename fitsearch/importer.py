"""Catalog importer.

The catalog export holds one row per part and fitment group, so the same
``sku`` appears several times with different ``moto_name`` values.
"""
from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Iterable

from elasticsearch import Elasticsearch, helpers

from .config import settings
from .indexing import drop_index, ensure_index, index_is_empty
from .search_index import CATEGORY_LEVELS, CATEGORY_SEPARATOR

logger = logging.getLogger(__name__)


def _load_catalog(path: Path) -> list[dict]:
    if not path.exists():
        logger.warning("Catalog file %s is missing", path)
        return []
    # Detect Git LFS placeholder to avoid attempting to parse it as JSON.
    with path.open("r", encoding="utf-8") as fh:
        first_line = fh.readline()
        if first_line.startswith("version https://git-lfs.github.com/spec/v1"):
            logger.warning("Catalog file %s is a Git LFS pointer; real data not downloaded", path)
            return []
        fh.seek(0)
        return json.load(fh)


def hierarchical_categories(categories: list[str]) -> dict:
    levels: dict[str, str] = {}
    for depth in range(min(len(categories), CATEGORY_LEVELS)):
        levels[f"lvl{depth}"] = CATEGORY_SEPARATOR.join(categories[: depth + 1])
    return levels


def _prepare_product(raw: dict, row: int) -> dict:
    sku = str(raw.get("sku") or raw.get("product_code") or "")
    categories = raw.get("categories") or []
    if isinstance(categories, str):
        categories = [part.strip() for part in categories.split(CATEGORY_SEPARATOR) if part.strip()]

    price = raw.get("price", raw.get("cena"))
    try:
        price = float(price) if price not in (None, "") else None
    except (TypeError, ValueError):
        logger.debug("Unparseable price %r for sku %s", price, sku)
        price = None

    product = {
        "object_id": str(raw.get("objectID") or raw.get("object_id") or f"{sku}-{row}"),
        "sku": sku,
        "title": raw.get("title") or raw.get("name") or "",
        "brand": raw.get("brand") or "",
        "price": price,
        "status": raw.get("status"),
        "url": raw.get("url"),
        "image": raw.get("image"),
        "description": raw.get("description") or "",
        "categories": categories,
        "hierarchical_categories": hierarchical_categories(categories),
        "moto_name": raw.get("moto_name") or [],
    }
    return product


def _iter_actions(index: str, products: Iterable[dict]) -> Iterable[dict]:
    for product in products:
        yield {
            "_index": index,
            "_id": product["object_id"],
            "_source": product,
        }


async def import_products(es: Elasticsearch) -> int:
    rows = _load_catalog(Path(settings.catalog_path))
    if not rows:
        return 0
    products = [_prepare_product(item, row) for row, item in enumerate(rows)]
    actions = list(_iter_actions(settings.es_index, products))
    await asyncio.to_thread(helpers.bulk, es, actions)
    logger.info("Indexed %s catalog rows into %s", len(actions), settings.es_index)
    return len(actions)


async def import_if_empty(es: Elasticsearch) -> int:
    if not await index_is_empty(es, settings.es_index):
        return 0
    return await import_products(es)


async def reindex_data(es: Elasticsearch) -> int:
    await drop_index(es)
    await ensure_index(es)
    return await import_products(es)
