"""Elasticsearch client factory.

One synchronous client is shared by the API, the importer and the CLI;
``SearchIndex`` and the indexing helpers push its blocking calls onto a
worker thread with ``asyncio.to_thread``. Timeouts and retries belong to the
transport configured here, not to the callers.
"""
from __future__ import annotations

import logging
from functools import lru_cache

from elasticsearch import Elasticsearch

from .config import settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_client() -> Elasticsearch:
    logger.info(
        "Connecting to Elasticsearch at %s (timeout=%ss, retries=%s)",
        settings.es_host,
        settings.es_request_timeout,
        settings.es_max_retries,
    )
    return Elasticsearch(
        settings.es_host,
        request_timeout=settings.es_request_timeout,
        max_retries=settings.es_max_retries,
        retry_on_timeout=True,
    )
