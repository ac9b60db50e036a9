"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _get_flag(name: str, default: str) -> bool:
    return _get_env(name, default).lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    es_host: str = _get_env("ES_HOST", "http://localhost:9200")
    es_index: str = _get_env("ES_INDEX", "parts")
    es_request_timeout: float = float(_get_env("ES_REQUEST_TIMEOUT", "2.0"))
    es_max_retries: int = int(_get_env("ES_MAX_RETRIES", "1"))
    mapping_path: str = _get_env("MAPPING_PATH", "product-mapping.json")
    catalog_path: str = _get_env("CATALOG_PATH", "catalog.json")
    redis_host: str = _get_env("REDIS_HOST", "localhost")
    redis_port: int = int(_get_env("REDIS_PORT", "6379"))
    load_on_startup: bool = _get_flag("LOAD_ON_STARTUP", "true")
    log_level: str = _get_env("LOG_LEVEL", "INFO")

    # Recall store (recent searches).
    recall_key: str = _get_env("RECALL_KEY", "recentSearches")
    recall_cap: int = int(_get_env("RECALL_CAP", "5"))

    # Suggestion federation.
    suggestion_hits: int = int(_get_env("SUGGESTION_HITS", "8"))
    suggest_debounce_ms: int = int(_get_env("SUGGEST_DEBOUNCE_MS", "0"))

    # Compatibility lookups.
    compat_attribute: str = _get_env("COMPAT_ATTRIBUTE", "moto_name")
    compat_lookup_size: int = int(_get_env("COMPAT_LOOKUP_SIZE", "100"))
    dedupe_compatibility: bool = _get_flag("DEDUPE_COMPATIBILITY", "false")

    # Result listing.
    distinct_field: str = _get_env("DISTINCT_FIELD", "sku")
    hits_per_page_options: tuple[int, ...] = (16, 32, 64)
    vehicle_facet_limit: int = int(_get_env("VEHICLE_FACET_LIMIT", "1000"))
    facet_limit: int = int(_get_env("FACET_LIMIT", "20"))
    snippet_words: int = int(_get_env("SNIPPET_WORDS", "10"))
    snippet_ellipsis: str = "…"


settings = Settings()
