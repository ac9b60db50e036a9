"""Durable key-value storage with Redis primary and in-memory fallback."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

import redis

from .config import settings

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


@dataclass
class RedisStorage:
    client: redis.Redis

    def get(self, key: str) -> Optional[str]:
        try:
            data = self.client.get(key)
        except redis.RedisError as exc:
            logger.warning("Redis get failed: %s", exc)
            return None
        if data is None:
            return None
        if isinstance(data, bytes):
            return data.decode("utf-8", errors="replace")
        return data

    def set(self, key: str, value: str) -> None:
        try:
            self.client.set(key, value)
        except redis.RedisError as exc:
            logger.warning("Redis set failed: %s", exc)


class InMemoryStorage:
    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self._store: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._store.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._store[key] = value


_storage: KeyValueStorage | None = None


def get_storage() -> KeyValueStorage:
    global _storage
    if _storage is not None:
        return _storage
    try:
        client = redis.Redis(host=settings.redis_host, port=settings.redis_port, decode_responses=False)
        client.ping()
        logger.info("Using Redis storage at %s:%s", settings.redis_host, settings.redis_port)
        _storage = RedisStorage(client)
    except redis.RedisError:
        logger.warning("Redis not available, recent searches will not survive a restart")
        _storage = InMemoryStorage()
    return _storage
