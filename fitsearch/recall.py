"""Recent-search recall store.

The store is an ordered, de-duplicated, bounded list of accepted queries,
most recent first, persisted as one JSON array under a single storage key.
One instance per process is the convention; consumers receive it explicitly.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Iterable, List

from .config import settings
from .errors import StorageCorrupt
from .storage import KeyValueStorage

logger = logging.getLogger(__name__)


def normalize_entries(values: Iterable[str], cap: int) -> List[str]:
    """Trim, drop empties and duplicates (first occurrence wins), then cap."""
    entries: List[str] = []
    for value in values:
        text = value.strip()
        if text and text not in entries:
            entries.append(text)
    return entries[:cap]


def decode_entries(key: str, raw: str | None) -> List[str]:
    if raw is None:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StorageCorrupt(key, f"invalid JSON ({exc.msg})") from exc
    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        raise StorageCorrupt(key, "expected a JSON list of strings")
    return data


class RecallStore:
    def __init__(
        self,
        storage: KeyValueStorage,
        key: str = settings.recall_key,
        cap: int = settings.recall_cap,
    ) -> None:
        if cap < 1:
            raise ValueError("recall cap must be positive")
        self._storage = storage
        self.key = key
        self.cap = cap
        self._entries: List[str] = []
        self._loaded = False
        self._write_lock = asyncio.Lock()

    @property
    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def load(self) -> List[str]:
        raw = await asyncio.to_thread(self._storage.get, self.key)
        try:
            values = decode_entries(self.key, raw)
        except StorageCorrupt as exc:
            logger.warning("Ignoring recent searches: %s", exc)
            values = []
        self._entries = normalize_entries(values, self.cap)
        self._loaded = True
        logger.debug("recall loaded key=%s entries=%s", self.key, len(self._entries))
        return list(self._entries)

    async def ensure_loaded(self) -> None:
        if not self._loaded:
            await self.load()

    async def save(self) -> None:
        async with self._write_lock:
            # Serialize whatever is current once the lock is held so that a
            # queued writer never overwrites a newer list with an older one.
            payload = json.dumps(self._entries, ensure_ascii=False)
            await asyncio.to_thread(self._storage.set, self.key, payload)

    def remember(self, query: str) -> bool:
        """Move or insert ``query`` at the front. Returns False for blank input."""
        text = (query or "").strip()
        if not text:
            return False
        updated = [text] + [entry for entry in self._entries if entry != text]
        self._entries = updated[: self.cap]
        return True

    async def accept(self, query: str) -> List[str]:
        if self.remember(query):
            await self.save()
            logger.info("recall accepted q=%r size=%s", query.strip(), len(self._entries))
        return list(self._entries)

    def matching(self, query: str) -> List[str]:
        needle = (query or "").lower()
        if not needle:
            return list(self._entries)
        return [entry for entry in self._entries if needle in entry.lower()]
