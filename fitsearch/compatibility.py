"""Per-result compatibility lists ("fits these vehicles").

A catalog part is indexed once per fitment group, so looking its SKU up with
distinct results disabled returns every row and, together, every vehicle the
part fits. :class:`CompatibilityPanel` holds that list for one rendered result
and makes sure a late answer for a previous item never lands on a new one.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from .config import settings
from .errors import LookupFailure, StaleResult
from .models import ResultItem, SearchOptions
from .search_index import SearchIndex

logger = logging.getLogger(__name__)


def flatten_names(values: Iterable[Any]) -> List[str]:
    """Flatten nested name groups into one ordered list of trimmed names."""
    names: List[str] = []
    for value in values:
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            names.extend(flatten_names(value))
            continue
        text = str(value).strip()
        if text:
            names.append(text)
    return names


def dedupe(names: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(names))


def filter_names(names: Iterable[str], query: str) -> List[str]:
    needle = (query or "").lower()
    return [name for name in names if needle in name.lower()]


class CompatibilityResolver:
    def __init__(
        self,
        index: SearchIndex,
        *,
        attribute: str = settings.compat_attribute,
        lookup_size: int = settings.compat_lookup_size,
        deduplicate: bool = settings.dedupe_compatibility,
    ) -> None:
        self.index = index
        self.attribute = attribute
        self.lookup_size = lookup_size
        self.deduplicate = deduplicate

    async def resolve(self, item: ResultItem) -> List[str]:
        key = item.identifier
        options = SearchOptions(
            attributes_to_retrieve=[self.attribute],
            distinct=False,
            hits_per_page=self.lookup_size,
            filters={"sku": key},
        )
        try:
            page = await self.index.search(key, options)
        except LookupFailure as exc:
            logger.warning("Compatibility lookup failed for %s: %s", key, exc)
            return []
        values = [getattr(hit, self.attribute, None) for hit in page.hits]
        names = flatten_names(values)
        if self.deduplicate:
            names = dedupe(names)
        logger.debug("compatibility sku=%s rows=%s names=%s", key, len(page.hits), len(names))
        return names


class CompatibilityPanel:
    """Compatibility state for one rendered result."""

    def __init__(self, resolver: CompatibilityResolver) -> None:
        self.resolver = resolver
        self.item: Optional[ResultItem] = None
        self.names: List[str] = []
        self.visible = False
        self.query = ""
        self.resolved = False
        # In-flight resolutions keyed by item identifier.
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def current_identity(self) -> Optional[str]:
        return self.item.identifier if self.item is not None else None

    @property
    def fit_available(self) -> bool:
        return bool(self.names)

    @property
    def visible_names(self) -> List[str]:
        return filter_names(self.names, self.query)

    def _task_for(self, item: ResultItem) -> asyncio.Task:
        identity = item.identifier
        task = self._tasks.get(identity)
        if task is None:
            task = asyncio.ensure_future(self.resolver.resolve(item))
            self._tasks[identity] = task
            task.add_done_callback(lambda done, key=identity: self._forget(key, done))
        return task

    def _forget(self, identity: str, task: asyncio.Task) -> None:
        if self._tasks.get(identity) is task:
            del self._tasks[identity]

    async def bind(self, item: ResultItem) -> List[str]:
        """Show ``item``, resolving its compatibility list if it changed.

        Raises :class:`StaleResult` if another item was bound before this
        resolution finished; the panel keeps the newer item's state.
        """
        identity = item.identifier
        if identity == self.current_identity and self.resolved:
            return list(self.names)
        if identity != self.current_identity:
            self.item = item
            self.names = []
            self.resolved = False

        names = await asyncio.shield(self._task_for(item))
        if identity != self.current_identity:
            logger.debug("discarding compatibility for %s, panel now shows %s", identity, self.current_identity)
            raise StaleResult(identity)
        self.names = list(names)
        self.resolved = True
        return list(names)

    async def refresh(self) -> List[str]:
        if self.item is None:
            return []
        item = self.item
        self.item = None
        return await self.bind(item)

    def toggle_visibility(self) -> bool:
        self.visible = not self.visible
        return self.visible

    def filter(self, query: str) -> List[str]:
        self.query = query or ""
        return filter_names(self.names, self.query)
