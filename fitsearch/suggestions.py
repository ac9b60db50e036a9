"""Query suggestion federation.

Each keystroke produces one remote lookup against the search index and one
local pass over the recall store. Remote hits come first, recall matches are
appended. A failed lookup only costs the remote half of the list.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from typing import List

from .config import settings
from .errors import LookupFailure, StaleResult
from .models import ResultItem, SearchOptions, SuggestionItem
from .recall import RecallStore
from .search_index import SearchIndex

logger = logging.getLogger(__name__)

SUGGESTION_FIELDS = ["sku", "title", "brand"]


class SuggestionFederator:
    def __init__(
        self,
        index: SearchIndex,
        recall: RecallStore,
        *,
        hits: int = settings.suggestion_hits,
        debounce_ms: int = settings.suggest_debounce_ms,
    ) -> None:
        self.index = index
        self.recall = recall
        self.hits = hits
        self.debounce = max(debounce_ms, 0) / 1000
        self._tickets = itertools.count(1)
        self._latest = 0

    async def _remote(self, query: str) -> List[ResultItem]:
        options = SearchOptions(attributes_to_retrieve=SUGGESTION_FIELDS, hits_per_page=self.hits)
        try:
            page = await self.index.search(query, options)
        except LookupFailure as exc:
            logger.warning("Remote suggestions unavailable, using recent searches only: %s", exc)
            return []
        return page.hits

    async def get_suggestions(self, query: str) -> List[SuggestionItem]:
        query = query or ""
        remote_task = asyncio.ensure_future(self._remote(query))
        recall_matches = self.recall.matching(query)
        remote_hits = await remote_task

        items = [SuggestionItem.from_hit(hit) for hit in remote_hits]
        items.extend(SuggestionItem.from_recall(entry) for entry in recall_matches)
        logger.debug("suggestions q=%r remote=%s recall=%s", query, len(remote_hits), len(recall_matches))
        return items

    def _check_current(self, ticket: int, query: str) -> None:
        if ticket != self._latest:
            logger.debug("dropping stale suggestions q=%r ticket=%s latest=%s", query, ticket, self._latest)
            raise StaleResult(query)

    async def suggest(self, query: str) -> List[SuggestionItem]:
        """Suggestions for the latest input only.

        Raises :class:`StaleResult` when another call was issued while this
        one was waiting; callers drop the result instead of rendering it.
        """
        ticket = next(self._tickets)
        self._latest = ticket
        if self.debounce:
            await asyncio.sleep(self.debounce)
            self._check_current(ticket, query)
        items = await self.get_suggestions(query)
        self._check_current(ticket, query)
        return items

    async def on_query_accepted(self, query: str) -> List[str]:
        return await self.recall.accept(query)
