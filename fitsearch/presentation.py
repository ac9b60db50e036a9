"""Turn index hits into the view model shown in the result list."""
from __future__ import annotations

import re

from .config import settings
from .models import ResultItem, ResultView
from .search_index import CATEGORY_SEPARATOR

AVAILABLE_STATUS = "Dostępny"
UNAVAILABLE_STATUS = "Chwilowo niedostępny"
MISSING_PRICE = "--"

_TAG_RE = re.compile(r"</?em>")


def strip_tags(text: str) -> str:
    return _TAG_RE.sub("", text)


def category_breadcrumb(item: ResultItem) -> str:
    # Highlights only carry the matched values, so prefer the full source list.
    values = item.categories or item.highlight.get("categories", [])
    return CATEGORY_SEPARATOR.join(strip_tags(value) for value in values)


def price_label(item: ResultItem) -> str:
    if not item.price:
        return MISSING_PRICE
    return f"{item.price:.2f}"


def availability(status: str | None) -> str:
    if status == AVAILABLE_STATUS:
        return "in_stock"
    if status == UNAVAILABLE_STATUS:
        return "out_of_stock"
    return "unknown"


def snippet(item: ResultItem, words: int = settings.snippet_words) -> str:
    fragments = item.highlight.get("description")
    text = strip_tags(fragments[0]) if fragments else (item.description or "")
    tokens = text.split()
    if len(tokens) <= words:
        return " ".join(tokens)
    return " ".join(tokens[:words]) + settings.snippet_ellipsis


def to_view(item: ResultItem) -> ResultView:
    state = availability(item.status)
    return ResultView(
        object_id=item.object_id,
        sku=item.sku,
        title=item.title,
        brand=item.brand,
        image=item.image,
        url=item.url,
        breadcrumb=category_breadcrumb(item),
        snippet=snippet(item),
        price_label=price_label(item),
        availability=state,
        status=item.status,
        action="add_to_cart" if state == "in_stock" else "view_product",
        link_available=bool(item.url),
    )
