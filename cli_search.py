"""Terminal client that reuses the in-process suggestion and lookup logic."""
from __future__ import annotations

import argparse
import asyncio
from typing import Iterable, List

from fitsearch.compatibility import CompatibilityPanel, CompatibilityResolver
from fitsearch.config import settings
from fitsearch.errors import LookupFailure
from fitsearch.es_client import get_client
from fitsearch.host import Window
from fitsearch.models import ResultItem, SearchOptions, SuggestionItem
from fitsearch.overlay import DISMISS_KEY, OverlayController
from fitsearch.presentation import to_view
from fitsearch.recall import RecallStore
from fitsearch.search_index import SearchIndex
from fitsearch.storage import get_storage
from fitsearch.suggestions import SuggestionFederator

GREEN = "\033[92m"
DIM = "\033[2m"
RESET = "\033[0m"

HELP = (
    "Type to see suggestions, ':go <query>' to search, ':fits <sku>' to check fitment,\n"
    "':toggle' / ':filter <text>' for the fitment list, ':filters' for facets, 'exit' to quit."
)


def pretty_print_suggestions(query: str, items: List[SuggestionItem]) -> None:
    print(f"Suggestions for {query!r}: {len(items)}")
    for item in items:
        if item.source == "remote":
            print(f"  {GREEN}*{RESET} {item.text}")
        else:
            print(f"  {DIM}~ {item.text}{RESET}")


class ShellSession:
    """One terminal user: recent searches, a fitment panel and the filter overlay."""

    def __init__(self, index, recall: RecallStore, window: Window | None = None) -> None:
        self.index = index
        self.federator = SuggestionFederator(index, recall)
        self.panel = CompatibilityPanel(CompatibilityResolver(index))
        self.window = window or Window()
        results = self.window.document.body.child("results")
        self.overlay = OverlayController(self.window, results, results.child("filters-backdrop"))
        self.last_query = ""

    async def show_suggestions(self, query: str) -> None:
        await self.federator.recall.ensure_loaded()
        pretty_print_suggestions(query, await self.federator.get_suggestions(query))

    async def accept(self, query: str) -> None:
        await self.federator.recall.ensure_loaded()
        searches = await self.federator.on_query_accepted(query)
        print("Recent searches: " + ", ".join(searches))

    async def show_results(self, query: str) -> None:
        self.last_query = query
        try:
            page = await self.index.search(query, SearchOptions())
        except LookupFailure as exc:
            print(f"Search unavailable: {exc.reason}")
            return
        print(f"Query: {query} | results: {page.nb_hits} | took: {page.took_ms:.1f} ms")
        for idx, hit in enumerate(page.hits, start=1):
            view = to_view(hit)
            print(f"  {idx:02d}. {view.sku} | {view.brand} | {view.title} | {view.price_label} | {view.availability}")

    async def show_fits(self, sku: str) -> None:
        await self.panel.bind(ResultItem(object_id=sku, sku=sku))
        if not self.panel.fit_available:
            print(f"No fitment data for {sku}")
            return
        print(f"{sku} fits {len(self.panel.names)} vehicles")
        if self.panel.visible:
            self.print_fits()

    def print_fits(self) -> None:
        shown = self.panel.visible_names
        if self.panel.query:
            print(f"  matching {self.panel.query!r}: {len(shown)} of {len(self.panel.names)}")
        for name in shown:
            print(f"  - {name}")

    def toggle_fits(self) -> None:
        if not self.panel.fit_available:
            print("No fitment list to show")
            return
        if self.panel.toggle_visibility():
            self.print_fits()
        else:
            print("Fitment list hidden")

    def filter_fits(self, text: str) -> None:
        self.panel.filter(text)
        if self.panel.visible:
            self.print_fits()

    async def open_filters(self) -> None:
        self.overlay.open()
        try:
            page = await self.index.search(self.last_query, SearchOptions(facets=True))
        except LookupFailure as exc:
            print(f"Facets unavailable: {exc.reason}")
            return
        for name, values in page.facets.items():
            listed = ", ".join(f"{value.value} ({value.count})" for value in values[:10])
            print(f"  {name}: {listed or '-'}")
        print("'esc' discards, 'done' returns to the results")

    def handle_overlay(self, line: str) -> None:
        if line == "esc":
            self.window.key_up(DISMISS_KEY)
        elif line == "done":
            self.window.click(self.overlay.boundary)
        if not self.overlay.is_open:
            print("Filters closed")

    @property
    def prompt(self) -> str:
        return "filters> " if self.overlay.is_open else "> "

    async def handle(self, line: str) -> None:
        if self.overlay.is_open:
            self.handle_overlay(line)
        elif line.startswith(":go "):
            query = line[4:].strip()
            await self.accept(query)
            await self.show_results(query)
        elif line.startswith(":fits "):
            await self.show_fits(line[6:].strip())
        elif line == ":toggle":
            self.toggle_fits()
        elif line.startswith(":filter "):
            self.filter_fits(line[8:].strip())
        elif line == ":filters":
            await self.open_filters()
        else:
            await self.show_suggestions(line)


def build_session() -> ShellSession:
    index = SearchIndex(get_client(), settings.es_index)
    return ShellSession(index, RecallStore(get_storage()))


def interactive_shell(session: ShellSession) -> None:
    print(HELP)
    with session.overlay:
        while True:
            try:
                line = input(session.prompt).strip()
            except (EOFError, KeyboardInterrupt):
                print()
                return
            if line.lower() in {"exit", "quit"}:
                return
            asyncio.run(session.handle(line))


async def list_fits(session: ShellSession, sku: str, query: str) -> None:
    session.panel.filter(query)
    session.panel.toggle_visibility()
    await session.show_fits(sku)


def main(argv: Iterable[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="CLI client for the parts search service")
    parser.add_argument("query", nargs="?", help="Query prefix to suggest for. If omitted, starts REPL mode.")
    parser.add_argument("--accept", action="store_true", help="Record the query as an executed search and show results")
    parser.add_argument("--fits", metavar="SKU", help="List the vehicles a part fits")
    parser.add_argument("--filter", default="", help="Narrow the --fits list by a vehicle name fragment")
    args = parser.parse_args(list(argv) if argv is not None else None)

    session = build_session()
    if args.fits:
        asyncio.run(list_fits(session, args.fits, args.filter))
        return 0
    if args.query is not None:
        if args.accept:
            asyncio.run(session.accept(args.query))
            asyncio.run(session.show_results(args.query))
        else:
            asyncio.run(session.show_suggestions(args.query))
        return 0
    interactive_shell(session)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
