"""Headless window/document model the overlay controller binds to.

Only the parts the controller touches are modelled: event listeners on a
target, a body class list, window scrolling and element scroll-into-view.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Event:
    type: str
    key: Optional[str] = None
    target: Optional["Element"] = None


Handler = Callable[[Event], None]


class EventTarget:
    def __init__(self) -> None:
        self._listeners: Dict[str, List[Handler]] = defaultdict(list)

    def add_event_listener(self, event_type: str, handler: Handler) -> None:
        handlers = self._listeners[event_type]
        # Registering the same handler twice is a no-op, as in the DOM.
        if handler not in handlers:
            handlers.append(handler)

    def remove_event_listener(self, event_type: str, handler: Handler) -> None:
        handlers = self._listeners.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, event_type: str | None = None) -> int:
        if event_type is not None:
            return len(self._listeners.get(event_type, []))
        return sum(len(handlers) for handlers in self._listeners.values())

    def dispatch(self, event: Event) -> None:
        for handler in list(self._listeners.get(event.type, [])):
            handler(event)


@contextmanager
def listening(target: EventTarget, event_type: str, handler: Handler) -> Iterator[Handler]:
    """Keep ``handler`` registered for the duration of the block."""
    target.add_event_listener(event_type, handler)
    try:
        yield handler
    finally:
        target.remove_event_listener(event_type, handler)


class ClassList:
    def __init__(self) -> None:
        self._names: set[str] = set()

    def add(self, name: str) -> None:
        self._names.add(name)

    def remove(self, name: str) -> None:
        self._names.discard(name)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)


class Element(EventTarget):
    def __init__(self, name: str, parent: Optional["Element"] = None) -> None:
        super().__init__()
        self.name = name
        self.parent = parent
        self.class_list = ClassList()
        self.scroll_requests = 0

    def child(self, name: str) -> "Element":
        return Element(name, parent=self)

    def scroll_into_view(self) -> None:
        self.scroll_requests += 1
        logger.debug("scroll into view: %s", self.name)

    def __repr__(self) -> str:
        return f"Element({self.name!r})"


class Document:
    def __init__(self) -> None:
        self.body = Element("body")


class Window(EventTarget):
    def __init__(self, document: Document | None = None) -> None:
        super().__init__()
        self.document = document or Document()
        self.scroll_x = 0
        self.scroll_y = 0

    def scroll_to(self, x: int, y: int) -> None:
        self.scroll_x, self.scroll_y = x, y

    def key_up(self, key: str) -> None:
        self.dispatch(Event("keyup", key=key))

    def click(self, target: Element) -> None:
        self.dispatch(Event("click", target=target))
