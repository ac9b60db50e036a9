"""Full-viewport filter overlay for narrow layouts.

While the overlay is open the document body carries the ``filtering`` class
and the window has exactly one ``keyup`` and one ``click`` listener owned by
the controller. Everything acquired by :meth:`OverlayController.open` is held
in one :class:`contextlib.ExitStack`, so every way out releases all of it.
"""
from __future__ import annotations

import logging
from contextlib import ExitStack
from enum import Enum
from typing import Optional

from .host import Element, Event, Window, listening

logger = logging.getLogger(__name__)

FILTERING_CLASS = "filtering"
DISMISS_KEY = "Escape"


class OverlayState(Enum):
    CLOSED = "closed"
    OPEN = "open"


class OverlayController:
    def __init__(self, window: Window, container: Element, boundary: Element) -> None:
        self.window = window
        self.container = container
        self.boundary = boundary
        self._state = OverlayState.CLOSED
        self._resources: Optional[ExitStack] = None
        # Bound once so detaching uses the very objects that were attached.
        self._key_handler = self._on_key_up
        self._click_handler = self._on_click

    @property
    def state(self) -> OverlayState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is OverlayState.OPEN

    def open(self) -> None:
        if self.is_open:
            logger.debug("overlay already open")
            return
        body_classes = self.window.document.body.class_list
        with ExitStack() as stack:
            body_classes.add(FILTERING_CLASS)
            stack.callback(body_classes.remove, FILTERING_CLASS)
            self.window.scroll_to(0, 0)
            stack.enter_context(listening(self.window, "keyup", self._key_handler))
            stack.enter_context(listening(self.window, "click", self._click_handler))
            self._resources = stack.pop_all()
        self._state = OverlayState.OPEN
        logger.debug("overlay opened")

    def _release(self) -> None:
        resources, self._resources = self._resources, None
        self._state = OverlayState.CLOSED
        if resources is not None:
            resources.close()

    def close(self) -> None:
        if not self.is_open:
            return
        self._release()
        self.container.scroll_into_view()
        logger.debug("overlay closed")

    def dispose(self) -> None:
        """Release listeners and the marker without moving the viewport."""
        self._release()

    def __enter__(self) -> "OverlayController":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    def _on_key_up(self, event: Event) -> None:
        if event.key != DISMISS_KEY:
            return
        self.close()

    def _on_click(self, event: Event) -> None:
        if event.target is not self.boundary:
            return
        self.close()
