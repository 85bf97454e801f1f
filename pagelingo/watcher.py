"""Debounced re-translation trigger for content inserted into the page."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Sequence, Set

from bs4.element import PageElement

from .document import CHILD_LIST, DocumentObserver, MutationRecord, PageDocument

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5


class MutationWatcher:
    """Schedules ``on_content_added`` after a burst of qualifying insertions.

    A record qualifies when it adds a text node with visible content or an
    element whose text content is not blank. Each qualifying record restarts
    the debounce timer, so one burst produces one call.
    """

    def __init__(
        self,
        document: PageDocument,
        on_content_added: Callable[[], Awaitable[object]],
        *,
        is_active: Callable[[], bool],
        ignore: Optional[Callable[[PageElement], bool]] = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self.document = document
        self.on_content_added = on_content_added
        self.is_active = is_active
        self.ignore = ignore
        self.debounce_seconds = max(0.0, debounce_seconds)

        self._observer: Optional[DocumentObserver] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: Set["asyncio.Task[object]"] = set()

    @property
    def armed(self) -> bool:
        return self._observer is not None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def arm(self) -> DocumentObserver:
        """Start observing the document body; must run inside the event loop."""

        if self._observer is None:
            self._loop = asyncio.get_running_loop()
            self._observer = DocumentObserver(self._handle_records)
            self._observer.observe(self.document, self.document.body, subtree=True)
        return self._observer

    def disconnect(self) -> None:
        """Stop observing and cancel any scheduled or running pass."""

        if self._observer is not None:
            self._observer.disconnect()
            self._observer = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def _handle_records(self, records: Sequence[MutationRecord]) -> None:
        if not any(self._has_new_text(record) for record in records):
            return
        if not self.is_active():
            return
        self._schedule()

    def _has_new_text(self, record: MutationRecord) -> bool:
        if record.type != CHILD_LIST or not record.added_nodes:
            return False
        if self.ignore is not None and self.ignore(record.target):
            return False
        for node in record.added_nodes:
            if self.document.is_text(node):
                if str(node).strip():
                    return True
            elif self.document.is_element(node) and node.get_text().strip():  # type: ignore[union-attr]
                return True
        return False

    def _schedule(self) -> None:
        if self._loop is None or self._loop.is_closed():
            return
        if self._timer is not None:
            self._timer.cancel()
        logger.debug("New content detected, re-translating in %.3fs.", self.debounce_seconds)
        self._timer = self._loop.call_later(self.debounce_seconds, self._fire)

    def _fire(self) -> None:
        self._timer = None
        if self._observer is None or not self.is_active():
            return
        task = self._loop.create_task(self.on_content_added())  # type: ignore[union-attr, arg-type]
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
