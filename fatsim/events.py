"""
Append-only operation log.

Every public operation runs inside an operation() block so that all the
events it emits (allocation, links, writes, frees) share one op id.
"""

import time
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from .logging_config import get_logger
from .models import Event
from .store import RecordStore

log = get_logger('events')


class EventLog:
    """Writes Event records into the store. Never read back by the core."""

    def __init__(self, store: RecordStore):
        self.store = store
        self._current_op: str | None = None

    def new_op_id(self) -> str:
        return f"op_{self.store.next_sequence()}"

    @contextmanager
    def operation(self) -> Iterator[str]:
        """
        Group the events emitted inside the block under one op id.

        Nested blocks reuse the outer op id, so an allocation made on
        behalf of a copy is logged as part of the copy.
        """
        if self._current_op is not None:
            yield self._current_op
            return

        self._current_op = self.new_op_id()
        try:
            yield self._current_op
        finally:
            self._current_op = None

    def emit(
        self,
        action: str,
        message: str = '',
        details: dict[str, Any] | None = None,
        clusters: Iterable[int] = (),
        entries: Iterable[str | None] = (),
    ) -> Event:
        """Append one event to the log."""
        event = Event(
            ts=time.time(),
            op_id=self._current_op or self.new_op_id(),
            action=action,
            message=message,
            details=details,
            highlight_clusters=list(clusters),
            highlight_entries=[e for e in entries if e],
        )
        self.store.append_event(event)
        log.debug("[%s] %s %s", event.op_id, action, message)
        return event
