"""Single-writer lifecycle event channel feeding the outward event stream."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator

from rivalscan.schemas.events import FatalError, ReportReady, StepUpdate, format_record

logger = logging.getLogger(__name__)

Event = StepUpdate | ReportReady | FatalError

_CLOSED = object()


class StreamClosedError(RuntimeError):
    """Raised when emitting to a stream that has already been closed."""


class EventStream:
    """Ordered, append-only channel of lifecycle events.

    ``emit`` suspends while the consumer is behind (the queue holds at most
    ``maxsize`` undelivered events), so nothing piles up in memory. Closing is
    the only end-of-stream signal; no sentinel reaches the wire.
    """

    def __init__(self, maxsize: int = 1) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        # Steps with a queued ``running`` update and no terminal update yet
        self._open_steps: dict[str, None] = {}
        self.emitted = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def open_steps(self) -> list[str]:
        """Step labels still running, in the order they started."""
        return list(self._open_steps)

    async def emit(self, event: Event) -> None:
        if self._closed:
            raise StreamClosedError(f"Cannot emit {event.type!r} after the stream was closed")
        logger.debug("Emitting %s", event.type)
        await self._queue.put(event)
        self.emitted += 1
        if isinstance(event, StepUpdate):
            if event.status == "running":
                self._open_steps[event.step] = None
            else:
                self._open_steps.pop(event.step, None)

    def close(self) -> None:
        """Mark the stream finished. Idempotent; never blocks."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # The consumer is still draining and stops once the queue is empty.
            pass

    async def events(self) -> AsyncIterator[Event]:
        """Yield events in emission order until the stream is closed."""
        while True:
            if self._closed and self._queue.empty():
                return
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item  # type: ignore[misc]

    async def records(self) -> AsyncIterator[str]:
        """Yield each event framed as a ``data: <json>`` record."""
        async for event in self.events():
            yield format_record(event)
