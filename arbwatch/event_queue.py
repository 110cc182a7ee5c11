# arbwatch/event_queue.py
import asyncio
from typing import Optional

from .models import Event


class QueueClosed(Exception):
    """Raised by take() once the queue has been closed."""


_CLOSED = object()


class EventQueue:
    """
    Unbounded multi-producer / single-consumer FIFO.

    push() never blocks and never raises, from the event loop thread or from
    any other thread (foreign threads are marshalled onto the loop).
    There is no bound: a venue flooding updates faster than the consumer can
    drain them grows memory without limit.
    """
    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self.dropped = 0

    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: Event) -> None:
        loop = self._loop
        if loop is None or self._on_loop_thread(loop):
            self._put(event)
            return

        # Foreign thread: queue state and counters are only touched on the loop
        try:
            loop.call_soon_threadsafe(self._put, event)
        except RuntimeError:
            # Loop already closed during shutdown: the event cannot be delivered
            pass

    def _put(self, event: Event) -> None:
        if self._closed:
            self.dropped += 1
            return
        self._queue.put_nowait(event)

    @staticmethod
    def _on_loop_thread(loop: asyncio.AbstractEventLoop) -> bool:
        try:
            return asyncio.get_running_loop() is loop
        except RuntimeError:
            # No loop in this thread; a loop that is not running has no waiting consumer
            return not loop.is_running()

    async def take(self) -> Event:
        if self._closed:
            raise QueueClosed()
        item = await self._queue.get()
        if item is _CLOSED:
            raise QueueClosed()
        return item

    def close(self) -> int:
        """
        Discards everything still pending and wakes a blocked take().
        Returns the number of discarded events. Idempotent.
        """
        if self._closed:
            return 0
        self._closed = True

        discarded = 0
        while True:
            try:
                self._queue.get_nowait()
                discarded += 1
            except asyncio.QueueEmpty:
                break
        self._queue.put_nowait(_CLOSED)
        return discarded

    def qsize(self) -> int:
        if self._closed:
            return 0
        return self._queue.qsize()
