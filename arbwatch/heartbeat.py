# arbwatch/heartbeat.py
import asyncio
import logging
from typing import Optional

from .event_queue import EventQueue
from .models import Heartbeat

DEFAULT_INTERVAL = 60.0


class HeartbeatSource:
    """
    Pushes a Heartbeat into the queue every `interval` seconds, the first one
    a full interval after start(). Forces a status dump even when no prices flow.
    """
    def __init__(self, queue: EventQueue, interval: float = DEFAULT_INTERVAL,
                 logger: Optional[logging.Logger] = None):
        if interval <= 0:
            raise ValueError(f"Heartbeat interval must be positive, got {interval}")
        self.queue = queue
        self.interval = interval
        self.logger = logger or logging.getLogger(__name__)
        self.beats = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._tick_forever(), name="heartbeat")

    async def _tick_forever(self):
        while True:
            await asyncio.sleep(self.interval)
            self.beats += 1
            self.queue.push(Heartbeat())

    async def stop(self) -> bool:
        """Cancels the timer. Returns False if there was nothing left to stop."""
        task, self._task = self._task, None
        if task is None or task.done():
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self.logger.debug(f"💓 Heartbeat stopped after {self.beats} beats")
        return True
