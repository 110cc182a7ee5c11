# arbwatch/engine.py
import asyncio
import logging
from typing import Callable, Iterable, List, Optional

from .detector import ArbitrageDetector
from .event_queue import EventQueue, QueueClosed
from .models import Event, Heartbeat, Opportunity, Snapshot, SnapshotUpdate, StatusRow
from .store import SnapshotStore

OpportunitySink = Callable[[Opportunity], None]
HeartbeatSink = Callable[[List[StatusRow]], None]


class ArbitrageEngine:
    """
    The aggregation loop.
    Feeds call report_snapshot() from wherever they run; everything after
    that happens on the single consumer task, which is the only thing
    allowed to touch the SnapshotStore.

    Sinks are called synchronously from the loop, so a slow sink stalls
    every symbol behind it.
    """
    def __init__(self, detector: ArbitrageDetector, logger: logging.Logger,
                 opportunity_sinks: Iterable[OpportunitySink] = (),
                 heartbeat_sinks: Iterable[HeartbeatSink] = (),
                 queue: Optional[EventQueue] = None):
        self.detector = detector
        self.logger = logger
        self.queue = queue or EventQueue()
        self.store = SnapshotStore()
        self.opportunity_sinks: List[OpportunitySink] = list(opportunity_sinks)
        self.heartbeat_sinks: List[HeartbeatSink] = list(heartbeat_sinks)

        self.stats = {'updates': 0, 'heartbeats': 0, 'checks': 0, 'opportunities': 0, 'errors': 0}
        self._task: Optional[asyncio.Task] = None

    # --- PRODUCER SIDE ---

    def report_snapshot(self, exchange_id: str, symbol: str, bid: int, ask: int) -> None:
        """Inbound boundary for feed adapters. Never blocks, never raises."""
        self.queue.push(SnapshotUpdate(exchange_id, symbol, bid, ask))

    # --- CONSUMER SIDE ---

    def start(self) -> asyncio.Task:
        if self._task is None:
            self.queue.bind(asyncio.get_running_loop())
            self._task = asyncio.create_task(self.run(), name="aggregation-loop")
        return self._task

    async def run(self) -> None:
        self.logger.info("🧮 Aggregation loop running")
        while True:
            try:
                event = await self.queue.take()
            except QueueClosed:
                break
            self.handle(event)
        self.logger.info(f"🧮 Aggregation loop stopped | {self.stats}")

    def handle(self, event: Event) -> None:
        """Processes one event. A failure is logged and confined to this event."""
        try:
            if isinstance(event, SnapshotUpdate):
                self._apply_update(event)
            elif isinstance(event, Heartbeat):
                self._emit_heartbeat()
            else:
                self.logger.warning(f"Ignoring unknown event type: {type(event).__name__}")
        except Exception as e:
            self.stats['errors'] += 1
            self.logger.exception(f"Event processing failed for {event}: {e}")

    def _apply_update(self, update: SnapshotUpdate) -> None:
        self.stats['updates'] += 1
        self.store.put(update.symbol, update.exchange_id, Snapshot(update.bid, update.ask))

        venues = self.store.venues(update.symbol)
        if len(venues) < 2:
            # Counterpart venue hasn't reported yet
            return

        mine = venues.pop(update.exchange_id)
        for other_id in sorted(venues):
            self.stats['checks'] += 1
            if update.exchange_id < other_id:
                found = self.detector.evaluate(update.symbol, update.exchange_id, mine,
                                               other_id, venues[other_id])
            else:
                found = self.detector.evaluate(update.symbol, other_id, venues[other_id],
                                               update.exchange_id, mine)
            for opp in found:
                self.stats['opportunities'] += 1
                for sink in self.opportunity_sinks:
                    sink(opp)

    def _emit_heartbeat(self) -> None:
        self.stats['heartbeats'] += 1
        rows = list(self.store.rows())
        if not rows:
            self.logger.info("💓 Heartbeat | no data yet")
        else:
            self.logger.info(f"💓 Heartbeat | {len(rows)} quotes across {len(self.store.symbols())} symbols")
        for sink in self.heartbeat_sinks:
            sink(rows)

    # --- LIFECYCLE ---

    async def shutdown(self) -> bool:
        """
        Discards pending events and ends the loop's blocking wait.
        Returns False if the engine was already shut down.
        """
        if self.queue.closed:
            return False
        discarded = self.queue.close()
        if discarded:
            self.logger.info(f"Discarded {discarded} pending events on shutdown")
        if self._task is not None:
            await self._task
        return True
