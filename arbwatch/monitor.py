# arbwatch/monitor.py
import asyncio
import logging
from typing import List, Optional

from rich.console import Console

from .config import EngineConfig
from .detector import ArbitrageDetector
from .engine import ArbitrageEngine
from .feeds import FeedAdapter
from .heartbeat import HeartbeatSource
from .logger import AsyncAuditLogger
from .market_check import MarketCatalog
from .reporting import OpportunityReporter, StatusDashboard
from .venues import build_feed


class ArbMonitor:
    """
    Wires feeds -> queue -> aggregation loop -> sinks and owns their lifecycle.
    """
    def __init__(self, config: EngineConfig, logger: logging.Logger,
                 console: Optional[Console] = None, feeds: Optional[List[FeedAdapter]] = None):
        self.config = config
        self.logger = logger

        self.detector = ArbitrageDetector(config.fees, config.min_profit, config.default_fee)
        self.reporter = OpportunityReporter(logger)
        opportunity_sinks = [self.reporter]

        self.audit_log = AsyncAuditLogger(config.opportunity_log) if config.opportunity_log else None
        if self.audit_log is not None:
            opportunity_sinks.append(self.audit_log.record)

        heartbeat_sinks = [StatusDashboard(console)] if config.dashboard else []

        self.engine = ArbitrageEngine(self.detector, logger, opportunity_sinks, heartbeat_sinks)
        self.heartbeat = HeartbeatSource(self.engine.queue, config.heartbeat_interval, logger)
        self.feeds = feeds if feeds is not None else self._build_feeds()
        for feed in self.feeds:
            feed.on_update(self.engine.report_snapshot)

        self._started = False
        self._shutdown_started = False

    def _build_feeds(self) -> List[FeedAdapter]:
        feeds = []
        for name, ex in self.config.exchanges.items():
            feeds.append(build_feed(
                name,
                self.config.venue_symbols(name),
                mock=self.config.mock,
                policy=self.config.reconnect_policy(),
                logger=self.logger,
                base_price=ex.base_price,
                interval=self.config.mock_interval,
            ))
        return feeds

    async def start(self):
        if self._started or self._shutdown_started:
            return
        self._started = True

        if self.config.verify_markets and not self.config.mock:
            catalog = MarketCatalog({f.exchange_id: f.symbols for f in self.feeds}, self.logger)
            if not await catalog.verify():
                self.logger.warning("⚠️ Market check failed; feeds will start anyway")

        if self.audit_log is not None:
            await self.audit_log.start()

        self.engine.start()
        self.logger.info(f"⚡ CONNECTING {len(self.feeds)} FEEDS FOR {len(self.config.symbols)} SYMBOLS...")
        for feed in self.feeds:
            feed.start()
        self.heartbeat.start()

    async def run_until(self, stop: asyncio.Event):
        try:
            await self.start()
            await stop.wait()
        finally:
            await self.shutdown()

    async def shutdown(self) -> bool:
        """
        Stops feeds (no further reconnects), the heartbeat, then the loop.
        Only the first call does anything; later calls return False.
        """
        if self._shutdown_started:
            return False
        self._shutdown_started = True
        self.logger.info("Shutting down...")

        results = await asyncio.gather(*(feed.stop() for feed in self.feeds), return_exceptions=True)
        for feed, result in zip(self.feeds, results):
            if isinstance(result, Exception):
                self.logger.error(f"[{feed.exchange_id}] error during stop: {result}")

        await self.heartbeat.stop()
        await self.engine.shutdown()

        if self.audit_log is not None:
            await self.audit_log.stop()

        self.logger.info(f"Stopped | {self.reporter.count} opportunities reported")
        return True
