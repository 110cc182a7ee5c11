# arbwatch/logger.py
import asyncio
import aiofiles
from aiocsv import AsyncWriter
from datetime import datetime, timezone
import logging
import sys
import os
from typing import Optional

from .models import Opportunity
from .price import format_price

AUDIT_HEADER = ["timestamp", "symbol", "direction", "buy_venue", "sell_venue",
                "buy_price", "sell_price", "profit"]

class AsyncAuditLogger:
    """
    Non-blocking CSV audit trail of detected opportunities.
    The aggregation loop only enqueues; a background task does the disk I/O.
    """
    def __init__(self, filepath: str):
        self.filepath = filepath
        self._queue: asyncio.Queue = asyncio.Queue()
        self._worker_task: Optional[asyncio.Task] = None
        self.failures = 0

    async def start(self):
        """
        Creates the log file (with header if new) and starts the background writer.
        """
        directory = os.path.dirname(self.filepath)
        if directory and not os.path.exists(directory):
            os.makedirs(directory, exist_ok=True)

        is_new = not os.path.exists(self.filepath) or os.path.getsize(self.filepath) == 0
        async with aiofiles.open(self.filepath, mode='a', newline='') as f:
            if is_new:
                await AsyncWriter(f, dialect='unix').writerow(AUDIT_HEADER)
        self._worker_task = asyncio.create_task(self._writer_worker())

    def record(self, opp: Opportunity):
        """Opportunity sink. Never waits on the disk."""
        self._queue.put_nowait([
            datetime.now(timezone.utc).isoformat(),
            opp.symbol,
            opp.direction.value,
            opp.buy_venue,
            opp.sell_venue,
            format_price(opp.buy_price),
            format_price(opp.sell_price),
            format_price(opp.profit),
        ])

    async def _writer_worker(self):
        """
        Background consumer that writes to disk.
        """
        while True:
            row = await self._queue.get()
            try:
                async with aiofiles.open(self.filepath, mode='a', newline='') as f:
                    writer = AsyncWriter(f, dialect='unix')
                    await writer.writerow(row)
            except Exception as e:
                # Disk trouble must not take the monitor down
                self.failures += 1
                print(f"LOGGING FAILURE: {e}", file=sys.stderr)
            finally:
                self._queue.task_done()

    async def stop(self, timeout: float = 2.0):
        """Flushes what's queued (bounded by timeout), then stops the writer."""
        if self._worker_task is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout)
        except asyncio.TimeoutError:
            print(f"LOGGING FAILURE: {self._queue.qsize()} audit rows not flushed", file=sys.stderr)
        self._worker_task.cancel()
        try:
            await self._worker_task
        except asyncio.CancelledError:
            pass
        self._worker_task = None

def setup_console_logger(name: str, level: str):
    """
    Sets up the standard Python logger for console output.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter('%(asctime)s | %(levelname)s | %(module)s | %(message)s')
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
