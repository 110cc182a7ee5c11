# arbwatch/feeds.py
import asyncio
import logging
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional

import aiohttp

from .models import ConnectionState
from .price import PriceError, to_price
from .reconnect import ConnectionStateMachine, ReconnectPolicy

UpdateCallback = Callable[[str, str, int, int], None]

# What a venue payload of the wrong shape raises while being parsed
MALFORMED = (ValueError, KeyError, TypeError, IndexError, AttributeError)


class Quote(NamedTuple):
    """A venue quote before normalization: native symbol and raw decimal strings."""
    native_symbol: str
    bid: object
    ask: object


class FeedAdapter:
    """
    Owns one live connection to one venue.
    Subclasses implement connect(), which must call self._opened() once the
    link is up and return (or raise) when it drops; this class turns that
    into the reconnect-forever cycle and the normalized callback.
    """
    needs_session = True

    def __init__(self, exchange_id: str, symbols: Dict[str, str],
                 policy: Optional[ReconnectPolicy] = None,
                 logger: Optional[logging.Logger] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        # symbols: canonical -> venue native, e.g. {'BTC/USD': 'BTCUSDT'}
        self.exchange_id = exchange_id
        self.symbols = dict(symbols)
        self._canonical = {native: canon for canon, native in self.symbols.items()}
        self.logger = logger or logging.getLogger(__name__)
        self.machine = ConnectionStateMachine(exchange_id, policy, self.logger)
        self.ws = None
        self.received = 0
        self.dropped = 0

        self._callback: Optional[UpdateCallback] = None
        self._session = session
        self._owns_session = False
        self._task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ConnectionState:
        return self.machine.state

    @property
    def native_symbols(self) -> List[str]:
        return list(self.symbols.values())

    def on_update(self, callback: UpdateCallback) -> None:
        """Registers the one update callback; a second call replaces the first."""
        self._callback = callback

    def start(self) -> None:
        if self._task is not None or self.machine.stopped:
            return
        if self.needs_session and self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        self._task = asyncio.create_task(self._run_forever(), name=f"feed-{self.exchange_id}")

    async def connect(self, session: Optional[aiohttp.ClientSession]) -> None:
        raise NotImplementedError

    def parse(self, message: str) -> Iterable[Quote]:
        raise NotImplementedError

    async def _run_forever(self):
        while not self.machine.stopped:
            self.machine.connecting()
            try:
                await self.connect(self._session)
                if not self.machine.stopped:
                    self.logger.warning(f"[{self.exchange_id}] connection closed by venue")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.logger.error(f"[{self.exchange_id}] WS Error: {type(e).__name__}: {e}")
            finally:
                self.ws = None

            if self.machine.stopped:
                break
            self.machine.disconnected()
            delay = self.machine.next_delay()
            self.logger.info(f"🔄 [{self.exchange_id}] reconnecting in {delay:.1f}s (attempt #{self.machine.failures})")
            await asyncio.sleep(delay)

    def _opened(self) -> None:
        self.machine.connected()
        self.logger.info(f"✅ [{self.exchange_id}] connected")

    def handle_message(self, message: str) -> int:
        """
        Parses one raw venue message and forwards every quote in it.
        Malformed payloads are logged and dropped. Returns quotes forwarded.
        """
        forwarded = 0
        try:
            for quote in self.parse(message):
                if self._emit(quote):
                    forwarded += 1
        except MALFORMED as e:
            self.dropped += 1
            self.logger.warning(f"[{self.exchange_id}] dropping malformed message "
                                f"({type(e).__name__}: {e}): {message[:200]}")
        return forwarded

    def _emit(self, quote: Quote) -> bool:
        if not isinstance(quote.native_symbol, str):
            raise TypeError(f"symbol must be a string, got {quote.native_symbol!r}")
        symbol = self._canonical.get(quote.native_symbol)
        if symbol is None:
            return False
        try:
            bid, ask = to_price(quote.bid), to_price(quote.ask)
        except PriceError as e:
            self.dropped += 1
            self.logger.warning(f"[{self.exchange_id}] dropping quote for {symbol}: {e}")
            return False

        self.received += 1
        if self._callback is not None:
            self._callback(self.exchange_id, symbol, bid, ask)
        return True

    async def stop(self) -> bool:
        """
        Closes the connection and halts reconnects. Returns False if it was
        already stopped. Close errors are logged, never raised.
        """
        if not self.machine.stop():
            return False

        ws = self.ws
        if ws is not None and not ws.closed:
            try:
                await ws.close()
            except Exception as e:
                self.logger.warning(f"[{self.exchange_id}] error closing socket: {e}")

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                self.logger.warning(f"[{self.exchange_id}] feed task ended with error: {e}")

        if self._owns_session and self._session is not None:
            try:
                await self._session.close()
            except Exception as e:
                self.logger.warning(f"[{self.exchange_id}] error closing session: {e}")
            self._session = None

        self.logger.info(f"🛑 [{self.exchange_id}] feed stopped")
        return True
