# arbwatch/venues.py
import asyncio
import json
import random
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Type

import aiohttp

from .feeds import FeedAdapter, Quote
from .price import UNIT, format_price


def _loads(message: str):
    # Prices must never pass through a binary float
    return json.loads(message, parse_float=Decimal)


class BinanceFeed(FeedAdapter):
    """bookTicker stream: every message is one best bid/ask update."""
    WS_URL = "wss://stream.binance.com:9443/ws/"

    def stream_url(self) -> str:
        # Format: btcusdt@bookTicker / ethusdt@bookTicker
        streams = [f"{s.replace('/', '').lower()}@bookTicker" for s in self.native_symbols]
        return self.WS_URL + '/'.join(streams)

    async def connect(self, session: aiohttp.ClientSession):
        async with session.ws_connect(self.stream_url(), heartbeat=30) as ws:
            self.ws = ws
            self._opened()
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self.handle_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    raise ws.exception() or ConnectionError("websocket error")

    def parse(self, message: str) -> Iterable[Quote]:
        data = _loads(message)
        if not isinstance(data, dict) or 'b' not in data or 'a' not in data:
            # Subscription acks and the like
            return []
        symbol = data['s']
        if not isinstance(symbol, str):
            raise ValueError(f"symbol must be a string, got {symbol!r}")
        return [Quote(symbol.upper(), data['b'], data['a'])]

    def _emit(self, quote: Quote) -> bool:
        # Binance reports 'BTCUSDT' whatever case or slash we configured
        native = next((n for n in self.native_symbols
                       if n.replace('/', '').upper() == quote.native_symbol), quote.native_symbol)
        return super()._emit(quote._replace(native_symbol=native))


class KrakenFeed(FeedAdapter):
    """Kraken v2 ticker channel. Subscription is sent once the socket is open."""
    WS_URL = "wss://ws.kraken.com/v2"

    def subscription(self) -> dict:
        return {"method": "subscribe", "params": {"channel": "ticker", "symbol": self.native_symbols}}

    async def connect(self, session: aiohttp.ClientSession):
        async with session.ws_connect(self.WS_URL, heartbeat=30) as ws:
            self.ws = ws
            self._opened()
            await ws.send_json(self.subscription())
            self.logger.info(f"[{self.exchange_id}] subscribed to ticker for {', '.join(self.native_symbols)}")
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self.handle_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    raise ws.exception() or ConnectionError("websocket error")

    def parse(self, message: str) -> Iterable[Quote]:
        data = _loads(message)
        if not isinstance(data, dict):
            raise ValueError("expected a JSON object")

        if data.get('method') == 'subscribe':
            if not data.get('success', False):
                self.logger.error(f"[{self.exchange_id}] subscription rejected: {data.get('error')}")
            return []

        if data.get('channel') != 'ticker' or 'data' not in data:
            # heartbeat / status
            return []

        quotes = []
        for tick in data['data']:
            if 'bid' not in tick or 'ask' not in tick:
                continue
            if not isinstance(tick['symbol'], str):
                raise ValueError(f"symbol must be a string, got {tick['symbol']!r}")
            quotes.append(Quote(tick['symbol'], tick['bid'], tick['ask']))
        return quotes


class MockFeed(FeedAdapter):
    """
    Offline venue: random quotes around a base price, no network.
    Bid wanders up to 10 units above base, ask sits one unit above bid.
    """
    needs_session = False

    def __init__(self, exchange_id: str, symbols: Dict[str, str], base_price: Decimal = Decimal("40000"),
                 interval: float = 0.1, rng: Optional[random.Random] = None, **kwargs):
        super().__init__(exchange_id, symbols, **kwargs)
        self.base_price = Decimal(base_price)
        self.interval = interval
        self.rng = rng or random.Random()

    def next_quote(self, native_symbol: str) -> Quote:
        base = int(self.base_price * UNIT)
        bid = base + self.rng.randint(0, 10 * UNIT)
        return Quote(native_symbol, format_price(bid), format_price(bid + UNIT))

    async def connect(self, session: Optional[aiohttp.ClientSession]):
        self._opened()
        while True:
            for native in self.native_symbols:
                self._emit(self.next_quote(native))
            await asyncio.sleep(self.interval)


VENUES: Dict[str, Type[FeedAdapter]] = {
    'binance': BinanceFeed,
    'kraken': KrakenFeed,
}


def build_feed(exchange_id: str, symbols: Dict[str, str], mock: bool = False, **kwargs) -> FeedAdapter:
    if mock:
        return MockFeed(exchange_id, symbols, **kwargs)
    try:
        feed_cls = VENUES[exchange_id]
    except KeyError:
        known = ', '.join(supported_venues())
        raise ValueError(f"No feed adapter for exchange '{exchange_id}' (known: {known})") from None
    kwargs.pop('base_price', None)
    kwargs.pop('interval', None)
    return feed_cls(exchange_id, symbols, **kwargs)


def supported_venues() -> List[str]:
    return list(VENUES)
