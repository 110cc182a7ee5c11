# arbwatch/models.py
from dataclasses import dataclass
from enum import Enum
from typing import Union

from .price import format_price

class ConnectionState(Enum):
    """
    Lifecycle of a single feed connection.
    STOPPED is only reached through an explicit stop().
    """
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    STOPPED = "STOPPED"

class Direction(Enum):
    """Which venue of an (x, y) pair is bought."""
    BUY_X_SELL_Y = "BUY_X_SELL_Y"
    BUY_Y_SELL_X = "BUY_Y_SELL_X"

@dataclass(slots=True, frozen=True)
class Snapshot:
    """
    Latest known best bid/ask for one symbol on one venue, in price units.
    ask >= bid is expected but not enforced.
    """
    bid: int
    ask: int

@dataclass(slots=True, frozen=True)
class SnapshotUpdate:
    exchange_id: str
    symbol: str
    bid: int
    ask: int

@dataclass(slots=True, frozen=True)
class Heartbeat:
    pass

Event = Union[SnapshotUpdate, Heartbeat]

@dataclass(slots=True, frozen=True)
class Opportunity:
    """
    A fee-adjusted cross-venue discrepancy that cleared the profit threshold.
    Prices and profit are in price units (1e-8 of the quote currency).
    """
    symbol: str
    direction: Direction
    buy_venue: str
    sell_venue: str
    buy_price: int
    sell_price: int
    profit: int

    def describe(self) -> str:
        return (f"{self.symbol} | Buy {self.buy_venue} @ {format_price(self.buy_price)} "
                f"-> Sell {self.sell_venue} @ {format_price(self.sell_price)} "
                f"| Net: {format_price(self.profit)}")

@dataclass(slots=True, frozen=True)
class StatusRow:
    """One line of the heartbeat liveness dump."""
    symbol: str
    exchange: str
    bid: int
    ask: int

    @property
    def spread(self) -> int:
        """ask - bid; negative when the venue book is crossed."""
        return self.ask - self.bid
