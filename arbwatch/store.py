# arbwatch/store.py
from typing import Dict, Iterator, Optional, Tuple

from .models import Snapshot, StatusRow

class SnapshotStore:
    """
    Latest bid/ask per symbol per exchange.
    Owned by the aggregation loop; it is the only writer, so there is no lock.
    """
    def __init__(self):
        # { 'BTC/USD': { 'binance': Snapshot, 'kraken': Snapshot } }
        self._data: Dict[str, Dict[str, Snapshot]] = {}

    def put(self, symbol: str, exchange_id: str, snapshot: Snapshot) -> None:
        self._data.setdefault(symbol, {})[exchange_id] = snapshot

    def get(self, symbol: str, exchange_id: str) -> Optional[Snapshot]:
        return self._data.get(symbol, {}).get(exchange_id)

    def venues(self, symbol: str) -> Dict[str, Snapshot]:
        """Returns a copy of all venue snapshots known for the symbol."""
        return dict(self._data.get(symbol, {}))

    def rows(self) -> Iterator[StatusRow]:
        for symbol, venues in self._data.items():
            for exchange_id, snap in venues.items():
                yield StatusRow(symbol, exchange_id, snap.bid, snap.ask)

    def symbols(self) -> Tuple[str, ...]:
        return tuple(self._data)

    def __len__(self) -> int:
        return sum(len(v) for v in self._data.values())

    def is_empty(self) -> bool:
        return not self._data
