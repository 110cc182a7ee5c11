# arbwatch/detector.py
from decimal import Decimal, ROUND_FLOOR, localcontext
from typing import List, Mapping, Optional

from .models import Direction, Opportunity, Snapshot

DEFAULT_MIN_PROFIT = 100  # price units, i.e. 0.000001 of the quote currency

# Wide enough that ask * (1 + fee) never rounds for any realistic price/fee pair
_EXACT_PREC = 60


def net_profit(buy_ask: int, buy_fee: Decimal, sell_bid: int, sell_fee: Decimal) -> Decimal:
    """
    Exact profit in price units of buying at buy_ask and selling at sell_bid
    after taker fees on both legs. May be fractional or negative.
    """
    with localcontext() as ctx:
        ctx.prec = _EXACT_PREC
        cost = Decimal(buy_ask) * (1 + buy_fee)
        proceeds = Decimal(sell_bid) * (1 - sell_fee)
        return proceeds - cost


class ArbitrageDetector:
    """
    Pure fee-adjusted comparison of two venues' snapshots for one symbol.
    Both directions are always checked; neither suppresses the other.
    Non-positive prices are skipped; inverted quotes go through the same math.
    """
    def __init__(self, fees: Mapping[str, Decimal], min_profit: int = DEFAULT_MIN_PROFIT,
                 default_fee: Optional[Decimal] = None):
        self.fees = {k: Decimal(v) for k, v in fees.items()}
        self.min_profit = int(min_profit)
        self.default_fee = Decimal(default_fee) if default_fee is not None else Decimal(0)

    def fee_for(self, venue: str) -> Decimal:
        return self.fees.get(venue, self.default_fee)

    def evaluate(self, symbol: str, venue_x: str, snap_x: Snapshot,
                 venue_y: str, snap_y: Snapshot) -> List[Opportunity]:
        found = []
        fee_x, fee_y = self.fee_for(venue_x), self.fee_for(venue_y)

        legs = (
            (Direction.BUY_X_SELL_Y, venue_x, snap_x, fee_x, venue_y, snap_y, fee_y),
            (Direction.BUY_Y_SELL_X, venue_y, snap_y, fee_y, venue_x, snap_x, fee_x),
        )
        for direction, buy_venue, buy_snap, buy_fee, sell_venue, sell_snap, sell_fee in legs:
            # --- ZERO PRICE PROTECTION ---
            if buy_snap.ask <= 0 or sell_snap.bid <= 0:
                continue
            profit = net_profit(buy_snap.ask, buy_fee, sell_snap.bid, sell_fee)
            if profit >= self.min_profit:
                found.append(Opportunity(
                    symbol=symbol,
                    direction=direction,
                    buy_venue=buy_venue,
                    sell_venue=sell_venue,
                    buy_price=buy_snap.ask,
                    sell_price=sell_snap.bid,
                    profit=int(profit.to_integral_value(rounding=ROUND_FLOOR)),
                ))
        return found
