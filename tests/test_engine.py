import asyncio

import pytest

from arbwatch.engine import ArbitrageEngine
from arbwatch.models import Direction, Heartbeat, Snapshot, SnapshotUpdate, StatusRow
from arbwatch.price import to_price


class CountingDetector:
    def __init__(self, wrapped):
        self.wrapped = wrapped
        self.calls = []

    def evaluate(self, symbol, venue_x, snap_x, venue_y, snap_y):
        self.calls.append((symbol, venue_x, venue_y))
        return self.wrapped.evaluate(symbol, venue_x, snap_x, venue_y, snap_y)


class ExplodingDetector:
    def evaluate(self, *args):
        raise RuntimeError("boom")


def update(exchange, bid, ask, symbol="BTC/USD"):
    return SnapshotUpdate(exchange, symbol, to_price(bid), to_price(ask))


def test_last_write_wins_per_exchange(engine):
    for i in range(10):
        engine.handle(update("binance", f"{40000 + i}", f"{40001 + i}"))
    assert engine.store.get("BTC/USD", "binance") == Snapshot(to_price("40009"), to_price("40010"))


def test_updates_to_one_exchange_leave_the_other_alone(engine):
    engine.handle(update("kraken", "40000", "40001"))
    for i in range(5):
        engine.handle(update("binance", f"{39000 + i}", f"{39001 + i}"))
    assert engine.store.get("BTC/USD", "kraken") == Snapshot(to_price("40000"), to_price("40001"))


def test_single_venue_skips_detection(detector, logger):
    counting = CountingDetector(detector)
    engine = ArbitrageEngine(counting, logger)
    engine.handle(update("binance", "40000", "40001"))
    engine.handle(update("binance", "40002", "40003", symbol="ETH/USD"))
    assert counting.calls == []
    assert engine.stats["errors"] == 0


def test_second_venue_triggers_one_pairwise_check(detector, logger):
    counting = CountingDetector(detector)
    engine = ArbitrageEngine(counting, logger)
    engine.handle(update("kraken", "40000", "40001"))
    engine.handle(update("binance", "40000", "40001"))
    # pair order is stable regardless of which venue updated
    assert counting.calls == [("BTC/USD", "binance", "kraken")]


def test_three_venues_check_every_pair_with_the_updater(detector, logger):
    counting = CountingDetector(detector)
    engine = ArbitrageEngine(counting, logger)
    for ex in ("kraken", "binance", "okx"):
        engine.handle(update(ex, "40000", "40001"))
    before = len(counting.calls)
    engine.handle(update("kraken", "40000", "40001"))
    assert counting.calls[before:] == [
        ("BTC/USD", "binance", "kraken"),
        ("BTC/USD", "kraken", "okx"),
    ]


def test_profitable_update_reaches_sink(engine, opportunities):
    engine.handle(update("binance", "39999", "40000"))
    engine.handle(update("kraken", "40200", "40201"))
    assert len(opportunities.calls) == 1
    opp = opportunities.calls[0]
    assert opp.direction is Direction.BUY_X_SELL_Y
    assert (opp.buy_venue, opp.sell_venue) == ("binance", "kraken")
    assert engine.stats["opportunities"] == 1


def test_reference_quotes_report_nothing(engine, opportunities):
    engine.handle(SnapshotUpdate("binance", "BTC/USD", 4000000000000, 4000100000000))
    engine.handle(SnapshotUpdate("kraken", "BTC/USD", 4002000000000, 4002100000000))
    assert opportunities.calls == []


def test_heartbeat_before_data_is_empty(engine, heartbeats):
    engine.handle(Heartbeat())
    assert heartbeats.calls == [[]]


def test_heartbeat_dumps_every_quote(engine, heartbeats):
    engine.handle(update("binance", "1", "2"))
    engine.handle(update("kraken", "3", "4", symbol="ETH/USD"))
    engine.handle(Heartbeat())
    assert set(heartbeats.calls[0]) == {
        StatusRow("BTC/USD", "binance", to_price("1"), to_price("2")),
        StatusRow("ETH/USD", "kraken", to_price("3"), to_price("4")),
    }


def test_detector_failure_does_not_stop_processing(logger, heartbeats):
    engine = ArbitrageEngine(ExplodingDetector(), logger, heartbeat_sinks=[heartbeats])
    engine.handle(update("binance", "1", "2"))
    engine.handle(update("kraken", "1", "2"))
    engine.handle(update("kraken", "3", "4"))
    engine.handle(Heartbeat())
    assert engine.stats["errors"] == 2
    assert engine.store.get("BTC/USD", "kraken") == Snapshot(to_price("3"), to_price("4"))
    assert len(heartbeats.calls) == 1


def test_sink_failure_is_isolated(detector, logger):
    def broken_sink(opp):
        raise IOError("disk full")

    engine = ArbitrageEngine(detector, logger, opportunity_sinks=[broken_sink])
    engine.handle(update("binance", "39999", "40000"))
    engine.handle(update("kraken", "40200", "40201"))
    engine.handle(update("kraken", "40300", "40301"))
    assert engine.stats["errors"] == 2
    assert engine.stats["updates"] == 3


@pytest.mark.asyncio
async def test_run_consumes_reported_snapshots_until_shutdown(engine, opportunities):
    task = engine.start()
    engine.report_snapshot("binance", "BTC/USD", to_price("39999"), to_price("40000"))
    engine.report_snapshot("kraken", "BTC/USD", to_price("40200"), to_price("40201"))

    for _ in range(100):
        if engine.stats["updates"] == 2:
            break
        await asyncio.sleep(0.01)

    assert len(opportunities.calls) == 1
    assert await engine.shutdown() is True
    assert task.done()
    assert await engine.shutdown() is False


@pytest.mark.asyncio
async def test_shutdown_discards_pending_events(engine):
    for i in range(5):
        engine.report_snapshot("binance", "BTC/USD", i, i)
    engine.start()
    # loop task hasn't run yet; close wins
    await engine.shutdown()
    assert engine.stats["updates"] == 0
    engine.report_snapshot("binance", "BTC/USD", 1, 1)
    assert engine.queue.dropped == 1
