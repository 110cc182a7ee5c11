import copy
import logging
from decimal import Decimal

import pytest

from arbwatch.detector import ArbitrageDetector
from arbwatch.engine import ArbitrageEngine


BASE_CONFIG = {
    "symbols": {
        "BTC/USD": {"binance": "BTCUSDT", "kraken": "BTC/USD"},
    },
    "exchanges": {
        "binance": {"fee": "0.001", "mock_base_price": "40000"},
        "kraken": {"fee": "0.002", "mock_base_price": "60000"},
    },
    "detector": {"min_profit": 100},
    "heartbeat": {"interval_seconds": 60},
    "reconnect": {"strategy": "fixed", "delay_seconds": 5},
    "system": {"log_level": "DEBUG", "dashboard": False},
}


class Recorder:
    """Collects whatever a sink is called with."""
    def __init__(self):
        self.calls = []

    def __call__(self, item):
        self.calls.append(item)


@pytest.fixture
def logger():
    log = logging.getLogger("tests.arbwatch")
    log.setLevel(logging.DEBUG)
    return log


@pytest.fixture
def raw_config():
    return copy.deepcopy(BASE_CONFIG)


@pytest.fixture
def detector():
    return ArbitrageDetector({"binance": Decimal("0.001"), "kraken": Decimal("0.002")}, min_profit=100)


@pytest.fixture
def opportunities():
    return Recorder()


@pytest.fixture
def heartbeats():
    return Recorder()


@pytest.fixture
def engine(detector, logger, opportunities, heartbeats):
    return ArbitrageEngine(detector, logger, [opportunities], [heartbeats])
