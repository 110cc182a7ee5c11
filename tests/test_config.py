from decimal import Decimal
from pathlib import Path

import pytest

from arbwatch.config import ConfigError, EngineConfig, load_config
from arbwatch.reconnect import ExponentialBackoffPolicy, FixedDelayPolicy


def test_from_dict_builds_engine_settings(raw_config):
    cfg = EngineConfig.from_dict(raw_config)
    assert cfg.fees == {"binance": Decimal("0.001"), "kraken": Decimal("0.002")}
    assert cfg.min_profit == 100
    assert cfg.heartbeat_interval == 60
    assert cfg.reconnect_policy() == FixedDelayPolicy(5)
    assert cfg.venue_symbols("binance") == {"BTC/USD": "BTCUSDT"}
    assert cfg.venue_symbols("kraken") == {"BTC/USD": "BTC/USD"}
    assert cfg.exchanges["kraken"].base_price == Decimal("60000")
    assert cfg.dashboard is False


def test_yaml_float_fees_stay_exact(raw_config):
    raw_config["exchanges"]["binance"]["fee"] = 0.001
    cfg = EngineConfig.from_dict(raw_config)
    assert cfg.fees["binance"] == Decimal("0.001")


def test_defaults_when_sections_missing():
    cfg = EngineConfig.from_dict({"exchanges": {"binance": {}, "kraken": {}}, "symbols": {"BTC/USD": {}}})
    assert cfg.min_profit == 100
    assert cfg.heartbeat_interval == 60
    assert cfg.reconnect_delay == 5
    assert cfg.fees == {"binance": Decimal(0), "kraken": Decimal(0)}
    # no native override: the canonical name is used
    assert cfg.venue_symbols("kraken") == {"BTC/USD": "BTC/USD"}


def test_disabled_exchange_is_skipped(raw_config):
    raw_config["exchanges"]["kraken"]["enabled"] = False
    cfg = EngineConfig.from_dict(raw_config)
    assert list(cfg.exchanges) == ["binance"]
    assert cfg.venue_symbols("kraken") == {}


def test_exponential_strategy(raw_config):
    raw_config["reconnect"] = {"strategy": "exponential", "delay_seconds": 1, "max_delay_seconds": 30}
    policy = EngineConfig.from_dict(raw_config).reconnect_policy()
    assert policy == ExponentialBackoffPolicy(base_seconds=1, max_seconds=30)


@pytest.mark.parametrize("mutate", [
    lambda c: c.pop("exchanges"),
    lambda c: c.pop("symbols"),
    lambda c: c["exchanges"]["binance"].update(fee="lots"),
    lambda c: c["exchanges"]["binance"].update(fee="1.5"),
    lambda c: c["detector"].update(min_profit=0.5),
    lambda c: c["heartbeat"].update(interval_seconds=0),
    lambda c: c["reconnect"].update(strategy="yolo"),
    lambda c: c["reconnect"].update(delay_seconds=-1),
    lambda c: c["symbols"].update({"ETH/USD": ["ETHUSDT"]}),
])
def test_invalid_config_raises(raw_config, mutate):
    mutate(raw_config)
    with pytest.raises(ConfigError):
        EngineConfig.from_dict(raw_config)


def test_select_narrows_symbols_and_exchanges(raw_config):
    raw_config["symbols"]["ETH/USD"] = {"binance": "ETHUSDT", "kraken": "ETH/USD"}
    raw_config["exchanges"]["okx"] = {"fee": "0.001"}
    cfg = EngineConfig.from_dict(raw_config).select(["ETH/USD"], ["binance", "kraken"])
    assert list(cfg.symbols) == ["ETH/USD"]
    assert set(cfg.exchanges) == {"binance", "kraken"}
    assert cfg.symbols["ETH/USD"] == {"binance": "ETHUSDT", "kraken": "ETH/USD"}

    with pytest.raises(ConfigError):
        cfg.select(["DOGE/USD"], ["binance"])


def test_load_config_reads_yaml(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("exchanges:\n  binance:\n    fee: '0.001'\nsymbols:\n  BTC/USD: {}\n")
    raw = load_config(str(path))
    assert raw["exchanges"]["binance"]["fee"] == "0.001"


def test_load_config_rejects_non_mapping(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_shipped_config_is_valid():
    root = Path(__file__).resolve().parent.parent
    cfg = EngineConfig.from_dict(load_config(str(root / "config.yaml")))
    assert set(cfg.exchanges) == {"binance", "kraken"}
    assert cfg.venue_symbols("binance")["BTC/USD"] == "BTCUSDT"
