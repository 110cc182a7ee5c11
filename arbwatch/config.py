# arbwatch/config.py
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List

import yaml

from .detector import DEFAULT_MIN_PROFIT
from .heartbeat import DEFAULT_INTERVAL
from .reconnect import DEFAULT_RECONNECT_DELAY, ReconnectPolicy, build_policy


class ConfigError(ValueError):
    """Invalid or incomplete config.yaml."""


def load_config(path: str = "config.yaml") -> dict:
    with open(path, "r") as f:
        raw = yaml.safe_load(f)
    if not isinstance(raw, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return raw


def _decimal(value: Any, what: str) -> Decimal:
    try:
        # str() first so YAML floats like 0.001 stay exactly 0.001
        dec = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ConfigError(f"{what}: not a number: {value!r}") from None
    if not dec.is_finite():
        raise ConfigError(f"{what}: not finite: {value!r}")
    return dec


def _positive(value: Any, what: str) -> float:
    try:
        num = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{what}: not a number: {value!r}") from None
    if num <= 0:
        raise ConfigError(f"{what}: must be positive, got {value!r}")
    return num


@dataclass
class ExchangeSettings:
    name: str
    fee: Decimal
    base_price: Decimal = Decimal("40000")  # only used by mock feeds


@dataclass
class EngineConfig:
    """
    Static settings for the whole process lifetime.
    symbols maps canonical symbol -> exchange -> venue-native symbol.
    """
    exchanges: Dict[str, ExchangeSettings]
    symbols: Dict[str, Dict[str, str]]
    min_profit: int = DEFAULT_MIN_PROFIT
    default_fee: Decimal = Decimal(0)
    heartbeat_interval: float = DEFAULT_INTERVAL
    reconnect_strategy: str = "fixed"
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY
    reconnect_max_delay: float = 60.0
    opportunity_log: str = ""
    log_level: str = "INFO"
    verify_markets: bool = False
    mock: bool = False
    mock_interval: float = 0.1
    dashboard: bool = True

    @classmethod
    def from_dict(cls, cfg: dict) -> "EngineConfig":
        ex_cfg = cfg.get('exchanges') or {}
        if not isinstance(ex_cfg, dict) or not ex_cfg:
            raise ConfigError("exchanges: at least one exchange is required")

        exchanges = {}
        for name, opts in ex_cfg.items():
            opts = opts or {}
            if not opts.get('enabled', True):
                continue
            exchanges[name] = ExchangeSettings(
                name=name,
                fee=_decimal(opts.get('fee', 0), f"exchanges.{name}.fee"),
                base_price=_decimal(opts.get('mock_base_price', "40000"), f"exchanges.{name}.mock_base_price"),
            )
        for name, ex in exchanges.items():
            if not Decimal(0) <= ex.fee < Decimal(1):
                raise ConfigError(f"exchanges.{name}.fee: must be in [0, 1), got {ex.fee}")

        sym_cfg = cfg.get('symbols') or {}
        if not isinstance(sym_cfg, dict) or not sym_cfg:
            raise ConfigError("symbols: at least one symbol is required")
        symbols = {}
        for canonical, per_venue in sym_cfg.items():
            per_venue = per_venue or {}
            if not isinstance(per_venue, dict):
                raise ConfigError(f"symbols.{canonical}: expected exchange -> native symbol mapping")
            # A venue without an explicit native name uses the canonical one
            symbols[canonical] = {ex: str(per_venue.get(ex, canonical)) for ex in exchanges}

        det = cfg.get('detector') or {}
        min_profit = det.get('min_profit', DEFAULT_MIN_PROFIT)
        if isinstance(min_profit, bool) or not isinstance(min_profit, int):
            raise ConfigError(f"detector.min_profit: must be an integer number of price units, got {min_profit!r}")

        hb = cfg.get('heartbeat') or {}
        rc = cfg.get('reconnect') or {}
        system = cfg.get('system') or {}
        audit = cfg.get('audit') or {}

        strategy = rc.get('strategy', 'fixed')
        if strategy not in ('fixed', 'exponential'):
            raise ConfigError(f"reconnect.strategy: expected 'fixed' or 'exponential', got {strategy!r}")

        return cls(
            exchanges=exchanges,
            symbols=symbols,
            min_profit=min_profit,
            default_fee=_decimal(det.get('default_fee', 0), "detector.default_fee"),
            heartbeat_interval=_positive(hb.get('interval_seconds', DEFAULT_INTERVAL), "heartbeat.interval_seconds"),
            reconnect_strategy=strategy,
            reconnect_delay=_positive(rc.get('delay_seconds', DEFAULT_RECONNECT_DELAY), "reconnect.delay_seconds"),
            reconnect_max_delay=_positive(rc.get('max_delay_seconds', 60.0), "reconnect.max_delay_seconds"),
            opportunity_log=audit.get('opportunity_log', ""),
            log_level=str(system.get('log_level', "INFO")).upper(),
            verify_markets=bool(system.get('verify_markets', False)),
            mock=bool(system.get('mock', False)),
            mock_interval=_positive(system.get('mock_interval_seconds', 0.1), "system.mock_interval_seconds"),
            dashboard=bool(system.get('dashboard', True)),
        )

    @property
    def fees(self) -> Dict[str, Decimal]:
        return {name: ex.fee for name, ex in self.exchanges.items()}

    def reconnect_policy(self) -> ReconnectPolicy:
        return build_policy(self.reconnect_strategy, self.reconnect_delay, self.reconnect_max_delay)

    def venue_symbols(self, exchange: str) -> Dict[str, str]:
        """canonical -> native for one exchange."""
        return {canon: per_venue[exchange] for canon, per_venue in self.symbols.items() if exchange in per_venue}

    def select(self, symbols: List[str], exchanges: List[str]) -> "EngineConfig":
        """Narrows the config to an interactive selection."""
        unknown = [s for s in symbols if s not in self.symbols] + [e for e in exchanges if e not in self.exchanges]
        if unknown:
            raise ConfigError(f"unknown selection: {', '.join(unknown)}")
        picked = {name: self.exchanges[name] for name in exchanges}
        return replace(self, exchanges=picked,
                       symbols={s: {ex: n for ex, n in self.symbols[s].items() if ex in picked} for s in symbols})
