# arbwatch/market_check.py
import ccxt.async_support as ccxt
from typing import Dict, List

class MarketCatalog:
    """
    Pre-flight diagnostics over public REST endpoints (no API keys).
    Confirms every venue-native symbol we are about to subscribe to is
    actually listed, so a typo shows up as one clear error instead of a
    silent feed.
    """
    def __init__(self, venue_symbols: Dict[str, Dict[str, str]], logger, timeout_ms: int = 10000):
        # { 'binance': { 'BTC/USD': 'BTCUSDT' } }
        self.venue_symbols = venue_symbols
        self.logger = logger
        self.timeout_ms = timeout_ms
        self.missing: Dict[str, List[str]] = {}

    @staticmethod
    def _listed(client, native: str) -> bool:
        markets = client.markets or {}
        by_id = client.markets_by_id or {}
        return native in markets or native in by_id or native.replace('/', '').upper() in by_id

    async def verify(self) -> bool:
        """Returns False if ANY venue is unreachable or lacks a symbol."""
        all_ok = True
        self.logger.info("📡 CHECKING MARKET LISTINGS...")

        for name, symbols in self.venue_symbols.items():
            client = None
            try:
                ex_class = getattr(ccxt, name)
                client = ex_class({
                    'timeout': self.timeout_ms,
                    'enableRateLimit': True,
                    'options': {'defaultType': 'spot'}
                })
                await client.load_markets()

                missing = [native for native in symbols.values() if not self._listed(client, native)]
                if missing:
                    self.missing[name] = missing
                    self.logger.error(f"   ❌ {name.upper():<10} | NOT LISTED: {', '.join(missing)}")
                    all_ok = False
                else:
                    self.logger.info(f"   ✅ {name.upper():<10} | {len(symbols)} symbols listed")

            except AttributeError:
                self.logger.error(f"   ❌ {name.upper():<10} | UNKNOWN EXCHANGE: ccxt has no '{name}'")
                all_ok = False

            except ccxt.RequestTimeout:
                self.logger.error(f"   ❌ {name.upper():<10} | TIMEOUT: Exchange API is slow or down.")
                all_ok = False

            except ccxt.ExchangeNotAvailable:
                self.logger.error(f"   ❌ {name.upper():<10} | MAINTENANCE: Exchange is currently offline.")
                all_ok = False

            except ccxt.NetworkError as e:
                self.logger.error(f"   ❌ {name.upper():<10} | NETWORK: {e}")
                all_ok = False

            except Exception as e:
                self.logger.critical(f"   ❌ {name.upper():<10} | UNKNOWN ERROR: {str(e)}")
                all_ok = False

            finally:
                if client is not None:
                    await client.close()

        return all_ok
