# main.py
import argparse
import asyncio
import signal
import sys

import questionary

from arbwatch.config import ConfigError, EngineConfig, load_config
from arbwatch.logger import setup_console_logger
from arbwatch.monitor import ArbMonitor


def startup_selection(config: EngineConfig) -> EngineConfig:
    """Interactive CLI to select symbols and exchanges."""
    print("\n🚀 CROSS-VENUE ARB MONITOR \n")
    symbols = questionary.checkbox("Select Symbols to Watch:", choices=list(config.symbols)).ask()
    if not symbols:
        print("No symbols selected. Exiting.")
        sys.exit()

    exchanges = questionary.checkbox("Select Exchanges to Activate:", choices=list(config.exchanges)).ask()
    if not exchanges or len(exchanges) < 2:
        print("Need at least 2 exchanges for arbitrage. Exiting.")
        sys.exit()
    return config.select(symbols, exchanges)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Cross-venue best bid/ask arbitrage monitor")
    parser.add_argument("--config", default="config.yaml", help="path to config.yaml")
    parser.add_argument("--yes", action="store_true", help="skip the interactive selection, watch everything")
    parser.add_argument("--mock", action="store_true", help="use offline mock feeds instead of live venues")
    return parser.parse_args(argv)


async def run(config: EngineConfig):
    logger = setup_console_logger("ArbWatch", config.log_level)
    monitor = ArbMonitor(config, logger)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows: Ctrl-C still arrives as KeyboardInterrupt
            continue

    await monitor.run_until(stop)


if __name__ == "__main__":
    args = parse_args()
    try:
        raw_conf = load_config(args.config)
        if args.mock:
            raw_conf.setdefault('system', {})['mock'] = True
        conf = EngineConfig.from_dict(raw_conf)
    except (OSError, ConfigError) as e:
        print(f"❌ Config error: {e}")
        sys.exit(1)

    try:
        if not args.yes and sys.stdin.isatty():
            conf = startup_selection(conf)
        try:
            import uvloop
            asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
        except ImportError:
            pass
        asyncio.run(run(conf))
    except KeyboardInterrupt:
        print("\n🛑 Monitor Stopped by User.")
        sys.exit()
