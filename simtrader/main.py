"""Command-line entry point: run a simulation over a CSV price universe."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from simtrader.backtest.simulation import Simulation
from simtrader.core.config import Settings, load_settings
from simtrader.core.exceptions import SimTraderError
from simtrader.core.logger import setup_logging
from simtrader.data.loader import load_universe

logger = logging.getLogger("simtrader.main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="simtrader", description="Run an equity portfolio backtest.")
    parser.add_argument("-c", "--config", default="config/default.yaml", help="YAML settings file")
    parser.add_argument("--data-dir", help="directory of <TICKER>.csv daily bars")
    parser.add_argument("--symbols", nargs="*", help="tickers to load (default: settings or every CSV)")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    config_path = Path(args.config)
    if config_path.exists():
        settings = load_settings(config_path)
    else:
        settings = Settings()

    setup_logging(
        "simtrader",
        level=args.log_level or settings.system.log_level,
        log_dir=settings.system.log_dir,
        run_name=settings.system.name,
    )

    data_dir = args.data_dir or settings.simulation.data_dir
    symbols = args.symbols or settings.symbols or None
    try:
        universe = load_universe(data_dir, symbols)
    except SimTraderError:
        logger.exception("Could not load price data from %s", data_dir)
        return 1

    simulation = Simulation.from_settings(settings, universe)
    if not simulation.run():
        return 1

    for line in simulation.results.to_lines():
        logger.info(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
