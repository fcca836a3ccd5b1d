"""
Application entry point.

This module defines a simple command‑line interface for replaying a
day of ticks and transactions through the momentum strategy.  It
leverages the modules under `tick_replay/` to load configuration and
data, run the simulation engine and generate reports.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import List, Optional

from .config.schema import load_config
from .data.csv_data import load_ticks, load_transactions
from .errors import TickReplayError
from .execution.backtest_exec import BacktestEngine
from .reporting.report import format_result, generate_backtest_report

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )


def run_backtest(args: argparse.Namespace) -> None:
    config = load_config(args.config)
    if args.ticks:
        config.data.tick_csv = args.ticks
    if args.transactions:
        config.data.transaction_csv = args.transactions
    if args.out:
        config.report.out_dir = args.out
    if args.no_plot:
        config.report.plot = False

    start = time.perf_counter()
    ticks = load_ticks(config.data.tick_csv)
    transactions = load_transactions(config.data.transaction_csv)
    logger.info("Loaded data in %.3fs", time.perf_counter() - start)

    engine = BacktestEngine(
        ticks,
        transactions,
        config.strategy_config(),
        max_workers=config.engine.max_workers,
    )
    result, ledger = engine.run()
    print(format_result(result))
    generate_backtest_report(result, ledger, out_dir=config.report.out_dir, plot=config.report.plot)
    logger.info("Backtest complete. Results saved to the '%s' directory.", config.report.out_dir)


def main(argv: Optional[List[str]] = None) -> None:
    """Parse command‑line arguments and dispatch to the appropriate mode."""
    parser = argparse.ArgumentParser(description="Tick replay of a momentum strategy")
    parser.add_argument('mode', choices=['backtest'], help="Operating mode")
    parser.add_argument('--config', default='config.yaml', help="Path to configuration YAML file")
    parser.add_argument('--ticks', help="Tick CSV path, overrides data.tick_csv")
    parser.add_argument('--transactions', help="Transaction CSV path, overrides data.transaction_csv")
    parser.add_argument('--out', help="Report directory, overrides report.out_dir")
    parser.add_argument('--no-plot', action='store_true', help="Skip the cash flow chart")
    parser.add_argument('-v', '--verbose', action='store_true', help="Enable debug logging")
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    try:
        run_backtest(args)
    except (TickReplayError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        sys.exit(1)


if __name__ == '__main__':
    main()
