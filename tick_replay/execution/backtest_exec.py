"""
Backtest execution engine.

This module contains the `BacktestEngine` class which replays a day of
order-book snapshots and trade-tape events for one security.  A run
has three stages:

1. scan the snapshots for the momentum trigger and open positions with
   simulated market buys,
2. for every open, place a resting limit sell once
   `limit_close_elapsed` has passed,
3. for every resting sell, reconstruct passive fills from the trade
   tape until it is filled or `close_waiting_elapsed` runs out, after
   which the remainder is sold at market.

Stages 2 and 3 treat every position independently.  They fan out over
a thread pool; each worker reads the shared, immutable inputs and
returns its own orders, which are merged and sorted by timestamp on
the calling thread.
"""

from __future__ import annotations

import bisect
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

from ..config.schema import StrategyConfig
from ..data.models import Direction, Tick, Transaction
from ..errors import TradingHoursError
from ..reporting.metrics import StrategyResult, compute_result
from ..strategy.momentum import MomentumTrigger
from ..utils.timeutils import format_timestamp, in_trading_time
from .models import OpenPosition, Order, OrderLedger, ScheduledClose

logger = logging.getLogger(__name__)


def apply_fee(value: int, fee_ratio: float) -> int:
    """Deduct a fractional fee from a notional value, truncating."""
    return int(value * (1.0 - fee_ratio))


class BacktestEngine:
    """Simulate the momentum strategy over one day of market data.

    Parameters
    ----------
    ticks : sequence of Tick
        Snapshots sorted ascending by timestamp.
    transactions : sequence of Transaction
        Trade tape sorted ascending by timestamp.
    config : StrategyConfig
        Engine-ready strategy parameters.
    max_workers : int, optional
        Thread pool size for the per-position stages.
    """

    def __init__(
        self,
        ticks: Sequence[Tick],
        transactions: Sequence[Transaction],
        config: StrategyConfig,
        max_workers: Optional[int] = None,
    ) -> None:
        self.ticks = tuple(ticks)
        self.transactions = tuple(transactions)
        self.config = config
        self.max_workers = max_workers
        self.trigger = MomentumTrigger(config)
        self._trx_timestamps = [trx.timestamp for trx in self.transactions]

    # ------------------------------------------------------------------
    # Stage 1: opens
    # ------------------------------------------------------------------

    def open_market_orders(self) -> List[OpenPosition]:
        """Scan the snapshots once and open a position on every trigger."""
        opens: List[OpenPosition] = []
        last_open: Optional[int] = None
        volume = self.config.open_volume
        for index, tick in enumerate(self.ticks):
            if not self.trigger.should_open(self.ticks, index, last_open):
                continue
            try:
                price, value = tick.handle_market_order(volume, Direction.BUY, self.config.sessions)
            except TradingHoursError as exc:
                # Cooldown is left untouched so a later tick may still open.
                logger.warning("Open skipped: %s, volume: %d", exc, volume)
                continue
            opens.append(
                OpenPosition(
                    tick_index=index,
                    order=Order(timestamp=tick.timestamp, price=price, volume=volume, value=value),
                )
            )
            last_open = tick.timestamp
            logger.debug("Opened %d @ %d at %s", volume, price, format_timestamp(tick.timestamp))
        logger.info("Opened %d positions", len(opens))
        return opens

    # ------------------------------------------------------------------
    # Stage 2: scheduling the resting close
    # ------------------------------------------------------------------

    def _limit_price(self, tick: Tick) -> Optional[int]:
        if self.config.corrected_close_side:
            return tick.first_bid_price()
        return tick.first_ask_price()

    def schedule_close(self, position: OpenPosition) -> Optional[ScheduledClose]:
        """Place the resting sell for one position.

        The reference is the first tick later than
        ``open timestamp + limit_close_elapsed``.  Returns `None` when the
        data ends first, or when the reference tick has an empty ladder.
        """
        opened = position.order
        due = opened.timestamp + self.config.limit_close_elapsed
        for index in range(position.tick_index, len(self.ticks)):
            tick = self.ticks[index]
            if tick.timestamp <= due:
                continue
            price = self._limit_price(tick)
            if price is None:
                logger.warning(
                    "Close for open at %s skipped: empty ladder at %s",
                    format_timestamp(opened.timestamp), format_timestamp(tick.timestamp),
                )
                return None
            return ScheduledClose(
                tick_index=index,
                order=Order(
                    timestamp=tick.timestamp,
                    price=price,
                    volume=opened.volume,
                    value=price * opened.volume,
                ),
            )
        logger.debug("No tick after %s to place a close on", format_timestamp(due))
        return None

    def close_limit_pending_orders(self, opens: Sequence[OpenPosition]) -> List[ScheduledClose]:
        """Schedule a resting close for every open, sorted by timestamp."""
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            scheduled = [s for s in pool.map(self.schedule_close, opens) if s is not None]
        scheduled.sort(key=lambda s: s.order.timestamp)
        logger.info("Scheduled %d limit closes for %d opens", len(scheduled), len(opens))
        return scheduled

    # ------------------------------------------------------------------
    # Stage 3: executing the close
    # ------------------------------------------------------------------

    def transactions_between(self, start: int, end: int) -> range:
        """Indices of the transactions with ``start < timestamp < end``."""
        lo = bisect.bisect_right(self._trx_timestamps, start)
        hi = bisect.bisect_left(self._trx_timestamps, end, lo=lo)
        return range(lo, hi)

    def close_position(self, pending: ScheduledClose) -> Tuple[List[Order], List[Order]]:
        """Work one resting sell until it is filled or the data runs out.

        Returns
        -------
        (active, passive) : tuple of list of Order
            At most one market fill and any number of passive fills.
        """
        cfg = self.config
        order = pending.order
        deadline = order.timestamp + cfg.close_waiting_elapsed
        remaining = order.volume
        active: List[Order] = []
        passive: List[Order] = []

        index = pending.tick_index
        while remaining > 0 and index < len(self.ticks):
            tick = self.ticks[index]
            if tick.timestamp > deadline:
                try:
                    price, value = tick.handle_market_order(remaining, Direction.SELL, cfg.sessions)
                except TradingHoursError as exc:
                    logger.warning("Forced close deferred: %s, volume: %d", exc, remaining)
                else:
                    active.append(
                        Order(
                            timestamp=tick.timestamp,
                            price=price,
                            volume=remaining,
                            value=apply_fee(value, cfg.active_fee_ratio),
                        )
                    )
                    logger.debug(
                        "Forced close of %d @ %d at %s",
                        remaining, price, format_timestamp(tick.timestamp),
                    )
                    remaining = 0
                    break

            if index + 1 >= len(self.ticks):
                break
            next_tick = self.ticks[index + 1]
            for trx_index in self.transactions_between(tick.timestamp, next_tick.timestamp):
                transaction = self.transactions[trx_index]
                # Prints outside the sessions never fill a resting order.
                if not in_trading_time(transaction.timestamp, cfg.sessions):
                    continue
                rest = tick.handle_limit_order_by_transaction(
                    order.price,
                    remaining,
                    Direction.SELL,
                    transaction,
                    corrected=cfg.corrected_close_side,
                )
                if rest < remaining:
                    volume = remaining - rest
                    passive.append(
                        Order(
                            timestamp=transaction.timestamp,
                            price=order.price,
                            volume=volume,
                            value=apply_fee(order.price * volume, cfg.passive_fee_ratio),
                        )
                    )
                    remaining = rest
                    if remaining == 0:
                        break
            index += 1

        if remaining > 0:
            logger.debug(
                "Close placed at %s left %d unfilled at end of data",
                format_timestamp(order.timestamp), remaining,
            )
        return active, passive

    def close_all_orders(self, pending: Sequence[ScheduledClose]) -> Tuple[List[Order], List[Order]]:
        """Execute every scheduled close and merge the fills by timestamp."""
        active: List[Order] = []
        passive: List[Order] = []
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            for position_active, position_passive in pool.map(self.close_position, pending):
                active.extend(position_active)
                passive.extend(position_passive)
        active.sort(key=lambda o: o.timestamp)
        passive.sort(key=lambda o: o.timestamp)
        logger.info("Closed with %d market fills and %d limit fills", len(active), len(passive))
        return active, passive

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(self) -> Tuple[StrategyResult, OrderLedger]:
        """Execute all stages.

        Returns
        -------
        result : StrategyResult
            Aggregate counts, values and yield rate.
        ledger : OrderLedger
            Every open, scheduled close and fill, for reporting.
        """
        start = time.perf_counter()
        opens = self.open_market_orders()
        scheduled = self.close_limit_pending_orders(opens)
        active, passive = self.close_all_orders(scheduled)
        elapsed = time.perf_counter() - start
        result = compute_result(opens, active, passive, time_elapsed=elapsed)
        ledger = OrderLedger(opens=opens, scheduled=scheduled, active=active, passive=passive)
        return result, ledger

    def process(self) -> StrategyResult:
        """Run the simulation and return only the aggregate result."""
        result, _ = self.run()
        return result
