"""
Result aggregation.

This module folds the orders produced by the engine into a
`StrategyResult`: counts and notional values for opens, for market
(active) closes and for limit (passive) closes, plus the yield rate.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Iterable, Sequence

from ..execution.models import OpenPosition, Order

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StrategyResult:
    """Aggregate outcome of one run.

    Attributes
    ----------
    open_times, open_value : int
        Number of opened positions and their total notional value.
    close_active_times, close_active_value : int
        Market-order closes and their fee-adjusted value.
    close_passive_times, close_passive_value : int
        Limit-order fills and their fee-adjusted value.
    yield_rate : float
        ``(close value - open value) / open value``; NaN when nothing
        was opened.
    time_elapsed : float
        Wall-clock seconds spent in the engine.
    """

    open_times: int
    open_value: int
    close_active_times: int
    close_active_value: int
    close_passive_times: int
    close_passive_value: int
    yield_rate: float
    time_elapsed: float = 0.0

    @property
    def close_value(self) -> int:
        return self.close_active_value + self.close_passive_value

    def to_dict(self) -> dict:
        data = asdict(self)
        # JSON has no NaN literal.
        if math.isnan(data['yield_rate']):
            data['yield_rate'] = None
        return data


def yield_rate(open_value: int, close_value: int) -> float:
    """Fractional return of `close_value` over `open_value`.

    Returns NaN when `open_value` is zero, i.e. when no position was
    ever opened.
    """
    if open_value == 0:
        return math.nan
    return (close_value - open_value) / open_value


def _total(orders: Iterable[Order]) -> int:
    return sum(order.value for order in orders)


def compute_result(
    opens: Sequence[OpenPosition],
    active: Sequence[Order],
    passive: Sequence[Order],
    time_elapsed: float = 0.0,
) -> StrategyResult:
    """Aggregate opened positions and close fills into a `StrategyResult`."""
    open_value = _total(p.order for p in opens)
    active_value = _total(active)
    passive_value = _total(passive)
    rate = yield_rate(open_value, active_value + passive_value)
    if math.isnan(rate):
        logger.warning("No position was opened; yield rate is undefined")
    return StrategyResult(
        open_times=len(opens),
        open_value=open_value,
        close_active_times=len(active),
        close_active_value=active_value,
        close_passive_times=len(passive),
        close_passive_value=passive_value,
        yield_rate=rate,
        time_elapsed=time_elapsed,
    )
