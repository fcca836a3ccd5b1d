"""
Market data models: order-book snapshots and trade-tape events.

A `Tick` holds the top of the order book at one instant as two price
ladders, each a sequence of ``(price, volume)`` levels with the best
price first (ascending for asks, descending for bids).  A `Transaction`
is one completed trade from the tape together with the side that
initiated it.

Prices are integers in minor currency units and volumes are integer
share counts, so all matching arithmetic is exact integer arithmetic.
Timestamps are milliseconds since midnight (see `utils.timeutils`).
"""

from __future__ import annotations

import bisect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from ..errors import DataError, TradingHoursError
from ..utils.timeutils import TRADING_SESSIONS, format_timestamp, in_trading_time

logger = logging.getLogger(__name__)

Level = Tuple[int, int]


class Direction(str, Enum):
    """Order side, or the aggressor side of a transaction."""

    BUY = "B"
    SELL = "S"

    @classmethod
    def from_flag(cls, flag: str) -> "Direction":
        """Map a tape ``BSFlag`` value (``"B"``/``"S"``) onto a direction."""
        try:
            return cls(str(flag).strip().upper())
        except ValueError:
            raise DataError(f"unexpected direction flag: {flag!r}") from None


def _check_ladder(levels: Sequence[Level], ascending: bool, name: str) -> None:
    prices = [p for p, _ in levels]
    for prev, cur in zip(prices, prices[1:]):
        if (ascending and cur <= prev) or (not ascending and cur >= prev):
            order = "ascending" if ascending else "descending"
            raise DataError(f"{name} prices must be strictly {order}: {prices}")


@dataclass(frozen=True)
class Transaction:
    """One executed trade from the tape."""

    timestamp: int
    index: int
    price: int
    volume: int
    direction: Direction

    def handle(self, orders: List[List[int]]) -> None:
        """Consume resting volume from `orders` in price-time priority.

        `orders` is a mutable ladder of ``[price, volume]`` levels, best
        price first.  Levels are walked from the best price outward; the
        walk stops at the first level this trade's price does not reach.
        Each crossed level is drained until the trade volume runs out.
        """
        trx_volume = self.volume
        for level in orders:
            price = level[0]
            if self.direction is Direction.BUY:
                crosses = self.price >= price
            else:
                crosses = self.price <= price
            if not crosses:
                break
            if trx_volume > level[1]:
                trx_volume -= level[1]
                level[1] = 0
            else:
                level[1] -= trx_volume
                break


@dataclass(frozen=True)
class Tick:
    """One order-book snapshot.

    Attributes
    ----------
    timestamp : int
        Milliseconds since midnight.
    new_price : int
        Last traded price.
    asks, bids : tuple of (price, volume)
        Price ladders, best level first.  The depth is whatever the data
        source provides.
    high_limited, low_limited : int
        Daily upper and lower price limits.
    """

    timestamp: int
    new_price: int
    asks: Tuple[Level, ...] = ()
    bids: Tuple[Level, ...] = ()
    high_limited: int = 0
    low_limited: int = 0

    def __post_init__(self) -> None:
        asks = tuple((int(p), int(v)) for p, v in self.asks)
        bids = tuple((int(p), int(v)) for p, v in self.bids)
        _check_ladder(asks, ascending=True, name="ask")
        _check_ladder(bids, ascending=False, name="bid")
        object.__setattr__(self, "asks", asks)
        object.__setattr__(self, "bids", bids)

    def time_elapsed(self, other: "Tick") -> int:
        return self.timestamp - other.timestamp

    def in_trading_time(self, sessions=TRADING_SESSIONS) -> bool:
        return in_trading_time(self.timestamp, sessions)

    def is_price_valid(self, price: int, direction: Direction) -> bool:
        """Check `price` against the daily limit for the given side."""
        if direction is Direction.BUY:
            return price < self.high_limited
        return price > self.low_limited

    def first_ask_price(self) -> Optional[int]:
        return self.asks[0][0] if self.asks else None

    def first_bid_price(self) -> Optional[int]:
        return self.bids[0][0] if self.bids else None

    def handle_market_order(
        self,
        volume: int,
        direction: Direction,
        sessions=TRADING_SESSIONS,
    ) -> Tuple[int, int]:
        """Fill a market order against this snapshot's ladder.

        A buy consumes the ask ladder and a sell consumes the bid ladder,
        from the best level outward.

        Parameters
        ----------
        volume : int
            Requested volume.  Must be positive.
        direction : Direction
            Side of the order.
        sessions : sequence of (start_ms, end_ms)
            Trading session windows.

        Returns
        -------
        (average_price, value) : tuple of int
            `value` is the notional consumed and `average_price` is
            ``value // volume``.

        Raises
        ------
        ValueError
            If `volume` is zero or negative.
        TradingHoursError
            If the snapshot lies outside the trading sessions.
        """
        if volume <= 0:
            raise ValueError(f"volume of market order should be positive, got {volume}")
        if not self.in_trading_time(sessions):
            raise TradingHoursError(
                self.timestamp,
                f"market order at {format_timestamp(self.timestamp)} is not in trading time",
            )

        levels = self.asks if direction is Direction.BUY else self.bids
        value = 0
        left_volume = volume
        for price, level_volume in levels:
            if level_volume >= left_volume:
                value += price * left_volume
                left_volume = 0
                break
            left_volume -= level_volume
            value += price * level_volume

        if left_volume > 0:
            logger.warning(
                "market %s of %d at %s exhausted the ladder, %d left unfilled",
                direction.name.lower(), volume, format_timestamp(self.timestamp), left_volume,
            )
        return value // volume, value

    def handle_limit_order_by_transaction(
        self,
        price: int,
        volume: int,
        direction: Direction,
        transaction: Transaction,
        corrected: bool = False,
    ) -> int:
        """Estimate how much of a resting limit order survives a transaction.

        The resting order is inserted into a copy of one of this snapshot's
        ladders at its limit price, joining an existing level if one sits
        at the same price.  The transaction then consumes that ladder and
        the order keeps a pro rata share of whatever is left at its level.

        By default a sell is placed into the bid ladder and a buy into the
        ask ladder.  With ``corrected=True`` each order rests on its own
        side of the book instead (sell on the asks, buy on the bids).

        Returns
        -------
        int
            The order's remaining volume after the transaction.
        """
        if volume <= 0:
            raise ValueError(f"volume of limit order should be positive, got {volume}")
        # Trades initiated from our own side never hit our resting order.
        if transaction.direction is direction:
            return volume

        rests_on_asks = (direction is Direction.SELL) == corrected
        if rests_on_asks:
            orders = [[p, v] for p, v in self.asks]
            index = bisect.bisect_left(orders, price, key=lambda level: level[0])
        else:
            orders = [[p, v] for p, v in self.bids]
            index = bisect.bisect_left(orders, -price, key=lambda level: -level[0])

        if index < len(orders) and orders[index][0] == price:
            orders[index][1] += volume
        else:
            orders.insert(index, [price, volume])
        volume_before = orders[index][1]
        transaction.handle(orders)
        return orders[index][1] * volume // volume_before
