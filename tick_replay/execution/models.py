"""
Order and position models.

These dataclasses represent the records produced by the simulation
engine.  Keeping them in a separate module improves readability and
makes unit testing easier.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class Order:
    """A simulated fill, either opening or closing a position.

    `value` is ``price * volume`` for opens and the fee-adjusted notional
    for closes.  For a market fill across several levels `price` is the
    average price.
    """
    timestamp: int
    price: int
    volume: int
    value: int


@dataclass(frozen=True)
class OpenPosition:
    """An opened position and the tick index it was opened on."""
    tick_index: int
    order: Order


@dataclass(frozen=True)
class ScheduledClose:
    """A resting limit sell, referenced to the tick it was placed on."""
    tick_index: int
    order: Order


@dataclass
class OrderLedger:
    """Every record produced by one engine run, each list sorted by timestamp."""
    opens: List[OpenPosition] = field(default_factory=list)
    scheduled: List[ScheduledClose] = field(default_factory=list)
    active: List[Order] = field(default_factory=list)
    passive: List[Order] = field(default_factory=list)
