"""
Short-term momentum trigger.

The trigger fires on a tick when some earlier tick inside the lookback
window traded at least `rise_threshold` above the current price, that
is, when the price has just moved through a sharp swing.  Opens are
rate limited by a cooldown and restricted to the trading sessions.
"""

from __future__ import annotations

from typing import Optional, Sequence

from ..config.schema import StrategyConfig
from ..data.models import Tick


class MomentumTrigger:
    """Decide whether a position should be opened at a given tick."""

    def __init__(self, config: StrategyConfig) -> None:
        self.config = config

    def cooling_down(self, tick: Tick, last_open: Optional[int]) -> bool:
        """`True` while the cooldown since the previous open has not elapsed."""
        if last_open is None:
            return False
        return tick.timestamp - last_open <= self.config.open_min_interval

    def should_open(
        self,
        ticks: Sequence[Tick],
        index: int,
        last_open: Optional[int],
    ) -> bool:
        """Evaluate the trigger for ``ticks[index]``.

        Parameters
        ----------
        ticks : sequence of Tick
            The full, time-ordered snapshot sequence.
        index : int
            Position of the candidate tick.
        last_open : int or None
            Timestamp of the previous successful open, `None` if there
            was none yet.

        Returns
        -------
        bool
            Whether a market buy should be attempted on this tick.
        """
        open_tick = ticks[index]
        if not open_tick.in_trading_time(self.config.sessions):
            return False
        if self.cooling_down(open_tick, last_open):
            return False

        expect_price = open_tick.new_price * (1.0 + self.config.rise_threshold)
        # Walk back until the window expires; earlier ticks are older still.
        for i in range(index - 1, -1, -1):
            prev = ticks[i]
            if open_tick.time_elapsed(prev) > self.config.rise_duration:
                break
            if prev.new_price >= expect_price:
                return True
        return False
