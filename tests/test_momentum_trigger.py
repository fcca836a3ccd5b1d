import os
import sys

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from tick_replay.config.schema import StrategyConfig
from tick_replay.data.models import Tick
from tick_replay.strategy.momentum import MomentumTrigger

import unittest

TEN_AM = 36_000_000
NOON = 43_200_000


def make_tick(timestamp: int, price: int) -> Tick:
    return Tick(timestamp=timestamp, new_price=price,
                asks=((price, 10_000),), bids=((price - 1, 10_000),))


class TestMomentumTrigger(unittest.TestCase):
    def setUp(self) -> None:
        self.cfg = StrategyConfig()
        self.trigger = MomentumTrigger(self.cfg)

    def test_fires_on_recent_higher_price(self) -> None:
        ticks = [make_tick(TEN_AM, 1006), make_tick(TEN_AM + 10_000, 1000)]
        self.assertTrue(self.trigger.should_open(ticks, 1, None))

    def test_rise_below_threshold(self) -> None:
        ticks = [make_tick(TEN_AM, 1004), make_tick(TEN_AM + 10_000, 1000)]
        self.assertFalse(self.trigger.should_open(ticks, 1, None))

    def test_first_tick_never_fires(self) -> None:
        ticks = [make_tick(TEN_AM, 1000)]
        self.assertFalse(self.trigger.should_open(ticks, 0, None))

    def test_expired_window_is_ignored(self) -> None:
        ticks = [
            make_tick(TEN_AM - self.cfg.rise_duration - 1, 2000),
            make_tick(TEN_AM - 1000, 1000),
            make_tick(TEN_AM, 1000),
        ]
        self.assertFalse(self.trigger.should_open(ticks, 2, None))

    def test_window_edge_is_included(self) -> None:
        ticks = [make_tick(TEN_AM - self.cfg.rise_duration, 2000), make_tick(TEN_AM, 1000)]
        self.assertTrue(self.trigger.should_open(ticks, 1, None))

    def test_early_exit_matches_full_window_filter(self) -> None:
        prices = [1000, 1010, 1002, 995, 1001, 990, 1003, 1000, 1012, 996]
        ticks = [make_tick(TEN_AM + i * 150_000, p) for i, p in enumerate(prices)]
        for index, tick in enumerate(ticks):
            expect_price = tick.new_price * (1 + self.cfg.rise_threshold)
            brute = any(
                prev.new_price >= expect_price
                for prev in ticks[:index]
                if tick.timestamp - prev.timestamp <= self.cfg.rise_duration
            )
            self.assertEqual(self.trigger.should_open(ticks, index, None), brute)

    def test_outside_trading_hours(self) -> None:
        ticks = [make_tick(NOON - 10_000, 1006), make_tick(NOON, 1000)]
        self.assertFalse(self.trigger.should_open(ticks, 1, None))

    def test_cooldown_boundary(self) -> None:
        ticks = [make_tick(TEN_AM, 1006), make_tick(TEN_AM + 40_000, 1000)]
        last_open = ticks[1].timestamp - self.cfg.open_min_interval
        self.assertFalse(self.trigger.should_open(ticks, 1, last_open))
        self.assertTrue(self.trigger.should_open(ticks, 1, last_open - 1))


if __name__ == '__main__':
    unittest.main()
