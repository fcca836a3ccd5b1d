import os
import sys
import tempfile

CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, os.pardir))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from tick_replay.config.schema import Config, StrategyConfig, load_config
from tick_replay.errors import ConfigError
from tick_replay.utils.timeutils import TRADING_SESSIONS

import unittest


class TestLoadConfig(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)

    def write(self, text: str) -> str:
        path = os.path.join(self._tmp.name, 'config.yaml')
        with open(path, 'w', encoding='utf-8') as fh:
            fh.write(text)
        return path

    def test_empty_file_uses_defaults(self) -> None:
        cfg = load_config(self.write(""))
        self.assertEqual(cfg.strategy.open_volume, 1000)
        self.assertEqual(cfg.strategy.rise_duration_min, 10)
        self.assertEqual(len(cfg.sessions), 2)
        self.assertIsNone(cfg.engine.max_workers)
        self.assertEqual(cfg.report.out_dir, 'results')

    def test_partial_override_keeps_other_defaults(self) -> None:
        cfg = load_config(self.write("strategy:\n  open_volume: 500\n  passive_fee_ratio: 0.01\n"))
        self.assertEqual(cfg.strategy.open_volume, 500)
        self.assertEqual(cfg.strategy.passive_fee_ratio, 0.01)
        self.assertEqual(cfg.strategy.active_fee_ratio, 0.02)

    def test_conversion_to_engine_units(self) -> None:
        sc = load_config(self.write("")).strategy_config()
        self.assertEqual(sc.rise_duration, 600_000)
        self.assertAlmostEqual(sc.rise_threshold, 0.005)
        self.assertEqual(sc.open_min_interval, 30_000)
        self.assertEqual(sc.limit_close_elapsed, 60_000)
        self.assertEqual(sc.close_waiting_elapsed, 30_000)
        self.assertAlmostEqual(sc.active_fee_ratio, 0.0002)
        self.assertAlmostEqual(sc.passive_fee_ratio, 0.00015)
        self.assertEqual(sc.sessions, TRADING_SESSIONS)
        self.assertFalse(sc.corrected_close_side)
        self.assertEqual(sc, StrategyConfig())

    def test_custom_sessions(self) -> None:
        cfg = load_config(self.write('sessions:\n  - {start: "09:15", end: "15:00"}\n'))
        self.assertEqual(cfg.strategy_config().sessions, ((33_300_000, 54_000_000),))

    def test_unquoted_session_time_rejected(self) -> None:
        with self.assertRaises(ConfigError):
            load_config(self.write("sessions:\n  - {start: 13:00, end: 15:00}\n"))

    def test_unknown_keys_rejected(self) -> None:
        with self.assertRaises(ConfigError):
            load_config(self.write("strategy:\n  rise_threshold: 1\n"))
        with self.assertRaises(ConfigError):
            load_config(self.write("symbols: [A]\n"))

    def test_invalid_values_rejected(self) -> None:
        for text in (
            "strategy:\n  open_volume: 0\n",
            "strategy:\n  open_volume: 10.5\n",
            "strategy:\n  rise_threshold_percent: -1\n",
            "strategy:\n  active_fee_ratio: abc\n",
            "engine:\n  max_workers: 0\n",
        ):
            with self.subTest(text=text):
                with self.assertRaises(ConfigError):
                    load_config(self.write(text))

    def test_malformed_yaml(self) -> None:
        with self.assertRaises(ConfigError):
            load_config(self.write("strategy: [unclosed\n"))

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_config(os.path.join(self._tmp.name, 'missing.yaml'))

    def test_config_errors_are_value_errors(self) -> None:
        self.assertTrue(issubclass(ConfigError, ValueError))

    def test_dataclass_defaults_match_loader(self) -> None:
        self.assertEqual(Config().strategy_config(), load_config(self.write("")).strategy_config())


if __name__ == '__main__':
    unittest.main()
