"""
Configuration schema and loader.

This module defines dataclasses that mirror the expected structure of
the YAML configuration file (`config.yaml`).  A helper function
`load_config()` reads a YAML file from disk and returns an instance
of `Config` populated with defaults for any missing fields.

The file speaks in human units (minutes, seconds, percent).  The
engine works in milliseconds and fractions; `Config.strategy_config()`
performs that conversion once and hands the engine an immutable
`StrategyConfig`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..errors import ConfigError
from ..utils.timeutils import MS_PER_MINUTE, MS_PER_SECOND, TRADING_SESSIONS, session_window


@dataclass
class SessionConfig:
    """One trading session window.

    Attributes
    ----------
    start : str
        Start time in `HH:MM` (or `HH:MM:SS`) 24‑hour format.
    end : str
        End time in the same format.  Unlike a bar session, both ends are
        inclusive: an order stamped exactly at `end` is accepted.
    """

    start: str = "09:30"
    end: str = "11:30"


def _default_sessions() -> List[SessionConfig]:
    return [SessionConfig("09:30", "11:30"), SessionConfig("13:00", "15:00")]


@dataclass
class StrategyRawConfig:
    """Strategy thresholds as written in the configuration file.

    Attributes
    ----------
    rise_duration_min : float
        Lookback window for the rise trigger, in minutes.
    rise_threshold_percent : float
        Price rise, in percent, that an earlier tick in the window must
        exceed relative to the current price.
    open_volume : int
        Shares bought per opened position.
    open_min_interval_sec : float
        Cooldown between two opens, in seconds.
    limit_close_elapsed_sec : float
        Delay after an open before the resting close order is placed.
    close_waiting_elapsed_sec : float
        How long the resting close order may wait before it is forced out
        with a market order.
    active_fee_ratio, passive_fee_ratio : float
        Fees in percent of notional value for market and limit closes.
    corrected_close_side : bool
        Price the resting sell at the best bid and rest it on the ask
        ladder.  The default reproduces the historical behaviour, which
        prices it at the best ask and reconstructs fills on the bids.
    """

    rise_duration_min: float = 10
    rise_threshold_percent: float = 0.5
    open_volume: int = 1000
    open_min_interval_sec: float = 30
    limit_close_elapsed_sec: float = 60
    close_waiting_elapsed_sec: float = 30
    active_fee_ratio: float = 0.02
    passive_fee_ratio: float = 0.015
    corrected_close_side: bool = False


@dataclass
class DataConfig:
    """Data source configuration.

    Attributes
    ----------
    tick_csv : str
        Path of the order-book snapshot CSV.
    transaction_csv : str
        Path of the trade-tape CSV.
    """

    tick_csv: str = "resource/ticks.csv"
    transaction_csv: str = "resource/transactions.csv"


@dataclass
class EngineConfig:
    """Simulation engine settings.

    Attributes
    ----------
    max_workers : int or None
        Size of the worker pool used to simulate positions.  `None`
        leaves the choice to `concurrent.futures.ThreadPoolExecutor`.
    """

    max_workers: Optional[int] = None


@dataclass
class ReportConfig:
    out_dir: str = "results"
    plot: bool = True


@dataclass(frozen=True)
class StrategyConfig:
    """Engine-ready strategy parameters.

    Durations are milliseconds and ratios are fractions.  Instances are
    immutable and shared read-only by all simulation workers.
    """

    rise_duration: int = 10 * MS_PER_MINUTE
    rise_threshold: float = 0.5 / 100
    open_volume: int = 1000
    open_min_interval: int = 30 * MS_PER_SECOND
    limit_close_elapsed: int = 60 * MS_PER_SECOND
    close_waiting_elapsed: int = 30 * MS_PER_SECOND
    active_fee_ratio: float = 0.02 / 100
    passive_fee_ratio: float = 0.015 / 100
    sessions: Tuple[Tuple[int, int], ...] = TRADING_SESSIONS
    corrected_close_side: bool = False


@dataclass
class Config:
    """Root configuration for the replay program.

    Attributes
    ----------
    strategy : StrategyRawConfig
        Strategy thresholds in file units.
    sessions : list of SessionConfig
        Trading session windows; orders are only placed inside them.
    data : DataConfig
        Input CSV locations.
    engine : EngineConfig
        Worker pool settings.
    report : ReportConfig
        Output directory and plotting switch.
    """

    strategy: StrategyRawConfig = field(default_factory=StrategyRawConfig)
    sessions: List[SessionConfig] = field(default_factory=_default_sessions)
    data: DataConfig = field(default_factory=DataConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    report: ReportConfig = field(default_factory=ReportConfig)

    def strategy_config(self) -> StrategyConfig:
        """Convert the file-level settings into an engine `StrategyConfig`."""
        raw = self.strategy
        try:
            sessions = tuple(session_window(s.start, s.end) for s in self.sessions)
        except (TypeError, ValueError, AttributeError) as exc:
            # Unquoted 13:00 is read by YAML as a base-60 integer.
            raise ConfigError(
                f"invalid session window: {exc} (quote session times, e.g. '13:00')"
            ) from exc
        return StrategyConfig(
            rise_duration=round(raw.rise_duration_min * MS_PER_MINUTE),
            rise_threshold=raw.rise_threshold_percent / 100.0,
            open_volume=raw.open_volume,
            open_min_interval=round(raw.open_min_interval_sec * MS_PER_SECOND),
            limit_close_elapsed=round(raw.limit_close_elapsed_sec * MS_PER_SECOND),
            close_waiting_elapsed=round(raw.close_waiting_elapsed_sec * MS_PER_SECOND),
            active_fee_ratio=raw.active_fee_ratio / 100.0,
            passive_fee_ratio=raw.passive_fee_ratio / 100.0,
            sessions=sessions,
            corrected_close_side=raw.corrected_close_side,
        )


def _merge_dict(defaults: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge two dictionaries.

    The values in `override` take precedence over those in `defaults`.
    This helper is used when loading YAML into nested dataclasses.
    """
    result: Dict[str, Any] = defaults.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_dict(result[key], value)
        else:
            result[key] = value
    return result


def _section_defaults(cls) -> Dict[str, Any]:
    instance = cls()
    return {f.name: getattr(instance, f.name) for f in fields(cls)}


def _build(cls, values: Any, section: str):
    if not isinstance(values, dict):
        raise ConfigError(f"section '{section}' must be a mapping, got {type(values).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigError(f"unknown keys in section '{section}': {unknown}")
    return cls(**values)


def _as_number(value: Any, name: str, integer: bool = False):
    if isinstance(value, bool):
        raise ConfigError(f"strategy.{name} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"strategy.{name} must be a number, got {value!r}") from None
    if not math.isfinite(number) or number < 0:
        raise ConfigError(f"strategy.{name} must be a finite non-negative number, got {value!r}")
    if integer:
        if number != int(number):
            raise ConfigError(f"strategy.{name} must be an integer, got {value!r}")
        return int(number)
    return number


def _validate_strategy(raw: StrategyRawConfig) -> StrategyRawConfig:
    for f in fields(StrategyRawConfig):
        if f.name == "corrected_close_side":
            continue
        value = _as_number(getattr(raw, f.name), f.name, integer=f.name == "open_volume")
        setattr(raw, f.name, value)
    if raw.open_volume <= 0:
        raise ConfigError(f"strategy.open_volume must be positive, got {raw.open_volume}")
    raw.corrected_close_side = bool(raw.corrected_close_side)
    return raw


def load_config(path: str) -> Config:
    """Load a configuration file from the given YAML path.

    Parameters
    ----------
    path : str
        Path to the YAML file.

    Returns
    -------
    Config
        A populated configuration object.  Missing fields are filled with
        the defaults defined in the dataclasses.

    Raises
    ------
    FileNotFoundError
        If `path` does not exist.
    ConfigError
        If the file is not valid YAML or holds unknown keys or invalid values.
    """
    with open(path, "r", encoding="utf-8") as fh:
        try:
            raw: Any = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"could not parse {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError(f"top level of {path} must be a mapping")

    # Build nested dictionaries representing the default dataclasses
    defaults: Dict[str, Any] = {
        'strategy': _section_defaults(StrategyRawConfig),
        'sessions': [{'start': s.start, 'end': s.end} for s in _default_sessions()],
        'data': _section_defaults(DataConfig),
        'engine': _section_defaults(EngineConfig),
        'report': _section_defaults(ReportConfig),
    }
    unknown = sorted(set(raw) - set(defaults))
    if unknown:
        raise ConfigError(f"unknown top-level keys in {path}: {unknown}")

    merged = _merge_dict(defaults, raw)

    sessions_raw = merged['sessions']
    if not isinstance(sessions_raw, list) or not sessions_raw:
        raise ConfigError("'sessions' must be a non-empty list of {start, end} mappings")

    cfg = Config(
        strategy=_validate_strategy(_build(StrategyRawConfig, merged['strategy'], 'strategy')),
        sessions=[_build(SessionConfig, s, 'sessions') for s in sessions_raw],
        data=_build(DataConfig, merged['data'], 'data'),
        engine=_build(EngineConfig, merged['engine'], 'engine'),
        report=_build(ReportConfig, merged['report'], 'report'),
    )
    max_workers = cfg.engine.max_workers
    if max_workers is not None and (not isinstance(max_workers, int) or max_workers <= 0):
        raise ConfigError(f"engine.max_workers must be a positive integer, got {max_workers!r}")
    # Fail early on unparseable session strings.
    cfg.strategy_config()
    return cfg
