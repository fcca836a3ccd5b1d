"""
Exception hierarchy shared by the loaders and the simulation engine.
"""

from __future__ import annotations


class TickReplayError(Exception):
    """Base class for all errors raised by this package."""


class TradingHoursError(TickReplayError):
    """A market order was attempted outside the trading sessions.

    This is a recoverable condition: the engine logs it and moves on.
    """

    def __init__(self, timestamp: int, message: str) -> None:
        super().__init__(message)
        self.timestamp = timestamp


class ConfigError(TickReplayError, ValueError):
    """The configuration file is malformed or holds invalid values."""


class DataError(TickReplayError, ValueError):
    """Raw tick or transaction data could not be mapped onto the models."""
