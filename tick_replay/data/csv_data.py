"""
CSV data loaders.

This module maps the exchange's raw CSV exports onto the `Tick` and
`Transaction` models.  The expected tick schema is::

    nTime,nPrice,nAskPrice1..N,nAskVolume1..N,nBidPrice1..N,nBidVolume1..N,HighLimited,LowLimited

and the expected transaction schema is::

    Time,Index,Price,Volume,BSFlag

Additional columns (``chWindCode``, ``TotalVolume`` and so on) are
ignored.  Times are encoded ``HHMMSSmmm`` integers and are converted
to milliseconds since midnight.  The ladder depth ``N`` is taken from
the header rather than assumed.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List

import pandas as pd

from ..errors import DataError
from ..utils.timeutils import time_parser
from .models import Direction, Tick, Transaction

logger = logging.getLogger(__name__)

_LEVEL_RE = re.compile(r"^nAskPrice(\d+)$")

TICK_COLUMNS = ["nTime", "nPrice", "HighLimited", "LowLimited"]
TRANSACTION_COLUMNS = ["Time", "Index", "Price", "Volume", "BSFlag"]


def _read_csv(path: Path, required: List[str], what: str) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"{what} CSV file not found: {path}")
    try:
        df = pd.read_csv(path, skipinitialspace=True)
    except (pd.errors.EmptyDataError, pd.errors.ParserError, UnicodeDecodeError) as exc:
        raise DataError(f"could not read {what} CSV {path}: {exc}") from exc
    df.columns = [str(c).strip() for c in df.columns]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise DataError(
            f"Unrecognized {what} CSV format in {path}. Missing columns: {missing}. "
            f"Found columns: {list(df.columns)}"
        )
    return df


def _integer_columns(df: pd.DataFrame, columns: List[str], path: Path) -> pd.DataFrame:
    out = df[columns].apply(pd.to_numeric, errors="coerce")
    if out.isna().any().any():
        bad = out.columns[out.isna().any()].tolist()
        raise DataError(f"Non-numeric values in {path} columns {bad}")
    return out.astype("int64")


def ladder_depth(columns) -> int:
    """Number of consecutive price levels present in a tick CSV header."""
    levels = sorted(int(m.group(1)) for m in map(_LEVEL_RE.match, columns) if m)
    depth = 0
    for expected, level in enumerate(levels, start=1):
        if level != expected:
            break
        depth = level
    return depth


def load_ticks(path: str) -> List[Tick]:
    """Load order-book snapshots from a CSV file.

    Empty ladder slots (price ``0``) are dropped, so a snapshot may carry
    fewer levels than the header declares.  Rows are stably sorted by
    timestamp.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    DataError
        If the file is empty or unparseable, or required columns are
        missing or hold non-numeric values.
    """
    file_path = Path(path)
    df = _read_csv(file_path, TICK_COLUMNS, "tick")
    depth = ladder_depth(df.columns)
    if depth == 0:
        raise DataError(f"No nAskPrice1.. columns found in tick CSV {file_path}")

    sides = {}
    for side in ("Ask", "Bid"):
        sides[side] = [(f"n{side}Price{k}", f"n{side}Volume{k}") for k in range(1, depth + 1)]
    level_columns = [c for pairs in sides.values() for pair in pairs for c in pair]
    missing = [c for c in level_columns if c not in df.columns]
    if missing:
        raise DataError(f"Incomplete ladder columns in {file_path}: {missing}")

    values = _integer_columns(df, TICK_COLUMNS + level_columns, file_path)
    values["timestamp"] = values["nTime"].map(time_parser)
    values = values.sort_values("timestamp", kind="mergesort")

    ticks: List[Tick] = []
    for row in values.itertuples(index=False):
        record = row._asdict()
        ladders = {
            side: tuple(
                (record[p], record[v]) for p, v in pairs if record[p] > 0
            )
            for side, pairs in sides.items()
        }
        try:
            ticks.append(
                Tick(
                    timestamp=int(record["timestamp"]),
                    new_price=int(record["nPrice"]),
                    asks=ladders["Ask"],
                    bids=ladders["Bid"],
                    high_limited=int(record["HighLimited"]),
                    low_limited=int(record["LowLimited"]),
                )
            )
        except DataError as exc:
            raise DataError(f"{file_path} at nTime={record['nTime']}: {exc}") from exc

    logger.info("Loaded %d ticks (%d levels) from %s", len(ticks), depth, file_path)
    return ticks


def load_transactions(path: str) -> List[Transaction]:
    """Load trade-tape events from a CSV file, stably sorted by timestamp.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    DataError
        If the file is empty or unparseable, or required columns are
        missing, hold non-numeric values or an unknown ``BSFlag``.
    """
    file_path = Path(path)
    df = _read_csv(file_path, TRANSACTION_COLUMNS, "transaction")
    values = _integer_columns(df, ["Time", "Index", "Price", "Volume"], file_path)
    values["direction"] = df["BSFlag"].astype(str).map(Direction.from_flag)
    values["timestamp"] = values["Time"].map(time_parser)
    values = values.sort_values("timestamp", kind="mergesort")

    transactions = [
        Transaction(
            timestamp=int(row.timestamp),
            index=int(row.Index),
            price=int(row.Price),
            volume=int(row.Volume),
            direction=row.direction,
        )
        for row in values.itertuples(index=False)
    ]
    logger.info("Loaded %d transactions from %s", len(transactions), file_path)
    return transactions
