"""
Report generation utilities.

This module turns a run's results into human‑readable artefacts: a
text summary for the console, a CSV file of every order, a JSON
summary of the aggregate result and a PNG chart of the cumulative cash
flow.  Having a central place for report generation makes it easy to
extend the output formats in future.
"""

from __future__ import annotations

import json
import math
import os
from typing import List

import matplotlib
import pandas as pd

# Use non‑interactive backend for environments without display
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from ..execution.models import OrderLedger
from ..utils.timeutils import format_timestamp, time_unparser
from .metrics import StrategyResult


def format_result(result: StrategyResult) -> str:
    """Render a result as a multi-line console summary."""
    if math.isnan(result.yield_rate):
        rate = "n/a"
    else:
        rate = f"{result.yield_rate * 100:.4f}%"
    lines = [
        "[Test Result]",
        f"time used: {result.time_elapsed:.3f}s",
        f"yield rate: {rate}",
        "open:",
        f"    times: {result.open_times}",
        f"    value: {result.open_value}",
        "close:",
        "    active:",
        f"        times: {result.close_active_times}",
        f"        value: {result.close_active_value}",
        "    passive:",
        f"        times: {result.close_passive_times}",
        f"        value: {result.close_passive_value}",
    ]
    return "\n".join(lines)


def orders_frame(ledger: OrderLedger) -> pd.DataFrame:
    """Flatten a ledger into one DataFrame sorted by timestamp.

    Open values count as cash out, so ``cash_flow`` is negative for
    opens and positive for closes.
    """
    rows: List[dict] = []
    for kind, orders, sign in (
        ('open', [p.order for p in ledger.opens], -1),
        ('close_active', ledger.active, 1),
        ('close_passive', ledger.passive, 1),
    ):
        for o in orders:
            rows.append({
                'kind': kind,
                'timestamp': o.timestamp,
                'time': format_timestamp(o.timestamp),
                'encoded_time': time_unparser(o.timestamp),
                'price': o.price,
                'volume': o.volume,
                'value': o.value,
                'cash_flow': sign * o.value,
            })
    columns = ['kind', 'timestamp', 'time', 'encoded_time', 'price', 'volume', 'value', 'cash_flow']
    df = pd.DataFrame(rows, columns=columns)
    return df.sort_values('timestamp', kind='mergesort').reset_index(drop=True)


def generate_backtest_report(
    result: StrategyResult,
    ledger: OrderLedger,
    out_dir: str = "results",
    plot: bool = True,
) -> None:
    """Generate report files for a run.

    Creates the output directory if it does not exist and writes the
    following files:

    - `orders.csv` – every open and close fill
    - `summary.json` – aggregate result
    - `cash_flow.png` – cumulative cash flow over the day (if `plot`)
    """
    os.makedirs(out_dir, exist_ok=True)

    df_orders = orders_frame(ledger)
    df_orders.to_csv(os.path.join(out_dir, 'orders.csv'), index=False)

    summary_path = os.path.join(out_dir, 'summary.json')
    with open(summary_path, 'w', encoding='utf-8') as fh:
        json.dump(result.to_dict(), fh, indent=2, ensure_ascii=False)

    if not plot:
        return
    fig, ax = plt.subplots(figsize=(10, 4))
    if not df_orders.empty:
        hours = df_orders['timestamp'] / 3_600_000
        ax.step(hours, df_orders['cash_flow'].cumsum(), where='post', linewidth=1.5)
        ax.set_title('Cumulative Cash Flow')
        ax.set_xlabel('Hour of day')
        ax.set_ylabel('Value')
    fig.tight_layout()
    fig.savefig(os.path.join(out_dir, 'cash_flow.png'))
    plt.close(fig)
