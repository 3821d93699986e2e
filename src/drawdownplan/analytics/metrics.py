"""Summary metrics over a multi-period run."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from drawdownplan.core.engine import SimulationResult


@dataclass(frozen=True)
class DrawdownMetrics:
    """Computed metrics from a multi-period run."""

    n_periods: int
    min_flex_rate: float
    mean_flex_rate: float
    final_flex_rate: float
    alarm_periods: int
    longest_alarm_streak: int
    max_real_drawdown: float
    total_withdrawals: float
    total_tax: float
    withdrawal_p10: float
    withdrawal_p50: float
    withdrawal_p90: float


def longest_streak(flags: np.ndarray) -> int:
    """Length of the longest run of consecutive True values."""
    padded = np.concatenate(([0], np.asarray(flags, dtype=int), [0]))
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1)
    if starts.size == 0:
        return 0
    return int((ends - starts).max())


def summarize(result: SimulationResult) -> DrawdownMetrics:
    """Compute summary metrics for a simulated history.

    Args:
        result: Output of ``simulate_periods``.

    Returns:
        DrawdownMetrics with flex-rate, alarm, tax and withdrawal statistics.
    """
    withdrawals = result.annual_withdrawals
    pcts = np.percentile(withdrawals, [10, 50, 90])
    return DrawdownMetrics(
        n_periods=int(withdrawals.size),
        min_flex_rate=float(result.flex_rates.min()),
        mean_flex_rate=float(result.flex_rates.mean()),
        final_flex_rate=float(result.flex_rates[-1]),
        alarm_periods=int(result.alarm_flags.sum()),
        longest_alarm_streak=longest_streak(result.alarm_flags),
        max_real_drawdown=float(result.real_drawdowns.max()),
        total_withdrawals=float(withdrawals.sum()),
        total_tax=float(result.taxes_paid.sum()),
        withdrawal_p10=float(pcts[0]),
        withdrawal_p50=float(pcts[1]),
        withdrawal_p90=float(pcts[2]),
    )
