import math
from typing import List, Sequence, Tuple

import numpy as np
import pandas as pd

from backtest.models import EquityPoint, PerformanceReport, Timestamp, Trade

SECONDS_PER_DAY = 24 * 60 * 60

def calculate_metrics(
    trades: Sequence[Trade],
    initial_capital: float,
    strategy_id: int,
    strategy_name: str,
    start_date: Timestamp,
    end_date: Timestamp,
) -> PerformanceReport:
    """
    Aggregates a trade ledger into a PerformanceReport.

    Pure function of its inputs. Every ratio falls back to 0 instead of
    NaN/inf so the report can be stored and averaged safely.
    """
    days_analyzed = max(0, int(math.ceil((end_date - start_date) / SECONDS_PER_DAY)))

    if not trades:
        return PerformanceReport(
            strategy_id=strategy_id,
            strategy_name=strategy_name,
            start_date=start_date,
            end_date=end_date,
            days_analyzed=days_analyzed,
            initial_capital=initial_capital,
            final_capital=initial_capital,
        )

    # Stable sort keeps ledger order for simultaneous exits
    ordered = sorted(trades, key=lambda t: t.exit_time)
    pnl = [t.profit_loss for t in ordered]

    wins = [p for p in pnl if p > 0]
    losses = [p for p in pnl if p < 0]

    total_trades = len(ordered)
    total_profit_loss = float(sum(pnl))
    gross_profit = float(sum(wins))
    gross_loss = abs(float(sum(losses)))

    equity_curve, max_drawdown, max_drawdown_duration = build_equity_curve(ordered, initial_capital)
    longest_win, longest_loss = calculate_streaks(pnl)

    returns = [t.profit_loss_percent / 100 for t in ordered]

    return PerformanceReport(
        strategy_id=strategy_id,
        strategy_name=strategy_name,
        start_date=start_date,
        end_date=end_date,
        days_analyzed=days_analyzed,
        initial_capital=initial_capital,
        final_capital=initial_capital + total_profit_loss,
        total_trades=total_trades,
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=len(wins) / total_trades * 100,
        total_profit_loss=total_profit_loss,
        total_return=_safe_div(total_profit_loss, initial_capital) * 100,
        average_win=_safe_div(gross_profit, len(wins)),
        average_loss=_safe_div(-gross_loss, len(losses)),
        largest_win=max(wins) if wins else 0.0,
        largest_loss=min(losses) if losses else 0.0,
        max_drawdown=max_drawdown,
        max_drawdown_duration=max_drawdown_duration,
        sharpe_ratio=calculate_sharpe_ratio(returns),
        sortino_ratio=calculate_sortino_ratio(returns),
        profit_factor=_safe_div(gross_profit, gross_loss),
        average_hold_time=float(np.mean([t.hold_time_seconds for t in ordered])),
        longest_winning_streak=longest_win,
        longest_losing_streak=longest_loss,
        equity_curve=equity_curve,
    )

def build_equity_curve(trades: Sequence[Trade], initial_capital: float) -> Tuple[List[EquityPoint], float, float]:
    """
    Replays trades (already in exit-time order) into an equity curve.
    Returns (curve, max_drawdown_pct, max_drawdown_duration_seconds).
    """
    if not trades:
        return [], 0.0, 0.0

    times = [t.exit_time for t in trades]
    equity = initial_capital + pd.Series([t.profit_loss for t in trades], dtype="float64").cumsum()
    peak = equity.cummax().clip(lower=initial_capital)
    drawdown = ((peak - equity) / peak * 100).where(peak > 0, 0.0)

    curve = [
        EquityPoint(timestamp=ts, equity=float(eq), drawdown=float(dd))
        for ts, eq, dd in zip(times, equity, drawdown)
    ]

    # Duration of the deepest drawdown: from the peak before it until equity
    # gets back to that peak (or the last exit if it never does).
    running_peak = initial_capital
    # Starting capital counts as a peak stamped at the first entry
    running_peak_time = min(t.entry_time for t in trades)
    max_drawdown = 0.0
    deepest_peak = None
    deepest_peak_time = None
    recovered_at = None

    for ts, eq, dd in zip(times, equity, drawdown):
        if deepest_peak is not None and recovered_at is None and eq >= deepest_peak:
            recovered_at = ts
        if eq >= running_peak:
            running_peak = float(eq)
            running_peak_time = ts
        if dd > max_drawdown:
            max_drawdown = float(dd)
            deepest_peak = running_peak
            deepest_peak_time = running_peak_time
            recovered_at = None

    if deepest_peak_time is None:
        return curve, 0.0, 0.0

    end_time = recovered_at if recovered_at is not None else times[-1]
    return curve, max_drawdown, float(end_time - deepest_peak_time)

def calculate_streaks(pnl: Sequence[float]) -> Tuple[int, int]:
    """Longest winning / losing runs. Breakeven trades neither extend nor break a run."""
    longest_win = longest_loss = 0
    current_win = current_loss = 0

    for p in pnl:
        if p > 0:
            current_win += 1
            current_loss = 0
            longest_win = max(longest_win, current_win)
        elif p < 0:
            current_loss += 1
            current_win = 0
            longest_loss = max(longest_loss, current_loss)

    return longest_win, longest_loss

def calculate_sharpe_ratio(returns: Sequence[float]) -> float:
    """mean(returns) / population stdev(returns), per trade, not annualized."""
    if not returns:
        return 0.0
    arr = np.asarray(returns, dtype="float64")
    return _safe_div(float(arr.mean()), float(arr.std()))

def calculate_sortino_ratio(returns: Sequence[float]) -> float:
    """mean(returns) / population stdev of the negative returns."""
    if not returns:
        return 0.0
    arr = np.asarray(returns, dtype="float64")
    downside = arr[arr < 0]
    if downside.size == 0:
        return 0.0
    return _safe_div(float(arr.mean()), float(downside.std()))

def _safe_div(numerator: float, denominator: float) -> float:
    if not denominator or not math.isfinite(denominator):
        return 0.0
    result = numerator / denominator
    return result if math.isfinite(result) else 0.0
