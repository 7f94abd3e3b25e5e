import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pandas as pd
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from app.config import settings
from app.utils.logging_config import configure_logging, logger
from backtest.engine import run_backtest
from backtest.models import (
    BacktestConfig, EntryConditions, ExitConditions, PositionSizing, SizingMethod,
    StrategyDefinition, TakeProfitLevel
)
from backtest.simulator import MarketSimulator
from backtest.validator import StrategyValidationError

STRATEGY = StrategyDefinition(
    name="conservative_trader",
    description="Safe plays, burned LP. TP at 50%/100%, SL -20%.",
    entry=EntryConditions(
        min_risk_score=40,
        min_liquidity=5000,
        min_holders=50,
        max_top10_percent=60,
        require_mint_revoked=True,
    ),
    exit=ExitConditions(
        take_profit_levels=[
            TakeProfitLevel(percent_gain=50, sell_percent=50),
            TakeProfitLevel(percent_gain=100, sell_percent=100),
        ],
        stop_loss_percent=-20,
        trailing_stop_percent=15,
        trailing_stop_activation=30,
        exit_on_rug_signal=True,
    ),
    sizing=PositionSizing(
        method=SizingMethod.PERCENT_OF_CAPITAL,
        percent_of_capital=5,
        max_position_size=1000,
        max_concurrent_positions=10,
    ),
)

def format_duration(seconds: float) -> str:
    if seconds < 60: return f"{round(seconds)}s"
    if seconds < 3600: return f"{round(seconds / 60)}m"
    if seconds < 86400: return f"{seconds / 3600:.1f}h"
    return f"{seconds / 86400:.1f}d"

def main():
    configure_logging()
    print("--- 🚀 Lifecycle Strategy Backtest ---")

    # 1. Generate Data
    sim = MarketSimulator(start_date="2024-01-01", days=100, seed=settings.BACKTEST_SIMULATION_SEED)
    records = sim.generate_data(num_tokens=300)

    # 2. Run Engine
    config = BacktestConfig(
        strategy=STRATEGY,
        start_date=sim.start_date.to_pydatetime(),
        end_date=sim.end_date.to_pydatetime(),
    )
    try:
        run = run_backtest(config, sim.get_lifecycle_records)
    except StrategyValidationError as e:
        logger.error("Strategy invalid", violations=e.violations)
        return

    report = run.report

    # 3. Analysis & Output
    print("\n" + "="*40)
    print("📊 BACKTEST RESULTS")
    print("="*40)
    print(f"Strategy:         {report.strategy_name}")
    print(f"Period:           {report.days_analyzed} days")
    print(f"Tokens Tested:    {len(records)}")
    print(f"Fills:            {report.total_trades}")
    print(f"Win Rate:         {report.win_rate:.1f}% ({report.winning_trades}W / {report.losing_trades}L)")
    print("-" * 20)
    print(f"Initial Capital:  ${report.initial_capital:.2f}")
    print(f"Final Capital:    ${report.final_capital:.2f}")
    print(f"Net PnL:          {'+' if report.total_profit_loss >= 0 else ''}${report.total_profit_loss:.2f}")
    print(f"Net ROI:          {report.total_return:.2f}%")
    print(f"Avg Win / Loss:   ${report.average_win:.2f} / ${report.average_loss:.2f}")
    print("-" * 20)
    print(f"Max Drawdown:     {report.max_drawdown:.2f}% ({format_duration(report.max_drawdown_duration)})")
    print(f"Sharpe Ratio:     {report.sharpe_ratio:.2f}")
    print(f"Sortino Ratio:    {report.sortino_ratio:.2f}")
    print(f"Profit Factor:    {report.profit_factor:.2f}")
    print(f"Avg Hold Time:    {format_duration(report.average_hold_time)}")
    print(f"Streaks:          {report.longest_winning_streak}W / {report.longest_losing_streak}L")
    print("="*40)

    print("\n🔍 Trade Logic Verification (First 5 Fills):")
    for t in run.trades[:5]:
        print(f"Token: {t.token_symbol} | Entry: ${t.entry_price:.6f} | Exit: {t.exit_reason.value} "
              f"({t.sell_percent:.0f}%) | PnL: ${t.profit_loss:.2f}")

    # Plot
    if report.equity_curve:
        equity_series = pd.DataFrame([p.__dict__ for p in report.equity_curve])
        equity_series["time"] = pd.to_datetime(equity_series["timestamp"], unit="s")
        equity_series.set_index("time", inplace=True)

        plt.figure(figsize=(10, 6))
        plt.plot(equity_series.index, equity_series["equity"], label="Equity")
        plt.title(f"Backtest Equity Curve: {report.strategy_name}")
        plt.xlabel("Date")
        plt.ylabel("Capital ($)")
        plt.legend()
        plt.grid(True)
        plt.savefig("backtest_equity.png")
        print("\n📈 Equity curve saved to 'backtest_equity.png'")

if __name__ == "__main__":
    main()
