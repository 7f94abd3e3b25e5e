import math
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Set, Union

import structlog

from app.config import settings
from app.utils.logging_config import logger
from backtest.exits import ExitResolver
from backtest.filters import EntryFilter
from backtest.metrics import calculate_metrics
from backtest.models import (
    BacktestConfig, BacktestRun, LifecycleRecord, OpenPosition, StrategyDefinition, Timestamp, Trade
)
from backtest.sizing import PositionSizer
from backtest.validator import StrategyValidationError, validate_strategy

SECONDS_PER_DAY = 24 * 60 * 60

# (start_unix, end_unix) -> records discovered in that window
LifecycleRecordSupplier = Callable[[int, int], Sequence[LifecycleRecord]]

class BacktestEngine:
    """
    Single-run trade simulator. Owns the capital and open-position book for
    one run, so build a new engine for every run (including parallel ones).
    """

    def __init__(self, initial_capital: float = 10000.0):
        self.capital = initial_capital
        self.initial_capital = initial_capital
        self.trades: List[Trade] = []
        self.open_positions: Dict[str, OpenPosition] = {}
        self._entered: Set[str] = set()

    def run(self, records: Sequence[LifecycleRecord], strategy: StrategyDefinition) -> List[Trade]:
        """
        Main Loop: one pass over records in discovery order.
        """
        ordered = sorted(records, key=lambda r: r.discovered_at)

        for record in ordered:
            # 1. Entry
            self._process_entry(record, strategy)

            # 2. Exit (same record carries the outcome)
            position = self.open_positions.get(record.mint)
            if position is None:
                continue

            fills = ExitResolver.resolve(position, record, strategy.exit)
            for trade in fills:
                self.trades.append(trade)
                self.capital += trade.position_size + trade.profit_loss

            if position.remaining_percent <= 0:
                del self.open_positions[record.mint]

        return self.trades

    def _process_entry(self, record: LifecycleRecord, strategy: StrategyDefinition):
        # No re-entry within the same run
        if record.mint in self._entered:
            logger.debug("Entry skipped: token already traded", mint=record.mint)
            return

        passed, reason = EntryFilter.inspect(record, strategy.entry)
        if not passed:
            logger.debug("Entry filter rejected", symbol=record.symbol, reason=reason)
            return

        if not record.has_valid_prices:
            logger.warning(
                "Entry skipped: invalid prices",
                mint=record.mint,
                initial=record.initial_price,
                peak=record.peak_price,
                final=record.final_price,
            )
            return

        notional = PositionSizer.size(strategy.sizing, self.capital, len(self.open_positions))
        if notional <= 0 or notional > self.capital:
            logger.debug("Entry rejected by sizer", symbol=record.symbol, size=notional, capital=self.capital)
            return

        self.open_positions[record.mint] = OpenPosition(
            token_mint=record.mint,
            token_symbol=record.symbol,
            token_name=record.name,
            entry_price=record.initial_price,
            entry_time=record.discovered_at,
            notional=notional,
            entry_risk_score=record.initial_risk_score,
            entry_liquidity=record.initial_liquidity,
            entry_holders=record.initial_holders,
        )
        self._entered.add(record.mint)
        self.capital -= notional

    @property
    def committed_capital(self) -> float:
        """Notional still tied up in open positions (remaining slice only)."""
        return sum(p.notional * p.remaining_percent / 100 for p in self.open_positions.values())

def simulate(records: Sequence[LifecycleRecord], strategy: StrategyDefinition, initial_capital: float) -> List[Trade]:
    """Runs a fresh engine over the records and returns the trade ledger."""
    return BacktestEngine(initial_capital=initial_capital).run(records, strategy)

def _to_unix(value: Union[datetime, Timestamp]) -> int:
    if isinstance(value, datetime):
        return int(math.floor(value.timestamp()))
    return int(math.floor(value))

def resolve_window(config: BacktestConfig, now: Optional[float] = None):
    """Returns (start_unix, end_unix) for a config."""
    if config.end_date is not None:
        end_date = _to_unix(config.end_date)
    else:
        end_date = _to_unix(now if now is not None else time.time())

    if config.start_date is not None:
        start_date = _to_unix(config.start_date)
    else:
        days = config.days or settings.BACKTEST_DEFAULT_DAYS
        start_date = end_date - days * SECONDS_PER_DAY

    return start_date, end_date

def run_backtest(config: BacktestConfig, get_lifecycle_records: LifecycleRecordSupplier,
                 validate: bool = True) -> BacktestRun:
    """
    Full run: resolve window -> load records -> simulate -> aggregate.

    Raises StrategyValidationError when validate=True and the strategy has
    structural problems. Everything else (empty windows, missing optional
    record fields) resolves to a well-formed report.
    """
    strategy = config.strategy
    initial_capital = config.initial_capital
    if initial_capital is None:
        initial_capital = settings.BACKTEST_INITIAL_CAPITAL

    # Every event logged during the run (engine, supplier) carries the strategy
    with structlog.contextvars.bound_contextvars(strategy=strategy.name, strategy_id=strategy.id):
        if validate:
            violations = validate_strategy(strategy)
            if violations:
                logger.warning("Strategy failed validation", violations=violations)
                raise StrategyValidationError(violations)

        start_date, end_date = resolve_window(config)
        logger.info(
            "Running backtest",
            start=datetime.fromtimestamp(start_date, tz=timezone.utc).isoformat(),
            end=datetime.fromtimestamp(end_date, tz=timezone.utc).isoformat(),
            initial_capital=initial_capital,
        )

        started = time.perf_counter()
        records = [
            r for r in get_lifecycle_records(start_date, end_date)
            if start_date <= r.discovered_at <= end_date
        ]
        logger.info("Loaded lifecycle records", count=len(records))

        trades = simulate(records, strategy, initial_capital)
        report = calculate_metrics(
            trades,
            initial_capital,
            strategy.id if strategy.id is not None else 0,
            strategy.name,
            start_date,
            end_date,
        )

        logger.info(
            "Backtest complete",
            trades=report.total_trades,
            final_capital=round(report.final_capital, 2),
            elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
        )
    return BacktestRun(trades=trades, report=report)
