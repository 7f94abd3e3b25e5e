from typing import List

from backtest.models import (
    ExitConditions, ExitReason, LifecycleRecord, OpenPosition, Timestamp, Trade
)

# Fallback offsets (seconds) when the record lacks a timestamp
DEFAULT_EXIT_DELAY = 3600
DEFAULT_FINAL_DELAY = 86400

# Float residue left after partial fills is treated as fully closed
PERCENT_EPSILON = 1e-9

class ExitResolver:
    """
    Turns one open position plus its lifecycle record into closing fills.

    A record only knows entry, peak and final prices, so exits are resolved in
    a fixed order rather than by replaying a path:

    1. Rug exit (if enabled and the outcome is 'rug') closes everything at the
       final price and nothing else is evaluated.
    2. Take profit rungs, lowest gain first. Every rung at or below the peak
       multiplier fires at its own price.
    3. Whatever is left closes once: stop loss, then trailing stop, then time
       exit, then market exit at the final price.

    Fill percents always add up to the position's remaining_percent.
    """

    @staticmethod
    def resolve(position: OpenPosition, record: LifecycleRecord, exit_conditions: ExitConditions) -> List[Trade]:
        trades: List[Trade] = []
        remaining = position.remaining_percent
        if remaining <= PERCENT_EPSILON:
            return trades

        peak_multiplier = record.effective_peak_multiplier
        final_multiplier = record.final_multiplier
        default_exit_time = ExitResolver._outcome_time(record, DEFAULT_EXIT_DELAY)

        # 1. Rug Exit
        if exit_conditions.exit_on_rug_signal and record.outcome == "rug":
            trades.append(ExitResolver._fill(
                position, record, record.final_price, default_exit_time, ExitReason.RUG_EXIT, remaining
            ))
            position.remaining_percent = 0.0
            return trades

        # 2. Take Profit Ladder
        levels = sorted(exit_conditions.take_profit_levels or [], key=lambda tp: tp.percent_gain)
        for tp in levels:
            if remaining <= PERCENT_EPSILON:
                break
            if peak_multiplier < tp.multiplier or tp.sell_percent <= 0:
                continue

            sell_percent = min(tp.sell_percent, remaining)
            trades.append(ExitResolver._fill(
                position,
                record,
                position.entry_price * tp.multiplier,
                ExitResolver._peak_time(record),
                ExitReason.WIN,
                sell_percent,
            ))
            remaining -= sell_percent
            if remaining <= PERCENT_EPSILON:
                remaining = 0.0

        # 3. Remainder
        if remaining > 0:
            stop_multiplier = 1 + exit_conditions.stop_loss_percent / 100

            trailing_stop_price = None
            if exit_conditions.trailing_stop_percent is not None:
                activation = 1 + (exit_conditions.trailing_stop_activation or 0) / 100
                if peak_multiplier >= activation:
                    trailing_stop_price = record.peak_price * (1 - exit_conditions.trailing_stop_percent / 100)

            if final_multiplier <= stop_multiplier:
                exit_price = position.entry_price * stop_multiplier
                reason = ExitReason.STOPPED_OUT
                exit_time = default_exit_time
            elif trailing_stop_price is not None and record.final_price <= trailing_stop_price:
                exit_price = trailing_stop_price
                reason = ExitReason.WIN if final_multiplier > 1 else ExitReason.LOSS
                exit_time = default_exit_time
            elif exit_conditions.max_hold_time_hours is not None:
                exit_price = record.final_price
                reason = ExitReason.TIME_EXIT
                exit_time = position.entry_time + exit_conditions.max_hold_time_hours * 3600
            else:
                exit_price = record.final_price
                change = exit_price / position.entry_price - 1
                if change > 0:
                    reason = ExitReason.WIN
                elif change < 0:
                    reason = ExitReason.LOSS
                else:
                    reason = ExitReason.BREAKEVEN
                exit_time = ExitResolver._outcome_time(record, DEFAULT_FINAL_DELAY)

            trades.append(ExitResolver._fill(position, record, exit_price, exit_time, reason, remaining))

        position.remaining_percent = 0.0
        return trades

    @staticmethod
    def _peak_time(record: LifecycleRecord) -> Timestamp:
        if record.peak_at is not None:
            return record.peak_at
        offset = record.time_to_peak if record.time_to_peak is not None else DEFAULT_EXIT_DELAY
        return record.discovered_at + offset

    @staticmethod
    def _outcome_time(record: LifecycleRecord, fallback_delay: int) -> Timestamp:
        if record.outcome_recorded_at is not None:
            return record.outcome_recorded_at
        return record.discovered_at + fallback_delay

    @staticmethod
    def _fill(position: OpenPosition, record: LifecycleRecord, exit_price: float, exit_time: Timestamp,
              reason: ExitReason, sell_percent: float) -> Trade:
        # Cost basis of the closed slice
        position_value = position.notional * (sell_percent / 100)
        price_ratio = exit_price / position.entry_price
        profit_loss = position_value * price_ratio - position_value

        return Trade(
            token_mint=position.token_mint,
            token_symbol=position.token_symbol,
            token_name=position.token_name,
            entry_price=position.entry_price,
            entry_time=position.entry_time,
            position_size=position_value,
            sell_percent=sell_percent,
            exit_price=exit_price,
            exit_time=exit_time,
            exit_reason=reason,
            profit_loss=profit_loss,
            profit_loss_percent=(price_ratio - 1) * 100,
            hold_time_seconds=exit_time - position.entry_time,
            peak_price=record.peak_price,
            peak_multiplier=record.effective_peak_multiplier,
            entry_risk_score=position.entry_risk_score,
            entry_liquidity=position.entry_liquidity,
            entry_holders=position.entry_holders,
        )
