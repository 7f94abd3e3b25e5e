from typing import List

from backtest.models import StrategyDefinition, SizingMethod

class StrategyValidationError(ValueError):
    """Raised when a strategy is run with validation on and has violations."""

    def __init__(self, violations: List[str]):
        self.violations = list(violations)
        super().__init__("; ".join(self.violations))

def validate_strategy(strategy: StrategyDefinition) -> List[str]:
    """
    Static structural check. Returns a list of violations (empty = valid).
    Never repairs anything.
    """
    errors: List[str] = []

    if not strategy.name or not strategy.name.strip():
        errors.append("Strategy name is required")

    levels = strategy.exit.take_profit_levels or []
    if not levels:
        errors.append("At least one take profit level is required")

    stop = strategy.exit.stop_loss_percent
    if stop is None or stop >= 0:
        errors.append("Stop loss must be a negative percentage")

    for tp in levels:
        if tp.percent_gain <= 0:
            errors.append(f"Take profit percentages must be positive (got {tp.percent_gain})")
        if tp.sell_percent <= 0 or tp.sell_percent > 100:
            errors.append(f"Sell percentages must be between 0 (exclusive) and 100 (got {tp.sell_percent})")

    method = strategy.sizing.method
    try:
        SizingMethod(method)
    except ValueError:
        errors.append(f"Unknown position sizing method: {method}")

    return errors
