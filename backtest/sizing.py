from backtest.models import PositionSizing, SizingMethod

DEFAULT_FIXED_AMOUNT = 100.0
DEFAULT_PERCENT_OF_CAPITAL = 5.0
DEFAULT_RISK_PERCENT = 2.0

class PositionSizer:

    @staticmethod
    def size(sizing: PositionSizing, current_capital: float, open_position_count: int) -> float:
        """
        Notional (USD) for a new position, clamped to [0, min(max_position_size, capital)].
        0 means "do not enter".
        """
        # Max concurrent positions
        if sizing.max_concurrent_positions is not None:
            if open_position_count >= sizing.max_concurrent_positions:
                return 0.0

        size = 0.0
        method = sizing.method
        if method == SizingMethod.FIXED:
            size = sizing.fixed_amount if sizing.fixed_amount is not None else DEFAULT_FIXED_AMOUNT
        elif method == SizingMethod.PERCENT_OF_CAPITAL:
            pct = sizing.percent_of_capital if sizing.percent_of_capital is not None else DEFAULT_PERCENT_OF_CAPITAL
            size = current_capital * (pct / 100)
        elif method == SizingMethod.RISK_BASED:
            # Stop distance is not consulted, this is a plain percent of capital
            pct = sizing.risk_percent if sizing.risk_percent is not None else DEFAULT_RISK_PERCENT
            size = current_capital * (pct / 100)

        if sizing.max_position_size is not None and size > sizing.max_position_size:
            size = sizing.max_position_size

        return max(0.0, min(size, current_capital))
