import pytest

from backtest.models import (
    EntryConditions, ExitConditions, LifecycleRecord, PositionSizing, SizingMethod,
    StrategyDefinition, TakeProfitLevel
)

BASE_TIME = 1700000000

@pytest.fixture
def make_record():
    """Factory for lifecycle records. Prices are given as multipliers of initial_price."""

    def _make(mint="TokenA", initial_price=1.0, peak=1.0, final=1.0, discovered_at=BASE_TIME, **overrides):
        data = dict(
            mint=mint,
            symbol=mint.upper()[:6],
            discovered_at=discovered_at,
            initial_price=initial_price,
            initial_liquidity=10000.0,
            initial_risk_score=60.0,
            initial_holders=100,
            peak_price=initial_price * peak,
            peak_multiplier=peak,
            final_price=initial_price * final,
            outcome="unknown",
        )
        data.update(overrides)
        return LifecycleRecord(**data)

    return _make

@pytest.fixture
def make_strategy():
    def _make(levels=((100, 100),), stop_loss=-20, entry=None, sizing=None, name="test_strategy", **exit_kwargs):
        return StrategyDefinition(
            name=name,
            description="",
            entry=entry or EntryConditions(),
            exit=ExitConditions(
                take_profit_levels=[TakeProfitLevel(percent_gain=g, sell_percent=s) for g, s in levels],
                stop_loss_percent=stop_loss,
                **exit_kwargs,
            ),
            sizing=sizing or PositionSizing(method=SizingMethod.FIXED, fixed_amount=1000),
        )

    return _make
