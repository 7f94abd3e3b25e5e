import math
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import List, Dict, Optional, Any, Union

Timestamp = Union[int, float]

class SizingMethod(str, Enum):
    FIXED = "fixed"
    PERCENT_OF_CAPITAL = "percent_of_capital"
    RISK_BASED = "risk_based"

class ExitReason(str, Enum):
    WIN = "win"
    LOSS = "loss"
    BREAKEVEN = "breakeven"
    STOPPED_OUT = "stopped_out"
    TIME_EXIT = "time_exit"
    RUG_EXIT = "rug_exit"

# --- Strategy Definition ---

@dataclass(frozen=True)
class TakeProfitLevel:
    percent_gain: float # 100 = +100% (2x)
    sell_percent: float # Percent of the ORIGINAL position, capped at what is left

    @property
    def multiplier(self) -> float:
        return 1 + self.percent_gain / 100

@dataclass(frozen=True)
class EntryConditions:
    # Risk score
    min_risk_score: Optional[float] = None
    max_risk_score: Optional[float] = None

    # Liquidity (USD)
    min_liquidity: Optional[float] = None
    max_liquidity: Optional[float] = None

    # Holders
    min_holders: Optional[int] = None
    max_holders: Optional[int] = None
    max_top10_percent: Optional[float] = None
    max_single_holder_percent: Optional[float] = None

    # Contract safety
    require_mint_revoked: bool = False
    require_freeze_revoked: bool = False
    require_lp_burned: bool = False
    lp_burned_min_percent: Optional[float] = None

    # Token age at discovery (seconds)
    min_token_age: Optional[float] = None
    max_token_age: Optional[float] = None

    # Socials
    require_socials: bool = False
    require_twitter: bool = False
    require_telegram: bool = False

    # Smart money
    min_smart_buys: Optional[int] = None

@dataclass(frozen=True)
class ExitConditions:
    take_profit_levels: List[TakeProfitLevel] = field(default_factory=list)
    stop_loss_percent: float = -20.0 # Negative, e.g. -20 = exit at -20%

    # Trailing stop
    trailing_stop_percent: Optional[float] = None # Trail X% below peak
    trailing_stop_activation: Optional[float] = None # Only after X% gain

    max_hold_time_hours: Optional[float] = None
    exit_on_rug_signal: bool = False

@dataclass(frozen=True)
class PositionSizing:
    method: Union[SizingMethod, str] = SizingMethod.PERCENT_OF_CAPITAL

    fixed_amount: Optional[float] = None # 'fixed'
    percent_of_capital: Optional[float] = None # 'percent_of_capital'
    risk_percent: Optional[float] = None # 'risk_based'

    # Global caps
    max_position_size: Optional[float] = None
    max_concurrent_positions: Optional[int] = None

# camelCase keys used by stored/serialized strategies
_ALIASES = {
    "minRiskScore": "min_risk_score",
    "maxRiskScore": "max_risk_score",
    "minLiquidity": "min_liquidity",
    "maxLiquidity": "max_liquidity",
    "minHolders": "min_holders",
    "maxHolders": "max_holders",
    "maxTop10Percent": "max_top10_percent",
    "maxSingleHolderPercent": "max_single_holder_percent",
    "requireMintRevoked": "require_mint_revoked",
    "requireFreezeRevoked": "require_freeze_revoked",
    "requireLPBurned": "require_lp_burned",
    "lpBurnedMinPercent": "lp_burned_min_percent",
    "minTokenAge": "min_token_age",
    "maxTokenAge": "max_token_age",
    "requireSocials": "require_socials",
    "requireTwitter": "require_twitter",
    "requireTelegram": "require_telegram",
    "minSmartBuys": "min_smart_buys",
    "takeProfitLevels": "take_profit_levels",
    "stopLossPercent": "stop_loss_percent",
    "trailingStopPercent": "trailing_stop_percent",
    "trailingStopActivation": "trailing_stop_activation",
    "trailingStopActivationPercent": "trailing_stop_activation",
    "maxHoldTimeHours": "max_hold_time_hours",
    "exitOnRugSignal": "exit_on_rug_signal",
    "fixedAmount": "fixed_amount",
    "percentOfCapital": "percent_of_capital",
    "riskPercent": "risk_percent",
    "maxPositionSize": "max_position_size",
    "maxConcurrentPositions": "max_concurrent_positions",
    "percent": "percent_gain",
    "percentGain": "percent_gain",
    "sellPercent": "sell_percent",
    "sellPercentOfRemaining": "sell_percent",
}

def _normalize(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return {_ALIASES.get(k, k): v for k, v in (data or {}).items()}

@dataclass(frozen=True)
class StrategyDefinition:
    name: str
    description: str = ""
    entry: EntryConditions = field(default_factory=EntryConditions)
    exit: ExitConditions = field(default_factory=ExitConditions)
    sizing: PositionSizing = field(default_factory=PositionSizing)
    id: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StrategyDefinition":
        """
        Builds a strategy from a plain mapping (e.g. a JSON row).
        Accepts both camelCase and snake_case keys. No validation here,
        run validate_strategy() on the result.
        """
        exit_data = _normalize(data.get("exit"))
        exit_data["take_profit_levels"] = [
            TakeProfitLevel(**_normalize(tp)) for tp in exit_data.get("take_profit_levels", [])
        ]
        sizing_data = _normalize(data.get("sizing"))
        method = sizing_data.get("method", SizingMethod.PERCENT_OF_CAPITAL)
        try:
            sizing_data["method"] = SizingMethod(method)
        except ValueError:
            # Left as-is so the validator can report it
            sizing_data["method"] = method

        return cls(
            name=data.get("name", ""),
            description=data.get("description", ""),
            entry=EntryConditions(**_normalize(data.get("entry"))),
            exit=ExitConditions(**exit_data),
            sizing=PositionSizing(**sizing_data),
            id=data.get("id"),
        )

# --- Lifecycle Data ---

@dataclass(frozen=True)
class LifecycleRecord:
    """
    Compressed summary of one token's life within a window:
    state at discovery, at peak and at the end.
    """
    mint: str
    symbol: str
    discovered_at: Timestamp

    # Initial state at discovery
    initial_price: float
    initial_liquidity: float = 0.0
    initial_risk_score: float = 0.0
    initial_holders: int = 0
    initial_top10_percent: Optional[float] = None
    initial_max_holder_percent: Optional[float] = None
    token_age_seconds: Optional[float] = None

    # Peak
    peak_price: float = 0.0
    peak_liquidity: Optional[float] = None
    peak_multiplier: Optional[float] = None
    time_to_peak: Optional[float] = None # Seconds after discovery
    peak_at: Optional[Timestamp] = None

    # Final
    final_price: float = 0.0
    final_liquidity: Optional[float] = None
    outcome: str = "unknown" # rug, pump, stable, slow_decline, unknown
    outcome_recorded_at: Optional[Timestamp] = None

    name: Optional[str] = None

    # Safety / social / smart money flags
    mint_revoked: Optional[bool] = None
    freeze_revoked: Optional[bool] = None
    lp_burned: Optional[bool] = None
    lp_burned_percent: Optional[float] = None
    has_twitter: Optional[bool] = None
    has_telegram: Optional[bool] = None
    has_website: Optional[bool] = None
    smart_buys: Optional[int] = None

    @property
    def has_valid_prices(self) -> bool:
        prices = (self.initial_price, self.peak_price, self.final_price)
        return all(p is not None and math.isfinite(p) for p in prices) and self.initial_price > 0

    @property
    def effective_peak_multiplier(self) -> float:
        if self.peak_multiplier is not None:
            return self.peak_multiplier if math.isfinite(self.peak_multiplier) else 0.0
        if not self.has_valid_prices:
            return 0.0
        return self.peak_price / self.initial_price

    @property
    def final_multiplier(self) -> float:
        if not self.has_valid_prices:
            return 0.0
        return self.final_price / self.initial_price

# --- Engine State & Output ---

@dataclass
class OpenPosition:
    token_mint: str
    token_symbol: str
    entry_price: float
    entry_time: Timestamp
    notional: float # USD committed at entry
    remaining_percent: float = 100.0
    token_name: Optional[str] = None

    # Snapshot at entry
    entry_risk_score: Optional[float] = None
    entry_liquidity: Optional[float] = None
    entry_holders: Optional[int] = None

@dataclass(frozen=True)
class Trade:
    token_mint: str
    token_symbol: str
    entry_price: float
    entry_time: Timestamp
    position_size: float # USD closed by this fill
    sell_percent: float # Percent of the original position closed

    exit_price: float
    exit_time: Timestamp
    exit_reason: ExitReason

    profit_loss: float
    profit_loss_percent: float
    hold_time_seconds: float

    peak_price: float
    peak_multiplier: float

    token_name: Optional[str] = None
    entry_risk_score: Optional[float] = None
    entry_liquidity: Optional[float] = None
    entry_holders: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["exit_reason"] = self.exit_reason.value
        return data

@dataclass(frozen=True)
class EquityPoint:
    timestamp: Timestamp
    equity: float
    drawdown: float # % below running peak

@dataclass(frozen=True)
class PerformanceReport:
    strategy_id: int
    strategy_name: str

    start_date: Timestamp
    end_date: Timestamp
    days_analyzed: int

    initial_capital: float
    final_capital: float

    # Trade stats
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0

    # P&L
    total_profit_loss: float = 0.0
    total_return: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0

    # Risk
    max_drawdown: float = 0.0
    max_drawdown_duration: float = 0.0 # Seconds
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    profit_factor: float = 0.0

    # Timing
    average_hold_time: float = 0.0 # Seconds
    longest_winning_streak: int = 0
    longest_losing_streak: int = 0

    equity_curve: List[EquityPoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

@dataclass
class BacktestConfig:
    strategy: StrategyDefinition
    start_date: Optional[Union[datetime, Timestamp]] = None
    end_date: Optional[Union[datetime, Timestamp]] = None
    days: Optional[int] = None # Alternative to start_date: last N days
    initial_capital: Optional[float] = None

@dataclass
class BacktestRun:
    trades: List[Trade]
    report: PerformanceReport
