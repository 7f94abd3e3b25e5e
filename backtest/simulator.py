from datetime import timedelta
from typing import List, Optional

import numpy as np
import pandas as pd

from app.utils.logging_config import logger
from backtest.models import LifecycleRecord

# Outcome classification thresholds
RUG_LIQUIDITY_DROP = 0.2 # Liquidity below 20% of initial
RUG_PRICE_DROP = 0.1 # Price below 10% of initial
PUMP_THRESHOLD = 2.0 # Peak >= 2x initial
STABLE_RANGE = 0.3 # Final within +/-30% of initial

def classify_outcome(initial_price: float, final_price: float, peak_price: float,
                     initial_liquidity: float, final_liquidity: float) -> str:
    peak_multiplier = peak_price / initial_price if initial_price > 0 else 1.0
    final_multiplier = final_price / initial_price if initial_price > 0 else 1.0
    liquidity_ratio = final_liquidity / initial_liquidity if initial_liquidity > 0 else 1.0

    if liquidity_ratio < RUG_LIQUIDITY_DROP or final_multiplier < RUG_PRICE_DROP:
        return "rug"
    # Pump even if it dumped after
    if peak_multiplier >= PUMP_THRESHOLD:
        return "pump"
    if 1 - STABLE_RANGE <= final_multiplier <= 1 + STABLE_RANGE:
        return "stable"
    if final_multiplier < 1:
        return "slow_decline"
    return "unknown"

class MarketSimulator:
    """
    Generates mock token launches, simulates a 24h minute-level price path for
    each one and compresses it into a LifecycleRecord. Doubles as an in-memory
    lifecycle record supplier for run_backtest().
    """

    def __init__(self, start_date, days=100, seed: Optional[int] = None):
        self.start_date = pd.to_datetime(start_date, utc=True)
        self.end_date = self.start_date + timedelta(days=days)
        self.rng = np.random.default_rng(seed)
        self.records: List[LifecycleRecord] = []

    def generate_data(self, num_tokens=50) -> List[LifecycleRecord]:
        logger.info("Generating mock lifecycle records", count=num_tokens)

        # 1. Discovery times scattered over the window
        timestamps = pd.date_range(self.start_date, self.end_date, periods=num_tokens * 2)
        picks = np.sort(self.rng.choice(len(timestamps), size=num_tokens, replace=False))

        for i, idx in enumerate(picks):
            discovered_at = int(timestamps[idx].timestamp())
            initial_price = float(self.rng.uniform(0.0001, 0.01))

            # 2. Price path -> lifecycle summary
            prices, rugged = self._generate_price_path(initial_price)
            self.records.append(self._summarize(i, discovered_at, initial_price, prices, rugged))

        return self.records

    def get_lifecycle_records(self, start_date: int, end_date: int) -> List[LifecycleRecord]:
        return [r for r in self.records if start_date <= r.discovered_at <= end_date]

    def _generate_price_path(self, start_price):
        # 1440 minutes (24h)
        minutes = 1440
        profile = self.rng.choice(["moon", "dump", "chop", "volatile_up"])

        returns = self.rng.normal(0, 0.02, minutes) # Base noise

        if profile == "moon":
            drift = np.linspace(0, 0.002, minutes)
        elif profile == "dump":
            drift = np.linspace(0, -0.003, minutes)
        elif profile == "volatile_up":
            drift = self.rng.normal(0.0005, 0.01, minutes)
        else:
            drift = np.zeros(minutes)

        # Rug pull event
        rugged = bool(self.rng.random() < 0.1)
        if rugged:
            rug_idx = int(self.rng.integers(10, 200))
            returns[rug_idx] = -0.90

        growth = np.maximum(1 + returns + drift, 1e-6)
        prices = np.maximum(start_price * np.cumprod(growth), 0.00000001)
        return prices, rugged

    def _summarize(self, i: int, discovered_at: int, initial_price: float, prices: np.ndarray,
                   rugged: bool) -> LifecycleRecord:
        peak_idx = int(np.argmax(prices))
        peak_price = max(float(prices[peak_idx]), initial_price)
        final_price = float(prices[-1])

        initial_liquidity = float(self.rng.uniform(1000, 50000))
        # Liquidity follows price, and mostly leaves on a rug
        final_liquidity = initial_liquidity * min(final_price / initial_price, 3.0)
        if rugged:
            final_liquidity *= 0.1

        time_to_peak = (peak_idx + 1) * 60 if peak_price > initial_price else 0

        return LifecycleRecord(
            mint=f"MockMint{i}",
            symbol=f"MEME{i}",
            discovered_at=discovered_at,
            initial_price=initial_price,
            initial_liquidity=initial_liquidity,
            initial_risk_score=float(self.rng.integers(0, 101)),
            initial_holders=int(self.rng.integers(5, 500)),
            initial_top10_percent=float(self.rng.uniform(10, 90)),
            token_age_seconds=float(self.rng.integers(30, 3600)),
            peak_price=peak_price,
            peak_multiplier=peak_price / initial_price,
            time_to_peak=time_to_peak,
            peak_at=discovered_at + time_to_peak,
            final_price=final_price,
            final_liquidity=final_liquidity,
            outcome=classify_outcome(initial_price, final_price, peak_price, initial_liquidity, final_liquidity),
            outcome_recorded_at=discovered_at + len(prices) * 60,
            mint_revoked=bool(self.rng.random() < 0.7),
            freeze_revoked=bool(self.rng.random() < 0.7),
            lp_burned=bool(self.rng.random() < 0.5),
            lp_burned_percent=float(self.rng.uniform(0, 100)),
            has_twitter=bool(self.rng.random() < 0.6),
            has_telegram=bool(self.rng.random() < 0.5),
            has_website=bool(self.rng.random() < 0.4),
            smart_buys=int(self.rng.poisson(1.5)),
        )
