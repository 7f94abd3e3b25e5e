from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

class Settings(BaseSettings):
    # General
    LOG_LEVEL: str = "INFO"
    ENV: str = "development"

    # Backtest defaults
    BACKTEST_INITIAL_CAPITAL: float = 10000.0
    BACKTEST_DEFAULT_DAYS: int = 30

    # Synthetic data (None = fresh randomness each run)
    BACKTEST_SIMULATION_SEED: Optional[int] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
