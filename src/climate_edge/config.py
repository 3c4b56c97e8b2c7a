"""Application configuration via pydantic-settings."""

from __future__ import annotations

from datetime import date
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Minimum |edge| (after costs) before a trade is recommended
    min_edge: float = 0.03

    # Trading costs in basis points of position size
    fee_bps: float = 100.0
    slippage_bps: float = 50.0

    # Bankroll used for Kelly sizing (USD)
    base_size: float = 100.0

    # User confidence (0-100), scales half-Kelly size
    confidence: float = 70.0

    # Max trades kept per event-date in the backtest
    max_trades_per_event: int = 3

    # Default backtest window
    backtest_start: date = date(2025, 8, 15)
    backtest_end: date = date(2026, 2, 15)

    # Climatology window used for bucket construction and base-rate pricing
    climate_start: date = date(2019, 1, 1)
    climate_end: date = date(2024, 12, 31)

    # Synthetic ensemble size for earthquake / climate-index builders
    synthetic_members: int = 1000

    # Earthquake history query
    earthquake_radius_km: float = 250.0
    earthquake_lookback_years: int = 20
    earthquake_window_days: int = 7
    earthquake_min_magnitude: float = 2.0

    # Ensemble models queried in parallel for weather metrics
    ensemble_models: list[str] = ["ecmwf_ifs025", "gfs025"]

    # SQLite database path for run records
    db_path: Path = Path.home() / ".climate-edge" / "runs.db"

    # Open-Meteo base URLs
    openmeteo_forecast_api_url: str = "https://api.open-meteo.com/v1"
    openmeteo_ensemble_api_url: str = "https://ensemble-api.open-meteo.com/v1"
    openmeteo_archive_api_url: str = "https://archive-api.open-meteo.com/v1"

    # USGS FDSN event service
    usgs_api_url: str = "https://earthquake.usgs.gov/fdsnws/event/1"

    # NASA GISTEMP global land-ocean index (fixed-width text)
    gistemp_api_url: str = "https://data.giss.nasa.gov/gistemp/tabledata_v4"

    # HTTP request timeout seconds
    http_timeout: float = 30.0

    # Delay between per-location history fetches (third-party rate limits)
    location_delay_seconds: float = 0.5

    @field_validator("min_edge")
    @classmethod
    def _min_edge_in_range(cls, v: float) -> float:
        if not 0.0 <= v < 1.0:
            raise ValueError(f"min_edge must be in [0, 1), got {v}")
        return v

    @field_validator("fee_bps", "slippage_bps")
    @classmethod
    def _bps_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"cost in bps must be >= 0, got {v}")
        return v

    @field_validator("base_size")
    @classmethod
    def _base_size_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"base_size must be >= 0, got {v}")
        return v

    @field_validator("confidence")
    @classmethod
    def _confidence_in_range(cls, v: float) -> float:
        if not 0.0 <= v <= 100.0:
            raise ValueError(f"confidence must be in [0, 100], got {v}")
        return v

    @field_validator("max_trades_per_event", "synthetic_members")
    @classmethod
    def _positive_count(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"count must be >= 1, got {v}")
        return v


def get_settings() -> Settings:
    """Load settings from the environment and `.env`."""
    return Settings()
