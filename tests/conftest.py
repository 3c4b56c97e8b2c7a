"""Shared test fixtures."""

from __future__ import annotations

from datetime import date
from unittest.mock import patch

import numpy as np
import pytest

from climate_edge.forecasting.base import EnsembleResult, ForecastData, pool_ensembles
from climate_edge.markets.buckets import Bucket
from climate_edge.profiles import Metric, get_profile


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def temperature_profile():
    return get_profile(Metric.TEMPERATURE)


@pytest.fixture
def hot_buckets():
    """Three contiguous °C buckets around 25-30."""
    return [
        Bucket.at_most("≤25°C", 25.0),
        Bucket.between("25-30°C", 25.0, 30.0),
        Bucket.at_least("≥30°C", 30.0),
    ]


@pytest.fixture
def ensemble_forecast():
    """Two models, 82 members: 60 at 31°C, 22 at 27°C."""
    ecmwf = EnsembleResult.from_values([31.0] * 40 + [27.0] * 11, "ecmwf_ifs025")
    gfs = EnsembleResult.from_values([31.0] * 20 + [27.0] * 11, "gfs025")
    return ForecastData(
        metric=Metric.TEMPERATURE,
        mean=30.5,
        sigma=1.5,
        ensemble=pool_ensembles([ecmwf, gfs]),
        target_date=date(2026, 7, 4),
        sources=("test",),
    )


@pytest.fixture
def normal_forecast():
    return ForecastData(
        metric=Metric.TEMPERATURE,
        mean=31.0,
        sigma=1.5,
        target_date=date(2026, 7, 4),
    )


@pytest.fixture
def tmp_db(tmp_path):
    return tmp_path / "runs.db"


@pytest.fixture
def patched_db(tmp_db):
    """Point RunStore at a temporary database."""
    with patch("climate_edge.storage.get_settings") as mock_settings:
        mock_settings.return_value.db_path = tmp_db
        yield tmp_db
