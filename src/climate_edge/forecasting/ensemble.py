"""Multi-model ensemble fetching and pooling for weather metrics."""

from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Sequence

from climate_edge.config import get_settings
from climate_edge.forecasting.base import EnsembleResult, PooledEnsemble, pool_ensembles
from climate_edge.profiles import MetricProfile
from climate_edge.weather.openmeteo import fetch_model_ensemble

logger = logging.getLogger(__name__)


async def fetch_multi_model_ensemble(
    lat: float,
    lon: float,
    target_date: date,
    profile: MetricProfile,
    models: Sequence[str] | None = None,
) -> PooledEnsemble | None:
    """Query every model concurrently and pool the survivors.

    A model that raises is logged and dropped; the others still count.
    Returns None when nothing usable comes back, in which case the caller
    falls back to the normal distribution.
    """
    if profile.ensemble_daily_var is None:
        return None
    model_ids = list(models) if models is not None else get_settings().ensemble_models

    results = await asyncio.gather(
        *(
            fetch_model_ensemble(lat, lon, target_date, model_id, profile.ensemble_daily_var)
            for model_id in model_ids
        ),
        return_exceptions=True,
    )

    usable: list[EnsembleResult | None] = []
    for model_id, result in zip(model_ids, results):
        if isinstance(result, BaseException):
            logger.warning(
                "Ensemble model %s failed for (%.2f, %.2f): %s", model_id, lat, lon, result,
            )
            continue
        usable.append(result)

    pooled = pool_ensembles(usable)
    if pooled is None:
        logger.info(
            "No usable ensemble for (%.2f, %.2f) on %s: falling back to normal",
            lat, lon, target_date,
        )
    return pooled
