"""Open-Meteo clients: per-model ensembles, point forecasts and the archive."""

from __future__ import annotations

import logging
from datetime import date

from climate_edge.common.errors import ParseError
from climate_edge.common.http import get_json
from climate_edge.config import get_settings
from climate_edge.forecasting.base import MIN_MODEL_MEMBERS, EnsembleResult

logger = logging.getLogger(__name__)


def _daily_block(data: dict, lat: float, lon: float) -> dict:
    daily = data.get("daily")
    if not isinstance(daily, dict):
        raise ParseError(f"Open-Meteo response missing 'daily' key for ({lat}, {lon})")
    return daily


async def fetch_model_ensemble(
    lat: float,
    lon: float,
    target_date: date,
    model_id: str,
    daily_var: str,
) -> EnsembleResult | None:
    """Fetch one model's daily ensemble members for a single date.

    Members come from the ``{daily_var}_memberNN`` keys plus the control run
    (the bare ``daily_var`` key) when it is not a duplicate.

    Returns:
        EnsembleResult, or None when the model returned fewer than 3 members.
    """
    settings = get_settings()
    params = {
        "latitude": lat,
        "longitude": lon,
        "daily": daily_var,
        "start_date": target_date.isoformat(),
        "end_date": target_date.isoformat(),
        "models": model_id,
    }
    data = await get_json(settings.openmeteo_ensemble_api_url, "/ensemble", params=params)
    daily = _daily_block(data, lat, lon)

    members: list[float] = []
    prefix = f"{daily_var}_member"
    for key, values in daily.items():
        if key.startswith(prefix) and values and values[0] is not None:
            members.append(float(values[0]))

    control = daily.get(daily_var)
    if control and control[0] is not None and float(control[0]) not in members:
        members.append(float(control[0]))

    if len(members) < MIN_MODEL_MEMBERS:
        logger.info(
            "%s returned %d member(s) for (%.2f, %.2f) on %s",
            model_id, len(members), lat, lon, target_date,
        )
        return None

    return EnsembleResult.from_values(members, model_id)


async def fetch_point_forecast(
    lat: float,
    lon: float,
    target_date: date,
    daily_var: str,
) -> float:
    """Deterministic daily forecast value for the target date.

    Raises:
        ParseError: if the date or variable is missing from the response.
    """
    settings = get_settings()
    params = {
        "latitude": lat,
        "longitude": lon,
        "daily": daily_var,
        "start_date": target_date.isoformat(),
        "end_date": target_date.isoformat(),
        "timezone": "auto",
    }
    data = await get_json(settings.openmeteo_forecast_api_url, "/forecast", params=params)
    daily = _daily_block(data, lat, lon)

    values = daily.get(daily_var) or []
    if not values or values[0] is None:
        raise ParseError(
            f"Open-Meteo forecast has no {daily_var} for ({lat}, {lon}) on {target_date}"
        )
    return float(values[0])


async def fetch_historical_series(
    lat: float,
    lon: float,
    start: date,
    end: date,
    daily_var: str,
) -> list[tuple[date, float]]:
    """Daily archive values between start and end (inclusive).

    Days the archive reports as null are left out.
    """
    settings = get_settings()
    params = {
        "latitude": lat,
        "longitude": lon,
        "daily": daily_var,
        "start_date": start.isoformat(),
        "end_date": end.isoformat(),
        "timezone": "auto",
    }
    data = await get_json(settings.openmeteo_archive_api_url, "/archive", params=params)
    daily = _daily_block(data, lat, lon)

    times = daily.get("time")
    values = daily.get(daily_var)
    if times is None or values is None:
        raise ParseError(f"Open-Meteo archive missing 'time' or {daily_var!r} for ({lat}, {lon})")

    series: list[tuple[date, float]] = []
    skipped = 0
    for day, value in zip(times, values):
        if value is None:
            skipped += 1
            continue
        series.append((date.fromisoformat(day), float(value)))

    if skipped:
        logger.debug("Skipped %d null archive value(s) for (%.2f, %.2f)", skipped, lat, lon)
    return series
