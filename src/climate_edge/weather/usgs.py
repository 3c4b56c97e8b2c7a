"""USGS FDSN event service client (earthquake history)."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from climate_edge.common.errors import ParseError
from climate_edge.common.http import get_json
from climate_edge.config import get_settings
from climate_edge.forecasting.earthquake import EarthquakeEvent

logger = logging.getLogger(__name__)

# FDSN hard cap on rows per query
_MAX_EVENTS = 20000


def parse_events(data: dict) -> list[EarthquakeEvent]:
    """Parse a GeoJSON FeatureCollection into events, oldest first.

    Features without a magnitude or time are skipped.
    """
    features = data.get("features")
    if not isinstance(features, list):
        raise ParseError("USGS response missing 'features' list")

    events: list[EarthquakeEvent] = []
    for feature in features:
        props = feature.get("properties") or {}
        mag = props.get("mag")
        millis = props.get("time")
        if mag is None or millis is None:
            continue
        events.append(
            EarthquakeEvent(
                time=datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc),
                magnitude=float(mag),
            )
        )

    events.sort(key=lambda e: e.time)
    return events


async def fetch_point_events(
    lat: float,
    lon: float,
    radius_km: float,
    start: date,
    end: date,
    min_magnitude: float | None = None,
) -> list[EarthquakeEvent]:
    """All events within radius_km of (lat, lon) between start and end."""
    settings = get_settings()
    if min_magnitude is None:
        min_magnitude = settings.earthquake_min_magnitude

    params = {
        "format": "geojson",
        "latitude": lat,
        "longitude": lon,
        "maxradiuskm": radius_km,
        "starttime": start.isoformat(),
        "endtime": end.isoformat(),
        "minmagnitude": min_magnitude,
        "orderby": "time-asc",
        "limit": _MAX_EVENTS,
    }
    data = await get_json(settings.usgs_api_url, "/query", params=params)
    events = parse_events(data)

    if len(events) >= _MAX_EVENTS:
        logger.warning(
            "USGS query for (%.2f, %.2f) hit the %d-event cap; history is truncated",
            lat, lon, _MAX_EVENTS,
        )
    logger.debug("USGS: %d event(s) within %.0f km of (%.2f, %.2f)", len(events), radius_km, lat, lon)
    return events
