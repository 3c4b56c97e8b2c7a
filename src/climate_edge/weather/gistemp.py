"""NASA GISTEMP global land-ocean temperature index.

The published table is fixed-width text with monthly anomalies in 0.01°C
relative to the 1951-1980 baseline (e.g. ``117`` = 1.17°C); missing months
are ``***``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from climate_edge.common.errors import UpstreamDataError
from climate_edge.common.http import get_text
from climate_edge.config import get_settings

logger = logging.getLogger(__name__)

GISTEMP_PATH = "/GLB.Ts+dSST.txt"

# A healthy download has well over this many monthly values
_MIN_RECORDS = 100

_MONTH_NAMES = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sept": 9, "sep": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

_MONTH_RE = re.compile(r"\b(" + "|".join(sorted(_MONTH_NAMES, key=len, reverse=True)) + r")\b")
_YEAR_RE = re.compile(r"\b(20\d{2})\b")

# GISTEMP v4 February anomalies (°C), served when NASA GISS is unreachable
FALLBACK_FEBRUARY_ANOMALIES: tuple[tuple[int, float], ...] = (
    (2000, 0.54), (2001, 0.46), (2002, 0.68), (2003, 0.59), (2004, 0.67),
    (2005, 0.58), (2006, 0.62), (2007, 0.67), (2008, 0.31), (2009, 0.49),
    (2010, 0.76), (2011, 0.47), (2012, 0.42), (2013, 0.55), (2014, 0.50),
    (2015, 0.86), (2016, 1.33), (2017, 1.10), (2018, 0.88), (2019, 0.91),
    (2020, 1.25), (2021, 0.69), (2022, 0.89), (2023, 1.03), (2024, 1.76),
    (2025, 1.17),
)


@dataclass(frozen=True)
class GistempRecord:
    year: int
    month: int  # 1-12
    anomaly: float  # °C


def parse_gistemp_text(text: str) -> list[GistempRecord]:
    """Parse the fixed-width GISTEMP table.

    Only rows starting with a year in [1880, 2100] are read. The header row
    repeats every ~20 years and is skipped along with the footer.
    """
    records: list[GistempRecord] = []
    for line in text.splitlines():
        parts = line.split()
        if len(parts) < 13 or not re.fullmatch(r"\d{4}", parts[0]):
            continue
        year = int(parts[0])
        if not 1880 <= year <= 2100:
            continue
        for month, raw in enumerate(parts[1:13], start=1):
            if raw.startswith("*"):
                continue
            try:
                value = int(raw)
            except ValueError:
                continue
            records.append(GistempRecord(year=year, month=month, anomaly=value / 100.0))
    return records


def fallback_records() -> list[GistempRecord]:
    return [GistempRecord(year=y, month=2, anomaly=a) for y, a in FALLBACK_FEBRUARY_ANOMALIES]


async def fetch_gistemp_records() -> list[GistempRecord]:
    """Download and parse the full GISTEMP table.

    Falls back to the built-in February table (logged as a warning) when the
    download fails or yields too few values. That table only covers February,
    so other months come back empty and the caller raises on them.
    """
    settings = get_settings()
    try:
        text = await get_text(settings.gistemp_api_url, GISTEMP_PATH)
        records = parse_gistemp_text(text)
        if len(records) <= _MIN_RECORDS:
            raise UpstreamDataError(f"Parsed only {len(records)} GISTEMP value(s)")
        return records
    except UpstreamDataError as exc:
        logger.warning("NASA GISS fetch failed, using fallback February table: %s", exc)
        return fallback_records()


def monthly_series(records: list[GistempRecord], month: int) -> list[tuple[int, float]]:
    """(year, anomaly) pairs for one calendar month, oldest first."""
    return sorted((r.year, r.anomaly) for r in records if r.month == month)


async def fetch_monthly_index(month: int) -> list[tuple[int, float]]:
    """Fetch the yearly anomaly series for one calendar month (1-12)."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}")
    return monthly_series(await fetch_gistemp_records(), month)


def resolve_month_from_title(title: str) -> int | None:
    """Month number named in an event title, e.g. "February 2026 ..." -> 2."""
    match = _MONTH_RE.search(title.lower())
    return _MONTH_NAMES[match.group(1)] if match else None


def resolve_year_from_title(title: str) -> int | None:
    match = _YEAR_RE.search(title)
    return int(match.group(1)) if match else None
