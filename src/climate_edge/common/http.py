"""Shared async HTTP client with retry, plus a throttle for serial fetches."""

from __future__ import annotations

import asyncio
import logging
import time

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception

from climate_edge.common.errors import FetchError
from climate_edge.config import get_settings

logger = logging.getLogger(__name__)


def _is_retryable(exc: BaseException) -> bool:
    """Retry on transient HTTP errors and timeouts."""
    if isinstance(exc, httpx.TimeoutException):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in (429, 500, 502, 503, 504)
    return False


_retry_decorator = retry(
    retry=retry_if_exception(_is_retryable),
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1.5, min=1.5, max=24),
    reraise=True,
)


class HttpClient:
    """Async HTTP client with retry logic."""

    def __init__(self, base_url: str = "", headers: dict[str, str] | None = None) -> None:
        settings = get_settings()
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers or {},
            timeout=httpx.Timeout(settings.http_timeout),
        )

    @_retry_decorator
    async def get(self, url: str, params: dict | None = None) -> httpx.Response:
        resp = await self._client.get(url, params=params)
        resp.raise_for_status()
        return resp

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


async def get_json(base_url: str, path: str, params: dict | None = None) -> dict:
    """GET a JSON document, translating transport failures into FetchError."""
    try:
        async with HttpClient(base_url=base_url) as client:
            resp = await client.get(path, params=params)
            return resp.json()
    except httpx.HTTPStatusError as exc:
        raise FetchError(
            f"{base_url}{path} returned HTTP {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        raise FetchError(f"{base_url}{path} failed: {exc}") from exc
    except ValueError as exc:
        raise FetchError(f"{base_url}{path} returned invalid JSON") from exc


async def get_text(base_url: str, path: str, params: dict | None = None) -> str:
    """GET a text document, translating transport failures into FetchError."""
    try:
        async with HttpClient(base_url=base_url) as client:
            resp = await client.get(path, params=params)
            return resp.text
    except httpx.HTTPStatusError as exc:
        raise FetchError(
            f"{base_url}{path} returned HTTP {exc.response.status_code}"
        ) from exc
    except httpx.HTTPError as exc:
        raise FetchError(f"{base_url}{path} failed: {exc}") from exc


class Throttle:
    """Serializes calls with a minimum delay between them.

    Used between per-location history fetches so a backtest stays under
    provider rate limits.
    """

    def __init__(self, delay_seconds: float | None = None) -> None:
        if delay_seconds is None:
            delay_seconds = get_settings().location_delay_seconds
        self.delay_seconds = max(0.0, delay_seconds)
        self._lock = asyncio.Lock()
        self._last: float | None = None

    async def wait(self) -> None:
        async with self._lock:
            if self._last is not None and self.delay_seconds > 0:
                elapsed = time.monotonic() - self._last
                remaining = self.delay_seconds - elapsed
                if remaining > 0:
                    logger.debug("Throttling %.2fs before next fetch", remaining)
                    await asyncio.sleep(remaining)
            self._last = time.monotonic()
