"""HTTP client for interacting with OSRM services."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Sequence

import httpx

from ...config import settings

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {408, 500, 502, 503, 504}
RATE_LIMIT_STATUS = 429


class OSRMError(RuntimeError):
    """OSRM answered, but not with a usable route."""


class OSRMRetryableError(OSRMError):
    """A failure that is likely transient and safe to retry."""


class OSRMRateLimitError(OSRMRetryableError):
    """OSRM asked us to slow down."""


def build_coordinate_string(coordinates: Sequence[tuple[float, float]]) -> str:
    """OSRM expects ``lon,lat;lon,lat``; internal coordinates are (lat, lon)."""
    return ";".join(f"{lon},{lat}" for lat, lon in coordinates)


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        rate_limit_backoff_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.osrm_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds
        self.rate_limit_backoff_seconds = (
            rate_limit_backoff_seconds
            if rate_limit_backoff_seconds is not None
            else settings.osrm_rate_limit_backoff_seconds
        )
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 5.0)),
            headers={"accept": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "OSRMClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _wait_seconds(self, attempt: int, rate_limited: bool) -> float:
        base = self.rate_limit_backoff_seconds if rate_limited else self.backoff_seconds
        return base * (2 ** (attempt - 1))

    async def _get_routes(self, url: str, params: dict[str, str]) -> list[dict[str, Any]]:
        try:
            response = await asyncio.wait_for(self._client.get(url, params=params), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise OSRMRetryableError(f"OSRM request timed out after {self.timeout:.0f}s") from exc
        if response.status_code == RATE_LIMIT_STATUS:
            raise OSRMRateLimitError("OSRM rate limit hit (HTTP 429)")
        if response.status_code in _RETRYABLE_STATUS:
            raise OSRMRetryableError(f"OSRM HTTP {response.status_code}")
        if response.status_code >= 400:
            raise OSRMError(f"OSRM HTTP {response.status_code}: {response.text[:200]}")

        data = response.json()
        if not isinstance(data, dict):
            raise OSRMError(f"OSRM returned a malformed body: {type(data).__name__}")
        if data.get("code") != "Ok":
            error_msg = data.get("message", "Unknown OSRM route error")
            raise OSRMError(f"OSRM route request failed: {data.get('code')} {error_msg}")
        routes = data.get("routes")
        if not isinstance(routes, list) or not routes:
            raise OSRMError("OSRM returned no routes")
        return routes

    async def route(
        self,
        coordinates: Sequence[tuple[float, float]],
        alternatives: bool | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch candidate driving routes visiting ``coordinates`` in order.

        Args:
            coordinates: Sequence of (lat, lon) tuples for the route waypoints
            alternatives: Ask for alternative paths (defaults to settings)

        Returns:
            The raw OSRM ``routes`` list; each entry carries ``distance`` (m),
            ``duration`` (s) and a GeoJSON ``geometry`` in (lon, lat) order.
        """
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM route.")

        use_alternatives = settings.osrm_alternatives if alternatives is None else alternatives
        params = {
            "overview": "full",
            "geometries": "geojson",
            "alternatives": "true" if use_alternatives else "false",
            "annotations": "duration,distance",
            "steps": "false",
        }
        url = f"{self.base_url}/route/v1/{self.profile}/{build_coordinate_string(coordinates)}"

        attempt = 0
        while True:
            try:
                return await self._get_routes(url, params)
            except OSRMRateLimitError:
                attempt += 1
                if attempt > self.max_retries:
                    logger.warning(f"OSRM still rate limiting after {self.max_retries} retries")
                    raise
                wait_time = self._wait_seconds(attempt, rate_limited=True)
                logger.debug(f"OSRM rate limited, backing off {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                await asyncio.sleep(wait_time)
            except OSRMRetryableError:
                attempt += 1
                if attempt > self.max_retries:
                    raise
                wait_time = self._wait_seconds(attempt, rate_limited=False)
                logger.debug(f"OSRM server error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                await asyncio.sleep(wait_time)
            except httpx.TimeoutException as e:
                attempt += 1
                if attempt > self.max_retries:
                    logger.warning(f"OSRM route request timed out after {self.max_retries} retries: {e!r}")
                    raise OSRMRetryableError(f"OSRM request timed out after {self.timeout:.0f}s") from e
                wait_time = self._wait_seconds(attempt, rate_limited=False)
                logger.debug(f"OSRM route timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                await asyncio.sleep(wait_time)
            except (httpx.NetworkError, httpx.TransportError) as e:
                attempt += 1
                if attempt > self.max_retries:
                    raise ConnectionError(
                        f"Failed to connect to OSRM service at {self.base_url}: {e}"
                    ) from e
                wait_time = self._wait_seconds(attempt, rate_limited=False)
                logger.debug(f"OSRM network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                await asyncio.sleep(wait_time)


def check_health(base_url: str | None = None) -> bool:
    """Check OSRM service health with a minimal two-point route request."""
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        # Two points in Hyderabad; works with public and self-hosted instances.
        test_coords = "78.4738,17.4239;78.4867,17.3850"
        url = f"{base.rstrip('/')}/route/v1/{settings.osrm_profile}/{test_coords}"
        response = httpx.get(url, params={"overview": "false"}, timeout=5.0)
        response.raise_for_status()
        return response.json().get("code") == "Ok"
    except (httpx.HTTPError, ValueError):
        return False
