"""Road-route resolution with straight-line fallback and request pacing."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Protocol, Sequence

import httpx

from ...config import settings
from ..geospatial import path_length_km
from .models import OptimizedRoute, ResolvedPath
from .osrm_client import OSRMClient, OSRMError

logger = logging.getLogger(__name__)


class RouteResolver(Protocol):
    async def get_route(self, coordinates: Sequence[tuple[float, float]]) -> ResolvedPath: ...


def straight_line_path(
    coordinates: Sequence[tuple[float, float]],
    speed_kmh: float | None = None,
    attempted: bool = True,
) -> ResolvedPath:
    """Best-effort path when no road network answer is available."""
    speed = speed_kmh or settings.osrm_fallback_speed_kmh
    distance_km = path_length_km(coordinates)
    return ResolvedPath(
        coordinates=list(coordinates),
        distance_km=distance_km,
        duration_minutes=distance_km / speed * 60.0,
        average_speed_kmh=speed,
        resolved=False,
        attempted=attempted,
    )


def pick_fastest(routes: Sequence[dict[str, Any]]) -> ResolvedPath:
    """Choose the alternative with the lowest duration and normalize units."""
    best = min(routes, key=lambda candidate: float(candidate["duration"]))
    distance_km = float(best["distance"]) / 1000.0
    duration_minutes = float(best["duration"]) / 60.0
    coordinates = [(lat, lon) for lon, lat in best["geometry"]["coordinates"]]
    average_speed = distance_km / (duration_minutes / 60.0) if duration_minutes > 0 else 0.0
    return ResolvedPath(
        coordinates=coordinates,
        distance_km=distance_km,
        duration_minutes=duration_minutes,
        average_speed_kmh=average_speed,
        resolved=True,
    )


class RoadRouteResolver:
    """Turns a visiting order into a road path via OSRM, never raising."""

    def __init__(self, client: OSRMClient | None = None, fallback_speed_kmh: float | None = None) -> None:
        self._client = client
        self.fallback_speed_kmh = fallback_speed_kmh or settings.osrm_fallback_speed_kmh

    @property
    def client(self) -> OSRMClient:
        if self._client is None:
            self._client = OSRMClient()
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()

    async def get_route(self, coordinates: Sequence[tuple[float, float]]) -> ResolvedPath:
        if len(coordinates) < 2:
            return straight_line_path(coordinates, self.fallback_speed_kmh, attempted=False)
        try:
            routes = await self.client.route(coordinates)
            return pick_fastest(routes)
        except (OSRMError, ConnectionError, httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.warning(f"OSRM routing failed for {len(coordinates)} waypoints, using direct lines: {exc}")
            return straight_line_path(coordinates, self.fallback_speed_kmh)


async def get_osrm_route(
    coordinates: Sequence[tuple[float, float]],
    resolver: RouteResolver | None = None,
) -> ResolvedPath:
    """Resolve one waypoint sequence with a throwaway resolver unless one is given."""
    if resolver is not None:
        return await resolver.get_route(coordinates)
    owned = RoadRouteResolver()
    try:
        return await owned.get_route(coordinates)
    finally:
        await owned.aclose()


RefinedCallback = Callable[[OptimizedRoute], None]


def _settle_outcome(route: OptimizedRoute, outcome: ResolvedPath | BaseException) -> ResolvedPath:
    if isinstance(outcome, ResolvedPath):
        return outcome
    logger.warning(
        f"Route resolver raised for {route.vehicle_id} trip {route.trip_number}, keeping direct lines: {outcome!r}"
    )
    return straight_line_path(route.waypoints())


def _abandon(batch: Sequence[OptimizedRoute]) -> None:
    """Settle in-flight routes as failed so none is left mid-refinement."""
    for route in batch:
        route.apply_resolution(straight_line_path(route.waypoints()))


async def refine_routes(
    routes: Sequence[OptimizedRoute],
    resolver: RouteResolver,
    *,
    on_refined: RefinedCallback | None = None,
    is_current: Callable[[], bool] = lambda: True,
    batch_size: int | None = None,
    delay_seconds: float | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> int:
    """Refine provisional routes in paced batches; returns how many settled.

    Requests go out ``batch_size`` at a time with ``delay_seconds`` between
    batches so a shared public OSRM instance is not hammered. Work stops as
    soon as ``is_current`` reports the owning run was superseded; routes
    already in flight then settle as refine-failed.
    """
    size = batch_size or settings.refinement_batch_size
    delay = settings.refinement_delay_seconds if delay_seconds is None else delay_seconds
    pending = [route for route in routes if not route.osrm_fetched]
    settled = 0

    for offset in range(0, len(pending), size):
        if not is_current():
            logger.info("Refinement abandoned: run superseded")
            break
        if offset and delay:
            await sleep(delay)
            if not is_current():
                logger.info("Refinement abandoned: run superseded")
                break

        batch = pending[offset : offset + size]
        for route in batch:
            route.mark_refining()
        try:
            outcomes = await asyncio.gather(
                *(resolver.get_route(route.waypoints()) for route in batch), return_exceptions=True
            )
        except asyncio.CancelledError:
            _abandon(batch)
            raise
        if not is_current():
            logger.info("Discarding refinement results for superseded run")
            _abandon(batch)
            break

        for route, outcome in zip(batch, outcomes):
            path = _settle_outcome(route, outcome)
            route.apply_resolution(path)
            settled += 1
            if on_refined is not None:
                on_refined(route)

    return settled
