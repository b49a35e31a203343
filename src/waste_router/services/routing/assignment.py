"""Nearest-facility clustering for bins and stations."""

from __future__ import annotations

from typing import Dict, List, Protocol, Sequence, Tuple, TypeVar

from ...config import settings
from ...models.domain import CompactStation, Dumpyard, SmartBin
from ..geospatial import haversine_km


class Located(Protocol):
    id: str
    lat: float
    lng: float


P = TypeVar("P", bound=Located)
F = TypeVar("F", bound=Located)


def nearest_facility(point: Located, facilities: Sequence[F]) -> F:
    """Closest facility by great-circle distance; the first one wins ties."""
    if not facilities:
        raise ValueError("At least one facility is required.")
    nearest = facilities[0]
    nearest_dist = float("inf")
    for facility in facilities:
        dist = haversine_km(point.lat, point.lng, facility.lat, facility.lng)
        if dist < nearest_dist:
            nearest_dist = dist
            nearest = facility
    return nearest


def assign_to_nearest(points: Sequence[P], facilities: Sequence[F]) -> Dict[str, List[P]]:
    """Map every facility id, in facility order, to the points closest to it."""
    assignments: Dict[str, List[P]] = {facility.id: [] for facility in facilities}
    if not points:
        return assignments
    for point in points:
        assignments[nearest_facility(point, facilities).id].append(point)
    return assignments


def select_collectable_bins(
    bins: Sequence[SmartBin],
    threshold: float | None = None,
) -> Tuple[List[SmartBin], List[SmartBin]]:
    """Split bins into (collectable, deferred) by fill threshold.

    When no bin reaches the threshold it is waived and every bin is
    collectable, so a run never comes back empty while bins exist.
    """
    limit = settings.collection_threshold_percent if threshold is None else threshold
    collectable = [b for b in bins if b.current_level >= limit]
    if not collectable:
        return list(bins), []
    deferred = [b for b in bins if b.current_level < limit]
    return collectable, deferred


def assign_bins_to_stations(
    bins: Sequence[SmartBin],
    stations: Sequence[CompactStation],
) -> Dict[str, List[SmartBin]]:
    return assign_to_nearest(bins, stations)


def assign_stations_to_dumpyards(
    stations: Sequence[CompactStation],
    dumpyards: Sequence[Dumpyard],
) -> Dict[str, List[CompactStation]]:
    return assign_to_nearest(stations, dumpyards)
