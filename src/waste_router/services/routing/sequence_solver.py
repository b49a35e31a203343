"""Nearest-neighbour visit ordering for a single trip.

Trips are capped at a small number of stops, so the quadratic greedy scan is
cheap and keeps the result deterministic for a given input order.
"""

from __future__ import annotations

from typing import List, Optional, Protocol, Sequence, TypeVar

from ..geospatial import haversine_km


class HasPosition(Protocol):
    lat: float
    lng: float


T = TypeVar("T", bound=HasPosition)


def nearest_neighbor_sequence(
    start: HasPosition,
    points: Sequence[T],
    end: Optional[HasPosition] = None,
) -> List[T]:
    """Order ``points`` by repeatedly visiting the closest unvisited one.

    ``end`` documents where the vehicle returns to; callers add that leg
    themselves and it does not influence the order.
    """
    remaining = list(points)
    route: List[T] = []
    current_lat, current_lng = start.lat, start.lng

    while remaining:
        nearest_idx = 0
        nearest_dist = float("inf")
        for idx, candidate in enumerate(remaining):
            dist = haversine_km(current_lat, current_lng, candidate.lat, candidate.lng)
            if dist < nearest_dist:
                nearest_dist = dist
                nearest_idx = idx
        chosen = remaining.pop(nearest_idx)
        route.append(chosen)
        current_lat, current_lng = chosen.lat, chosen.lng

    return route
