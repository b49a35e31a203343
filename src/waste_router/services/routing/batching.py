"""Split a vehicle's share of stops into capacity-bounded trips."""

from __future__ import annotations

import logging
from typing import Callable, List, Mapping, Sequence, TypeVar

from ...config import settings
from ...models.domain import CompactStation, SmartBin

logger = logging.getLogger(__name__)

T = TypeVar("T")


def bin_weight(smart_bin: SmartBin, factor: float | None = None) -> float:
    """Approximate collected weight in kg from fill percentage and volume."""
    density = settings.bin_weight_factor if factor is None else factor
    return (smart_bin.current_level / 100.0) * smart_bin.capacity * density


def batch_by_capacity(
    capacity: float,
    max_stops: int,
    items: Sequence[T],
    weight: Callable[[T], float],
) -> List[List[T]]:
    """Greedy, order-preserving split under a weight and a stop-count ceiling.

    An item heavier than ``capacity`` on its own still gets a trip of its
    own; it is never dropped.
    """
    if max_stops < 1:
        raise ValueError("max_stops must be >= 1")

    batches: List[List[T]] = []
    current: List[T] = []
    current_load = 0.0

    for item in items:
        item_weight = weight(item)
        if current and (current_load + item_weight > capacity or len(current) >= max_stops):
            batches.append(current)
            current, current_load = [], 0.0
        if item_weight > capacity:
            logger.warning(f"Stop weighing {item_weight:.1f} exceeds vehicle capacity {capacity:.1f}; trip will be overloaded")
        current.append(item)
        current_load += item_weight

    if current:
        batches.append(current)
    return batches


def batch_bins(
    vehicle_capacity: float,
    bins: Sequence[SmartBin],
    max_stops: int | None = None,
) -> List[List[SmartBin]]:
    return batch_by_capacity(
        vehicle_capacity,
        max_stops or settings.sat_max_stops_per_trip,
        bins,
        bin_weight,
    )


def batch_stations(
    vehicle_capacity: float,
    stations: Sequence[CompactStation],
    loads: Mapping[str, float],
    max_stops: int | None = None,
) -> List[List[CompactStation]]:
    return batch_by_capacity(
        vehicle_capacity,
        max_stops or settings.truck_max_stations_per_trip,
        stations,
        lambda station: loads.get(station.id, 0.0),
    )


def top_up_batches(
    batches: List[List[T]],
    candidates: Sequence[T],
    capacity: float,
    max_stops: int,
    weight: Callable[[T], float],
) -> List[T]:
    """Fit low-priority stops into trips that still have room.

    Never opens a new trip. Returns the candidates that were placed, in the
    order they were placed.
    """
    placed: List[T] = []
    loads = [sum(weight(item) for item in batch) for batch in batches]
    for candidate in candidates:
        candidate_weight = weight(candidate)
        for idx, batch in enumerate(batches):
            if len(batch) < max_stops and loads[idx] + candidate_weight <= capacity:
                batch.append(candidate)
                loads[idx] += candidate_weight
                placed.append(candidate)
                break
    return placed
