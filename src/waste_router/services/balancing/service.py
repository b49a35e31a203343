"""Workload allocation of grouped stops across a vehicle class."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, List, Literal, Mapping, Protocol, Sequence, Tuple, TypeVar

from ...models.domain import Vehicle

AllocationStrategy = Literal["standard", "balanced"]
STRATEGIES: Tuple[str, ...] = ("standard", "balanced")


class Identified(Protocol):
    id: str


T = TypeVar("T", bound=Identified)

Share = Tuple[str, List[T]]


@dataclass(slots=True)
class AllocationResult(Generic[T]):
    strategy: str
    shares: Dict[str, List[Share]] = field(default_factory=dict)

    @property
    def counts(self) -> Dict[str, int]:
        return {
            vehicle_id: sum(len(items) for _, items in shares)
            for vehicle_id, shares in self.shares.items()
        }


def _empty_result(strategy: str, vehicles: Sequence[Vehicle]) -> AllocationResult:
    return AllocationResult(strategy=strategy, shares={vehicle.id: [] for vehicle in vehicles})


def allocate_standard(
    groups: Mapping[str, Sequence[T]],
    vehicles: Sequence[Vehicle],
    priority: Callable[[T], float],
) -> AllocationResult[T]:
    """Hand each facility's whole group to the next vehicle in rotation.

    The rotation advances once per non-empty facility, not once per stop, so
    vehicle workloads follow facility sizes rather than evening out.
    """
    result = _empty_result("standard", vehicles)
    index = 0
    for facility_id, items in groups.items():
        if not items:
            continue
        vehicle = vehicles[index % len(vehicles)]
        ordered = sorted(items, key=priority, reverse=True)
        result.shares[vehicle.id].append((facility_id, ordered))
        index += 1
    return result


def allocate_balanced(
    groups: Mapping[str, Sequence[T]],
    vehicles: Sequence[Vehicle],
    priority: Callable[[T], float],
) -> AllocationResult[T]:
    """Deal stops one at a time across every vehicle, highest priority first.

    Each vehicle ends up within one stop of ``total / len(vehicles)``. Its
    stops are regrouped by facility, in facility order, afterwards.
    """
    result = _empty_result("balanced", vehicles)
    facility_of: Dict[str, str] = {}
    pool: List[T] = []
    for facility_id, items in groups.items():
        for item in items:
            facility_of[item.id] = facility_id
            pool.append(item)

    # sorted() is stable, so equal priorities keep facility order
    pool.sort(key=priority, reverse=True)
    dealt: Dict[str, List[T]] = {vehicle.id: [] for vehicle in vehicles}
    for i, item in enumerate(pool):
        dealt[vehicles[i % len(vehicles)].id].append(item)

    for vehicle in vehicles:
        by_facility: Dict[str, List[T]] = {}
        for item in dealt[vehicle.id]:
            by_facility.setdefault(facility_of[item.id], []).append(item)
        result.shares[vehicle.id] = [
            (facility_id, by_facility[facility_id]) for facility_id in groups if facility_id in by_facility
        ]
    return result


_ALLOCATORS = {
    "standard": allocate_standard,
    "balanced": allocate_balanced,
}


def allocate(
    strategy: str,
    groups: Mapping[str, Sequence[T]],
    vehicles: Sequence[Vehicle],
    priority: Callable[[T], float],
) -> AllocationResult[T]:
    """Partition facility groups across ``vehicles`` with the named strategy."""
    if strategy not in _ALLOCATORS:
        raise ValueError(f"Unknown allocation strategy '{strategy}'. Expected one of: {', '.join(STRATEGIES)}")
    if not vehicles:
        raise ValueError("At least one vehicle is required for allocation.")
    return _ALLOCATORS[strategy](groups, vehicles, priority)
