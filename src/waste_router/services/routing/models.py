"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Literal, Optional

StopType = Literal["smartbin", "compact-station", "dumpyard"]
StopAction = Literal["pickup", "dropoff"]


class RefinementStatus(str, Enum):
    PROVISIONAL = "provisional"
    REFINING = "refining"
    REFINED = "refined"
    REFINE_FAILED = "refine-failed"


@dataclass(slots=True)
class RoutePoint:
    lat: float
    lng: float
    type: StopType
    id: str
    action: StopAction


@dataclass(slots=True)
class ResolvedPath:
    """Outcome of one road-route lookup.

    ``resolved`` is True only when the path came from the routing service;
    a straight-line fallback keeps ``attempted`` True so callers can tell a
    failed lookup apart from one that never ran.
    """

    coordinates: List[tuple[float, float]]
    distance_km: float
    duration_minutes: float
    average_speed_kmh: float
    resolved: bool
    attempted: bool = True


@dataclass(slots=True)
class OptimizedRoute:
    vehicle_id: str
    vehicle_type: Literal["sat", "truck"]
    route: List[RoutePoint]
    total_distance: float
    estimated_time: int
    start_time: int
    trip_number: int
    coordinates: List[tuple[float, float]]
    load_kg: float = 0.0
    target_station_id: Optional[str] = None
    target_dumpyard_id: Optional[str] = None
    run_id: Optional[str] = None
    refinement_status: RefinementStatus = RefinementStatus.PROVISIONAL
    average_speed_kmh: Optional[float] = None
    notes: List[str] = field(default_factory=list)

    @property
    def osrm_fetched(self) -> bool:
        return self.refinement_status in (RefinementStatus.REFINED, RefinementStatus.REFINE_FAILED)

    @property
    def end_time(self) -> int:
        return self.start_time + self.estimated_time

    def waypoints(self) -> List[tuple[float, float]]:
        return [(point.lat, point.lng) for point in self.route]

    def mark_refining(self) -> None:
        if self.refinement_status is not RefinementStatus.PROVISIONAL:
            raise ValueError(f"Route for {self.vehicle_id} is already {self.refinement_status.value}.")
        self.refinement_status = RefinementStatus.REFINING

    def apply_resolution(self, path: ResolvedPath) -> None:
        """Settle the route with a resolver outcome. Terminal: runs once."""
        if self.refinement_status is not RefinementStatus.REFINING:
            raise ValueError(f"Route for {self.vehicle_id} is not being refined.")
        if not path.resolved:
            self.refinement_status = RefinementStatus.REFINE_FAILED
            return
        self.coordinates = list(path.coordinates)
        self.total_distance = round(path.distance_km, 1)
        self.estimated_time = round(path.duration_minutes)
        self.average_speed_kmh = round(path.average_speed_kmh, 1)
        self.refinement_status = RefinementStatus.REFINED


def calculate_total_time(routes: List[OptimizedRoute]) -> int:
    """Minutes from shift start until the last vehicle finishes."""
    return max((route.end_time for route in routes), default=0)
