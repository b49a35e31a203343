"""Routing orchestration service.

One run goes through two tiers. SATs carry bins to compact stations, then
trucks carry station loads to dumpyards. Both tiers share the same shape:
assign to the nearest facility, allocate across vehicles, batch into trips,
sequence each trip and assemble straight-line estimates. Road-network
refinement happens afterwards in a background task owned by the run.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ...config import settings
from ...models.domain import CompactStation, Dumpyard, FleetSnapshot, SmartBin, Vehicle
from ..balancing.service import STRATEGIES, allocate
from ..geospatial import path_length_km
from .assignment import assign_bins_to_stations, assign_stations_to_dumpyards, select_collectable_bins
from .batching import batch_bins, batch_stations, bin_weight, top_up_batches
from .models import OptimizedRoute, RefinementStatus, RoutePoint, calculate_total_time
from .resolver import RoadRouteResolver, RouteResolver, refine_routes
from .sequence_solver import nearest_neighbor_sequence
from .timing import trip_minutes

logger = logging.getLogger(__name__)

RouteCallback = Callable[[OptimizedRoute, List[OptimizedRoute]], None]


class RoutingPreconditionError(ValueError):
    """The snapshot cannot produce any route; the message is shown to the user verbatim."""


@dataclass(slots=True)
class RunLedger:
    """Simulated state accumulated while one run is planned.

    Station loads start from the station records and grow with every SAT
    trip; the records themselves are never touched.
    """

    station_loads: Dict[str, float] = field(default_factory=dict)
    station_ready_at: Dict[str, int] = field(default_factory=dict)
    vehicle_clock: Dict[str, int] = field(default_factory=dict)
    vehicle_trips: Dict[str, int] = field(default_factory=dict)
    dumpyard_loads: Dict[str, float] = field(default_factory=dict)

    def next_trip(self, vehicle_id: str) -> int:
        self.vehicle_trips[vehicle_id] = self.vehicle_trips.get(vehicle_id, 0) + 1
        return self.vehicle_trips[vehicle_id]

    def record_collection(self, station_id: str, load: float, finished_at: int) -> None:
        self.station_loads[station_id] = self.station_loads.get(station_id, 0.0) + load
        self.station_ready_at[station_id] = max(self.station_ready_at.get(station_id, 0), finished_at)


@dataclass(slots=True)
class ProvisionalPlan:
    routes: List[OptimizedRoute]
    ledger: RunLedger
    strategy: str
    deferred_bin_ids: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def default_dumpyard() -> Dumpyard:
    return Dumpyard(
        id=settings.default_dumpyard_id,
        lat=settings.default_dumpyard_lat,
        lng=settings.default_dumpyard_lng,
        capacity=settings.default_dumpyard_capacity,
        current_level=0.0,
        name=settings.default_dumpyard_name,
        is_permanent=True,
    )


def _check_preconditions(snapshot: FleetSnapshot) -> List[Vehicle]:
    if not snapshot.bins:
        raise RoutingPreconditionError("No smart bins available. Please upload data with GVP locations.")
    if not snapshot.stations:
        raise RoutingPreconditionError(
            "No compact stations available. Please upload data with SCTP/station locations."
        )
    if not snapshot.sats:
        raise RoutingPreconditionError("No SAT vehicles available. Please upload fleet data with Mini Tippers.")
    active_sats = [sat for sat in snapshot.sats if sat.is_active]
    if not active_sats:
        raise RoutingPreconditionError("No active SAT vehicles available for routing")
    return active_sats


def _assemble_trip(
    *,
    vehicle: Vehicle,
    vehicle_type: str,
    facility: CompactStation | Dumpyard,
    facility_type: str,
    stops: Sequence[SmartBin | CompactStation],
    stop_type: str,
    load: float,
    start_time: int,
    trip_number: int,
    run_id: Optional[str],
) -> OptimizedRoute:
    """Bookend the ordered stops with the facility and estimate the trip."""
    waypoints: List[Tuple[float, float]] = [
        (facility.lat, facility.lng),
        *((stop.lat, stop.lng) for stop in stops),
        (facility.lat, facility.lng),
    ]
    distance_km = path_length_km(waypoints)
    minutes = trip_minutes(distance_km, vehicle_type, start_time)

    route = OptimizedRoute(
        vehicle_id=vehicle.id,
        vehicle_type=vehicle_type,
        route=[
            RoutePoint(lat=facility.lat, lng=facility.lng, type=facility_type, id=facility.id, action="pickup"),
            *(RoutePoint(lat=stop.lat, lng=stop.lng, type=stop_type, id=stop.id, action="pickup") for stop in stops),
            RoutePoint(lat=facility.lat, lng=facility.lng, type=facility_type, id=facility.id, action="dropoff"),
        ],
        total_distance=round(distance_km, 1),
        estimated_time=minutes,
        start_time=start_time,
        trip_number=trip_number,
        coordinates=waypoints,
        load_kg=round(load, 1),
        run_id=run_id,
    )
    if load > vehicle.capacity:
        route.notes.append(f"Load {load:.1f} kg exceeds vehicle capacity {vehicle.capacity:.1f} kg")
    return route


def _build_sat_routes(
    snapshot: FleetSnapshot,
    sats: Sequence[Vehicle],
    strategy: str,
    ledger: RunLedger,
    publish: Callable[[OptimizedRoute], None],
    run_id: Optional[str],
) -> List[str]:
    """Plan bin collection trips; returns ids of bins left uncollected."""
    collectable, deferred = select_collectable_bins(snapshot.bins)
    if len(collectable) == len(snapshot.bins) and any(
        b.current_level < settings.collection_threshold_percent for b in snapshot.bins
    ):
        logger.info(
            f"No bin reached {settings.collection_threshold_percent:.0f}% fill; collecting all {len(collectable)} bins"
        )

    groups = assign_bins_to_stations(collectable, snapshot.stations)
    leftovers = assign_bins_to_stations(deferred, snapshot.stations)
    stations = {station.id: station for station in snapshot.stations}
    allocation = allocate(strategy, groups, sats, priority=lambda b: b.current_level)
    logger.info(f"SAT allocation ({strategy}): {allocation.counts}")

    for sat in sats:
        for station_id, share in allocation.shares[sat.id]:
            station = stations[station_id]
            batches = batch_bins(sat.capacity, share)
            placed = top_up_batches(
                batches, leftovers[station_id], sat.capacity, settings.sat_max_stops_per_trip, bin_weight
            )
            if placed:
                placed_ids = {b.id for b in placed}
                leftovers[station_id] = [b for b in leftovers[station_id] if b.id not in placed_ids]

            for batch in batches:
                ordered = nearest_neighbor_sequence(station, batch, end=station)
                load = sum(bin_weight(b) for b in ordered)
                start_time = ledger.vehicle_clock.get(sat.id, 0)
                route = _assemble_trip(
                    vehicle=sat,
                    vehicle_type="sat",
                    facility=station,
                    facility_type="compact-station",
                    stops=ordered,
                    stop_type="smartbin",
                    load=load,
                    start_time=start_time,
                    trip_number=ledger.next_trip(sat.id),
                    run_id=run_id,
                )
                route.target_station_id = station.id
                ledger.vehicle_clock[sat.id] = route.end_time
                ledger.record_collection(station.id, load, route.end_time)
                publish(route)

    return [b.id for bins in leftovers.values() for b in bins]


def _build_truck_routes(
    snapshot: FleetSnapshot,
    trucks: Sequence[Vehicle],
    strategy: str,
    ledger: RunLedger,
    publish: Callable[[OptimizedRoute], None],
    run_id: Optional[str],
) -> None:
    dumpyards = snapshot.dumpyards or [default_dumpyard()]
    loaded = [station for station in snapshot.stations if ledger.station_loads.get(station.id, 0.0) > 0]
    if not loaded:
        logger.info("No station holds any load; skipping truck phase")
        return

    groups = assign_stations_to_dumpyards(loaded, dumpyards)
    yards = {yard.id: yard for yard in dumpyards}
    allocation = allocate(strategy, groups, trucks, priority=lambda s: ledger.station_loads[s.id])
    max_per_trip = 1 if len(loaded) <= len(trucks) else settings.truck_max_stations_per_trip
    logger.info(f"Truck allocation ({strategy}): {allocation.counts}, up to {max_per_trip} stations per trip")

    for truck in trucks:
        for dumpyard_id, share in allocation.shares[truck.id]:
            dumpyard = yards[dumpyard_id]
            for batch in batch_stations(truck.capacity, share, ledger.station_loads, max_per_trip):
                ordered = nearest_neighbor_sequence(dumpyard, batch, end=dumpyard)
                load = sum(ledger.station_loads[s.id] for s in ordered)
                ready_at = max(ledger.station_ready_at.get(s.id, 0) for s in ordered)
                start_time = max(ledger.vehicle_clock.get(truck.id, 0), ready_at)
                route = _assemble_trip(
                    vehicle=truck,
                    vehicle_type="truck",
                    facility=dumpyard,
                    facility_type="dumpyard",
                    stops=ordered,
                    stop_type="compact-station",
                    load=load,
                    start_time=start_time,
                    trip_number=ledger.next_trip(truck.id),
                    run_id=run_id,
                )
                route.target_dumpyard_id = dumpyard.id
                ledger.vehicle_clock[truck.id] = route.end_time
                ledger.dumpyard_loads[dumpyard.id] = ledger.dumpyard_loads.get(dumpyard.id, 0.0) + load
                publish(route)


def build_provisional_routes(
    snapshot: FleetSnapshot,
    strategy: str = "standard",
    on_route_generated: RouteCallback | None = None,
    run_id: Optional[str] = None,
) -> ProvisionalPlan:
    """Plan every trip of a run with straight-line estimates. No I/O.

    Raises:
        RoutingPreconditionError: missing bins, stations or active SATs.
        ValueError: unknown allocation strategy.
    """
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown allocation strategy '{strategy}'. Expected one of: {', '.join(STRATEGIES)}")
    active_sats = _check_preconditions(snapshot)
    active_trucks = [truck for truck in snapshot.trucks if truck.is_active]

    plan = ProvisionalPlan(routes=[], ledger=RunLedger(), strategy=strategy)
    plan.ledger.station_loads = {s.id: float(s.current_level) for s in snapshot.stations}
    if not snapshot.dumpyards:
        plan.warnings.append("No dumpyards supplied; using the default central dumpyard.")

    def publish(route: OptimizedRoute) -> None:
        plan.routes.append(route)
        if on_route_generated is not None:
            on_route_generated(route, list(plan.routes))

    plan.deferred_bin_ids = _build_sat_routes(snapshot, active_sats, strategy, plan.ledger, publish, run_id)
    if active_trucks:
        _build_truck_routes(snapshot, active_trucks, strategy, plan.ledger, publish, run_id)
    else:
        plan.warnings.append("No active trucks; station to dumpyard routes were skipped.")

    for warning in plan.warnings:
        logger.warning(warning)
    logger.info(
        f"Planned {len(plan.routes)} routes ({strategy}); "
        f"{len(plan.deferred_bin_ids)} low-fill bins deferred; total time {calculate_total_time(plan.routes)} min"
    )
    return plan


@dataclass(eq=False)
class RouteRun:
    """One optimization run and its background refinement."""

    run_id: str
    generation: int
    plan: ProvisionalPlan
    task: Optional[asyncio.Task] = None
    superseded: bool = False

    @property
    def routes(self) -> List[OptimizedRoute]:
        return self.plan.routes

    @property
    def strategy(self) -> str:
        return self.plan.strategy

    @property
    def total_time(self) -> int:
        return calculate_total_time(self.routes)

    @property
    def status(self) -> str:
        if self.superseded:
            return "superseded"
        if self.task is not None and not self.task.done():
            return "refining"
        return "complete"

    def is_current(self) -> bool:
        return not self.superseded

    def supersede(self) -> None:
        self.superseded = True
        if self.task is not None and not self.task.done():
            self.task.cancel()

    async def wait_refined(self) -> List[OptimizedRoute]:
        """Wait for background refinement to settle (or be cancelled)."""
        if self.task is not None:
            await asyncio.wait({self.task})
        return self.routes


def _log_refinement_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Route refinement crashed", exc_info=exc)


class RouteRunner:
    """Owns run generations so a newer run always wins over a stale one."""

    def __init__(self, max_tracked_runs: int | None = None) -> None:
        self._generation = 0
        self._current: Optional[RouteRun] = None
        self._runs: "OrderedDict[str, RouteRun]" = OrderedDict()
        self._max_tracked_runs = max_tracked_runs or settings.max_tracked_runs

    @property
    def current(self) -> Optional[RouteRun]:
        return self._current

    def get(self, run_id: str) -> Optional[RouteRun]:
        return self._runs.get(run_id)

    async def start(
        self,
        snapshot: FleetSnapshot,
        *,
        strategy: str = "standard",
        on_route_generated: RouteCallback | None = None,
        on_route_refined: RouteCallback | None = None,
        resolver: RouteResolver | None = None,
        refine: bool = True,
    ) -> RouteRun:
        run_id = uuid.uuid4().hex[:12]
        plan = build_provisional_routes(snapshot, strategy, on_route_generated, run_id=run_id)

        self._generation += 1
        run = RouteRun(run_id=run_id, generation=self._generation, plan=plan)
        if self._current is not None:
            logger.info(f"Run {run.run_id} supersedes run {self._current.run_id}")
            self._current.supersede()
        self._current = run
        self._runs[run.run_id] = run
        while len(self._runs) > self._max_tracked_runs:
            self._runs.popitem(last=False)

        if refine and run.routes:
            run.task = asyncio.create_task(self._refine(run, resolver, on_route_refined))
            run.task.add_done_callback(_log_refinement_failure)
        return run

    async def _refine(
        self,
        run: RouteRun,
        resolver: RouteResolver | None,
        on_route_refined: RouteCallback | None,
    ) -> None:
        owned = resolver is None
        active = resolver if resolver is not None else RoadRouteResolver()

        def is_current() -> bool:
            return run.is_current() and run.generation == self._generation

        def notify(route: OptimizedRoute) -> None:
            if on_route_refined is not None:
                on_route_refined(route, list(run.routes))

        try:
            settled = await refine_routes(run.routes, active, on_refined=notify, is_current=is_current)
            refined = sum(1 for route in run.routes if route.refinement_status is RefinementStatus.REFINED)
            logger.info(f"Run {run.run_id}: {settled} routes settled, {refined} on road network")
        finally:
            if owned:
                await active.aclose()


default_runner = RouteRunner()


async def generate_optimized_routes(
    snapshot: FleetSnapshot,
    *,
    strategy: str = "standard",
    on_route_generated: RouteCallback | None = None,
    on_route_refined: RouteCallback | None = None,
    resolver: RouteResolver | None = None,
    runner: RouteRunner | None = None,
    refine: bool = True,
) -> RouteRun:
    """Plan a run and start refining it in the background.

    The returned run already holds every provisional route; ``routes`` keeps
    changing in place while refinement proceeds.
    """
    return await (runner or default_runner).start(
        snapshot,
        strategy=strategy,
        on_route_generated=on_route_generated,
        on_route_refined=on_route_refined,
        resolver=resolver,
        refine=refine,
    )
