"""Serializers for routing outputs."""

from __future__ import annotations

from dataclasses import asdict
from typing import Sequence

from ...schemas.routing import OptimizedRouteModel, RoutePointModel, RoutingResponse
from ..routing.models import OptimizedRoute
from ..routing.service import RouteRun


def route_to_json(route: OptimizedRoute) -> dict:
    return {
        "vehicle_id": route.vehicle_id,
        "vehicle_type": route.vehicle_type,
        "route": [asdict(point) for point in route.route],
        "total_distance": route.total_distance,
        "estimated_time": route.estimated_time,
        "start_time": route.start_time,
        "trip_number": route.trip_number,
        "load_kg": route.load_kg,
        "target_station_id": route.target_station_id,
        "target_dumpyard_id": route.target_dumpyard_id,
        "coordinates": [list(coord) for coord in route.coordinates],
        "refinement_status": route.refinement_status.value,
        "osrm_fetched": route.osrm_fetched,
        "average_speed_kmh": route.average_speed_kmh,
        "notes": list(route.notes),
    }


def routes_to_models(routes: Sequence[OptimizedRoute]) -> list[OptimizedRouteModel]:
    models = []
    for route in routes:
        payload = route_to_json(route)
        payload["route"] = [RoutePointModel(**point) for point in payload["route"]]
        payload["coordinates"] = [tuple(coord) for coord in payload["coordinates"]]
        models.append(OptimizedRouteModel(**payload))
    return models


def run_to_response(run: RouteRun) -> RoutingResponse:
    # Snapshot the list: refinement keeps mutating it in the background.
    routes = list(run.routes)
    return RoutingResponse(
        run_id=run.run_id,
        status=run.status,
        strategy=run.strategy,
        total_time=run.total_time,
        deferred_bin_ids=list(run.plan.deferred_bin_ids),
        warnings=list(run.plan.warnings),
        routes=routes_to_models(routes),
    )
