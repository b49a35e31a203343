"""Routing request/response schemas."""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from ..models.domain import CompactStation, Dumpyard, FleetSnapshot, SmartBin, Vehicle


class SmartBinModel(BaseModel):
    id: str
    lat: float
    lng: float
    capacity: float = Field(100.0, gt=0)
    current_level: float = Field(0.0, ge=0, le=100, description="Fill level in percent.")
    area: str = "Unknown"
    is_smart_bin: bool = True


class CompactStationModel(BaseModel):
    id: str
    lat: float
    lng: float
    capacity: float = Field(2000.0, gt=0)
    current_level: float = Field(0.0, ge=0, description="Accumulated load in kg.")
    area: str = "Unknown"


class DumpyardModel(BaseModel):
    id: str
    lat: float
    lng: float
    capacity: float = Field(50000.0, gt=0)
    current_level: float = Field(0.0, ge=0)
    name: str = "Dumpyard"
    is_permanent: bool = False


class VehicleModel(BaseModel):
    id: str
    capacity: float = Field(..., gt=0, description="Payload in kg.")
    status: Literal["active", "off-duty", "in-route"] = "active"
    driver: str = ""


class FleetSnapshotModel(BaseModel):
    bins: List[SmartBinModel] = Field(default_factory=list)
    stations: List[CompactStationModel] = Field(default_factory=list)
    dumpyards: List[DumpyardModel] = Field(default_factory=list)
    sats: List[VehicleModel] = Field(default_factory=list)
    trucks: List[VehicleModel] = Field(default_factory=list)

    def to_domain(self) -> FleetSnapshot:
        return FleetSnapshot(
            bins=[SmartBin(**item.model_dump()) for item in self.bins],
            stations=[CompactStation(**item.model_dump()) for item in self.stations],
            dumpyards=[Dumpyard(**item.model_dump()) for item in self.dumpyards],
            sats=[Vehicle(**item.model_dump(), vehicle_type="sat") for item in self.sats],
            trucks=[Vehicle(**item.model_dump(), vehicle_type="truck") for item in self.trucks],
        )

    @classmethod
    def from_domain(cls, snapshot: FleetSnapshot) -> "FleetSnapshotModel":
        def vehicle(item: Vehicle) -> VehicleModel:
            return VehicleModel(id=item.id, capacity=item.capacity, status=item.status, driver=item.driver)

        return cls(
            bins=[SmartBinModel.model_validate(item, from_attributes=True) for item in snapshot.bins],
            stations=[CompactStationModel.model_validate(item, from_attributes=True) for item in snapshot.stations],
            dumpyards=[DumpyardModel.model_validate(item, from_attributes=True) for item in snapshot.dumpyards],
            sats=[vehicle(item) for item in snapshot.sats],
            trucks=[vehicle(item) for item in snapshot.trucks],
        )


class RoutingRequest(BaseModel):
    snapshot: FleetSnapshotModel
    strategy: Literal["standard", "balanced"] = Field(
        default="standard",
        description="'standard' keeps each station's bins on one SAT; 'balanced' deals bins evenly across SATs.",
    )
    refine: bool = Field(default=True, description="Refine straight-line estimates with OSRM in the background.")


class RoutePointModel(BaseModel):
    lat: float
    lng: float
    type: Literal["smartbin", "compact-station", "dumpyard"]
    id: str
    action: Literal["pickup", "dropoff"]


class OptimizedRouteModel(BaseModel):
    vehicle_id: str
    vehicle_type: Literal["sat", "truck"]
    route: List[RoutePointModel]
    total_distance: float
    estimated_time: int
    start_time: int
    trip_number: int
    load_kg: float
    target_station_id: Optional[str] = None
    target_dumpyard_id: Optional[str] = None
    coordinates: List[tuple[float, float]]
    refinement_status: str
    osrm_fetched: bool
    average_speed_kmh: Optional[float] = None
    notes: List[str] = Field(default_factory=list)


class RoutingResponse(BaseModel):
    run_id: str
    status: str
    strategy: str
    total_time: int
    deferred_bin_ids: List[str]
    warnings: List[str]
    routes: List[OptimizedRouteModel]
