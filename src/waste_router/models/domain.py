"""Domain models for collection points, facilities and the fleet."""

from dataclasses import dataclass, field
from typing import List, Literal

VehicleStatus = Literal["active", "off-duty", "in-route"]
VehicleType = Literal["sat", "truck"]


@dataclass(slots=True)
class SmartBin:
    """A garbage vulnerable point; ``current_level`` is a fill percentage."""

    id: str
    lat: float
    lng: float
    capacity: float
    current_level: float
    area: str = "Unknown"
    is_smart_bin: bool = True


@dataclass(slots=True)
class CompactStation:
    """Secondary collection and transfer point that SATs unload into."""

    id: str
    lat: float
    lng: float
    capacity: float
    current_level: float = 0.0
    area: str = "Unknown"


@dataclass(slots=True)
class Dumpyard:
    id: str
    lat: float
    lng: float
    capacity: float
    current_level: float = 0.0
    name: str = "Dumpyard"
    is_permanent: bool = False


@dataclass(slots=True)
class Vehicle:
    id: str
    capacity: float
    status: VehicleStatus = "active"
    vehicle_type: VehicleType = "sat"
    driver: str = ""

    @property
    def is_active(self) -> bool:
        return self.status == "active"


@dataclass(slots=True)
class FleetSnapshot:
    """Everything one optimization run reads. Never mutated by the optimizer."""

    bins: List[SmartBin] = field(default_factory=list)
    stations: List[CompactStation] = field(default_factory=list)
    dumpyards: List[Dumpyard] = field(default_factory=list)
    sats: List[Vehicle] = field(default_factory=list)
    trucks: List[Vehicle] = field(default_factory=list)
