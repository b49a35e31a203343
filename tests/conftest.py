import pytest

from waste_router.config import settings
from waste_router.models.domain import CompactStation, Dumpyard, SmartBin, Vehicle
from waste_router.services.routing.models import ResolvedPath


@pytest.fixture(autouse=True)
def no_refinement_delay(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(settings, "refinement_delay_seconds", 0.0)
    monkeypatch.setattr(settings, "osrm_backoff_seconds", 0.0)
    monkeypatch.setattr(settings, "osrm_rate_limit_backoff_seconds", 0.0)
    yield


def make_bin(bid: str, lat: float, lng: float, level: float = 80.0, capacity: float = 100.0) -> SmartBin:
    return SmartBin(id=bid, lat=lat, lng=lng, capacity=capacity, current_level=level, area="Ameerpet")


def make_station(sid: str, lat: float, lng: float, level: float = 0.0) -> CompactStation:
    return CompactStation(id=sid, lat=lat, lng=lng, capacity=20000, current_level=level, area=f"Area {sid}")


def make_dumpyard(did: str, lat: float, lng: float) -> Dumpyard:
    return Dumpyard(id=did, lat=lat, lng=lng, capacity=100000, name=f"Yard {did}")


def make_vehicle(vid: str, capacity: float, vehicle_type: str = "sat", status: str = "active") -> Vehicle:
    return Vehicle(id=vid, capacity=capacity, status=status, vehicle_type=vehicle_type)


class DummyResolver:
    """Answers every lookup with a fixed road path and records the calls."""

    def __init__(self, resolved: bool = True):
        self.resolved = resolved
        self.calls: list[list[tuple[float, float]]] = []

    async def get_route(self, coordinates):
        self.calls.append(list(coordinates))
        return ResolvedPath(
            coordinates=[*coordinates, coordinates[-1]],
            distance_km=12.34,
            duration_minutes=30.4,
            average_speed_kmh=24.4,
            resolved=self.resolved,
        )
