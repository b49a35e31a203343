"""Travel-time estimates with time-of-day speed derating."""

from __future__ import annotations

from ...config import settings

MINUTES_PER_DAY = 24 * 60


def clock_minute(start_offset_min: float) -> int:
    """Minute of day at which a trip starting ``start_offset_min`` after shift start departs."""
    shift = settings.shift_start.hour * 60 + settings.shift_start.minute
    return int(shift + start_offset_min) % MINUTES_PER_DAY


def is_peak(start_offset_min: float) -> bool:
    minute = clock_minute(start_offset_min)
    return any(start <= minute < end for start, end in settings.peak_bands())


def average_speed_kmh(vehicle_type: str, start_offset_min: float = 0) -> float:
    peak = is_peak(start_offset_min)
    if vehicle_type == "truck":
        return settings.truck_peak_speed_kmh if peak else settings.truck_speed_kmh
    return settings.sat_peak_speed_kmh if peak else settings.sat_speed_kmh


def trip_minutes(distance_km: float, vehicle_type: str, start_offset_min: float = 0) -> int:
    """Whole minutes to cover ``distance_km`` at the class speed for that departure."""
    return round(distance_km / average_speed_kmh(vehicle_type, start_offset_min) * 60)
