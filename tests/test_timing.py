from datetime import time

import pytest

from waste_router.config import parse_window, settings
from waste_router.services.routing.timing import average_speed_kmh, clock_minute, is_peak, trip_minutes


def test_offsets_map_onto_shift_clock():
    assert clock_minute(0) == 6 * 60
    assert clock_minute(90) == 7 * 60 + 30
    assert clock_minute(20 * 60) == 2 * 60


def test_peak_bands_derate_speeds():
    assert not is_peak(0)
    assert is_peak(120)
    assert average_speed_kmh("sat", 0) == 25.0
    assert average_speed_kmh("sat", 120) == 18.0
    assert average_speed_kmh("truck", 0) == 35.0
    assert average_speed_kmh("truck", 11 * 60 + 30) == 25.0


def test_peak_window_end_is_exclusive(monkeypatch):
    monkeypatch.setattr(settings, "shift_start", time(11, 0))
    assert not is_peak(0)
    assert is_peak(-1)


def test_trip_minutes_rounds_to_whole_minutes():
    assert trip_minutes(25.0, "sat", 600) == 60
    assert trip_minutes(10.0, "sat", 0) == 24
    assert trip_minutes(10.0, "sat", 120) == 33


def test_parse_window_validates_format():
    assert parse_window("08:00-11:30") == (480, 690)
    with pytest.raises(ValueError):
        parse_window("0800")
    with pytest.raises(ValueError):
        parse_window("11:00-08:00")
