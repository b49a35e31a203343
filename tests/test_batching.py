import random

import pytest

from conftest import make_bin, make_station
from waste_router.services.routing.batching import (
    batch_bins,
    batch_by_capacity,
    batch_stations,
    bin_weight,
    top_up_batches,
)


def test_bin_weight_uses_fill_capacity_and_density():
    assert bin_weight(make_bin("B1", 17.0, 78.0, level=80, capacity=100)) == pytest.approx(40.0)
    assert bin_weight(make_bin("B2", 17.0, 78.0, level=50, capacity=240), factor=1.0) == pytest.approx(120.0)


@pytest.mark.parametrize("seed", range(25))
def test_batches_respect_capacity_stops_and_keep_every_bin(seed):
    rng = random.Random(seed)
    bins = [
        make_bin(f"B{i}", 17.0, 78.0, level=rng.randint(0, 100), capacity=rng.choice([100, 120, 240]))
        for i in range(rng.randint(0, 80))
    ]
    capacity = 500.0

    batches = batch_bins(capacity, bins)

    for batch in batches:
        assert batch
        assert len(batch) <= 20
        assert sum(bin_weight(b) for b in batch) <= capacity
    placed = [b.id for batch in batches for b in batch]
    assert len(placed) == len(set(placed))
    assert set(placed) == {b.id for b in bins}


def test_batches_preserve_priority_order():
    bins = [make_bin(f"B{i}", 17.0, 78.0, level=100 - i) for i in range(30)]
    batches = batch_bins(10_000, bins)
    assert [b.id for batch in batches for b in batch] == [b.id for b in bins]
    assert [len(batch) for batch in batches] == [20, 10]


def test_new_batch_starts_with_violating_item():
    batches = batch_by_capacity(10, 5, [4, 4, 4, 9, 1], weight=float)
    assert batches == [[4, 4], [4], [9, 1]]


def test_oversized_item_gets_its_own_trip():
    batches = batch_by_capacity(10, 5, [3, 25, 2], weight=float)
    assert batches == [[3], [25], [2]]


def test_max_stops_must_be_positive():
    with pytest.raises(ValueError):
        batch_by_capacity(10, 0, [1], weight=float)


def test_station_batches_use_tracked_loads():
    stations = [make_station("S1", 17.0, 78.0), make_station("S2", 17.1, 78.0), make_station("S3", 17.2, 78.0)]
    loads = {"S1": 600.0, "S2": 500.0, "S3": 100.0}

    batches = batch_stations(1000.0, stations, loads, max_stops=2)

    assert [[s.id for s in batch] for batch in batches] == [["S1"], ["S2", "S3"]]


def test_top_up_fills_spare_room_without_new_trips():
    batches = [[6], [9]]
    placed = top_up_batches(batches, [3, 4, 1], capacity=10, max_stops=5, weight=float)
    assert placed == [3, 1]
    assert batches == [[6, 3, 1], [9]]
