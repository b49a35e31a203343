from io import BytesIO

import pytest
from openpyxl import Workbook

from waste_router.services.imports.parser import (
    detect_lat_lng,
    is_multi_sheet,
    load_workbook_bytes,
    parse_dms_coordinates,
    parse_rows,
)


def _xlsx(sheets):
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        sheet = workbook.create_sheet(title)
        for row in rows:
            sheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def test_parse_rows_reads_every_record_kind():
    rows = [
        ["type", "id", "lat", "lng", "capacity", "level", "area"],
        ["bin", "B1", 17.41, 78.46, 120, 150, "Ameerpet"],
        ["Bin", "B2", "17.42", "78.44", "", 35],
        ["station", "S1", 17.40, 78.45, 20000, 250, "Uppal"],
        ["dumpyard", "D1", 17.30, 78.35, 0, None, "Jawaharnagar"],
        ["sat", "SAT-1", 2000, "off-duty"],
        ["truck", "TRUCK-1", "", ""],
        ["tractor", "X1", 1, 2, 3],
        ["bin"],
    ]

    result = parse_rows(rows)

    assert result.counts == {"bins": 2, "stations": 1, "dumpyards": 1, "sats": 1, "trucks": 1}
    assert result.skipped_rows == 1
    first, second = result.snapshot.bins
    assert first.current_level == 100.0
    assert first.capacity == 120
    assert second.capacity == 100
    assert second.current_level == 35.0
    assert second.area == "Unknown"
    assert result.snapshot.stations[0].current_level == 250
    assert result.snapshot.dumpyards[0].capacity == 50000
    assert result.snapshot.dumpyards[0].name == "Jawaharnagar"
    assert result.snapshot.sats[0].status == "off-duty"
    truck = result.snapshot.trucks[0]
    assert (truck.capacity, truck.status, truck.vehicle_type) == (5000, "active", "truck")


def test_unrecognised_vehicle_status_is_not_active():
    rows = [
        ["type", "id", "capacity", "status"],
        ["sat", "SAT-1", 500],
        ["sat", "SAT-9", 500, "inactive"],
        ["truck", "TRUCK-3", 16000, "Maintenance"],
        ["truck", "TRUCK-4", 16000, "In-Route"],
    ]

    result = parse_rows(rows)

    assert [(v.id, v.status) for v in result.snapshot.sats] == [("SAT-1", "active"), ("SAT-9", "off-duty")]
    assert [(v.id, v.status) for v in result.snapshot.trucks] == [("TRUCK-3", "off-duty"), ("TRUCK-4", "in-route")]
    assert [v.id for v in result.snapshot.sats if v.is_active] == ["SAT-1"]


def test_dms_coordinates_convert_to_decimal():
    lat, lng = parse_dms_coordinates("17°23'23.38\"N, 78°33'32.79\"E")
    assert lat == pytest.approx(17.389828, abs=1e-6)
    assert lng == pytest.approx(78.559108, abs=1e-6)
    south, west = parse_dms_coordinates("1°30'0\"S 2°15'0\"W")
    assert (south, west) == pytest.approx((-1.5, -2.25))
    assert parse_dms_coordinates("near the lake") is None


def test_detect_lat_lng_handles_swapped_columns():
    assert detect_lat_lng(17.4, 78.5) == (17.4, 78.5)
    assert detect_lat_lng(78.5, 17.4) == (17.4, 78.5)
    assert detect_lat_lng(51.5, -0.1) is None


def test_multi_sheet_workbook_import():
    payload = _xlsx(
        {
            "GVPs": [
                ["Locations of GVPs"],
                ["S.No", "Area", "Latitude", "Longitude", "Estimated Waste (T)"],
                [1, "Ameerpet", 17.43, 78.44, 1.2],
                [2, "Uppal", 78.56, 17.40, 3],
                [3, "Offshore", 1.0, 2.0, 1],
            ],
            "Fleet Details": [
                ["S.No", "Vehicle Type", "Make", "Payload (T)", "Count"],
                [1, "Mini Tipper", "Tata", 2, 2],
                [2, "Compactor", "Ashok Leyland", 16, 1],
            ],
            "SCTP": [
                ["S.No", "Station Name", "Coordinates"],
                [1, "Uppal SCTP", "17°23'23.38\"N, 78°33'32.79\"E"],
                [2, "Broken", "unknown"],
            ],
        }
    )

    result = load_workbook_bytes(payload)

    bins = result.snapshot.bins
    assert [b.id for b in bins] == ["GVP-1", "GVP-2"]
    assert bins[0].current_level == 60.0
    assert (bins[1].lat, bins[1].lng, bins[1].current_level) == (17.40, 78.56, 100.0)
    assert not bins[0].is_smart_bin
    assert [(v.id, v.capacity) for v in result.snapshot.sats] == [("SAT-2T-1", 2000.0), ("SAT-2T-2", 2000.0)]
    assert [(v.id, v.vehicle_type) for v in result.snapshot.trucks] == [("TRUCK-16T-1", "truck")]
    station = result.snapshot.stations[0]
    assert station.id == "SCTP-1"
    assert station.area == "Uppal SCTP"
    assert station.capacity == 20000
    assert result.skipped_rows == 2


def test_single_sheet_workbook_uses_row_parser():
    payload = _xlsx(
        {
            "Upload": [
                ["type", "id", "lat", "lng", "capacity", "level"],
                ["bin", "B1", 17.41, 78.46, 100, 70],
                ["sat", "SAT-1", 500],
            ]
        }
    )

    result = load_workbook_bytes(payload)

    assert result.counts["bins"] == 1
    assert result.counts["sats"] == 1


def test_multi_sheet_detection():
    workbook = Workbook()
    assert not is_multi_sheet(workbook)
    workbook.active.title = "GVP list"
    assert is_multi_sheet(workbook)
