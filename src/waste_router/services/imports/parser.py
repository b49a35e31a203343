"""Parse uploaded spreadsheets into a fleet snapshot.

Two layouts are understood: a single sheet whose rows start with a type
discriminator (``bin``, ``station``, ``dumpyard``, ``sat``, ``truck``) and
the municipal multi-sheet workbook with separate GVP, fleet and SCTP sheets.
Both parsers are pure functions over already-loaded rows or workbooks.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Iterable, List, Optional, Sequence

from openpyxl import load_workbook
from openpyxl.workbook.workbook import Workbook

from ...models.domain import CompactStation, Dumpyard, FleetSnapshot, SmartBin, Vehicle

logger = logging.getLogger(__name__)

LATITUDE_RANGE = (6.0, 40.0)
LONGITUDE_RANGE = (65.0, 100.0)
HEADER_SCAN_ROWS = 5
VEHICLE_STATUSES = ("active", "off-duty", "in-route")

GVP_SHEET_NAMES = ("Sample Data", "GVPs", "GVP", "Locations of GVPs", "Dustbins", "Bins")
FLEET_SHEET_NAMES = ("Fleet Details", "Fleet", "Vehicles", "Fleet Data")
SCTP_SHEET_NAMES = ("SCTP", "Stations", "Transfer Stations", "Compact Stations")
MULTI_SHEET_HINTS = ("sample", "gvp", "fleet", "sctp")

_DMS_PATTERN = re.compile(
    r"(\d+)°(\d+)'([\d.]+)\"([NS]),?\s*(\d+)°(\d+)'([\d.]+)\"([EW])"
)


@dataclass(slots=True)
class ImportResult:
    snapshot: FleetSnapshot = field(default_factory=FleetSnapshot)
    skipped_rows: int = 0

    @property
    def counts(self) -> dict[str, int]:
        return {
            "bins": len(self.snapshot.bins),
            "stations": len(self.snapshot.stations),
            "dumpyards": len(self.snapshot.dumpyards),
            "sats": len(self.snapshot.sats),
            "trucks": len(self.snapshot.trucks),
        }

    @property
    def total(self) -> int:
        return sum(self.counts.values())


def _to_float(value: Any, default: float) -> float:
    """Parse a numeric cell; blanks, junk and zero fall back to ``default``."""
    try:
        parsed = float(str(value).strip())
    except (TypeError, ValueError):
        return default
    if parsed != parsed or parsed == 0:
        return default
    return parsed


def _to_int(value: Any, default: int) -> int:
    return int(_to_float(value, default))


def _cell(row: Sequence[Any], index: int) -> Any:
    return row[index] if index < len(row) else None


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _fill_percent(value: Any) -> float:
    return max(0.0, min(100.0, float(_to_int(value, 0))))


def parse_dms_coordinates(text: str) -> Optional[tuple[float, float]]:
    """Parse ``17°23'23.38"N, 78°33'32.79"E`` into decimal (lat, lng)."""
    match = _DMS_PATTERN.search(text)
    if not match:
        return None
    lat_deg, lat_min, lat_sec, lat_dir, lng_deg, lng_min, lng_sec, lng_dir = match.groups()
    lat = float(lat_deg) + float(lat_min) / 60 + float(lat_sec) / 3600
    lng = float(lng_deg) + float(lng_min) / 60 + float(lng_sec) / 3600
    if lat_dir == "S":
        lat = -lat
    if lng_dir == "W":
        lng = -lng
    return lat, lng


def detect_lat_lng(first: float, second: float) -> Optional[tuple[float, float]]:
    """Decide which of two columns is latitude from the regional value ranges."""

    def in_range(value: float, bounds: tuple[float, float]) -> bool:
        return bounds[0] <= value <= bounds[1]

    if in_range(first, LATITUDE_RANGE) and in_range(second, LONGITUDE_RANGE):
        return first, second
    if in_range(second, LATITUDE_RANGE) and in_range(first, LONGITUDE_RANGE):
        return second, first
    return None


def parse_rows(rows: Sequence[Sequence[Any]]) -> ImportResult:
    """Parse a single discriminator-keyed sheet; the first row is a header."""
    result = ImportResult()
    snapshot = result.snapshot

    for row in rows[1:]:
        if not row or len(row) < 2:
            continue
        kind = _text(row[0]).lower()
        if kind in ("bin", "smartbin") and len(row) >= 5:
            snapshot.bins.append(
                SmartBin(
                    id=_text(row[1]),
                    lat=_to_float(row[2], 0.0),
                    lng=_to_float(row[3], 0.0),
                    capacity=_to_int(row[4], 100),
                    current_level=_fill_percent(_cell(row, 5)),
                    area=_text(_cell(row, 6), "Unknown"),
                )
            )
        elif kind in ("station", "compact", "compactstation") and len(row) >= 5:
            snapshot.stations.append(
                CompactStation(
                    id=_text(row[1]),
                    lat=_to_float(row[2], 0.0),
                    lng=_to_float(row[3], 0.0),
                    capacity=_to_int(row[4], 2000),
                    current_level=_to_int(_cell(row, 5), 0),
                    area=_text(_cell(row, 6), "Unknown"),
                )
            )
        elif kind == "dumpyard" and len(row) >= 5:
            snapshot.dumpyards.append(
                Dumpyard(
                    id=_text(row[1]),
                    lat=_to_float(row[2], 0.0),
                    lng=_to_float(row[3], 0.0),
                    capacity=_to_int(row[4], 50000),
                    current_level=_to_int(_cell(row, 5), 0),
                    name=_text(_cell(row, 6), "Dumpyard"),
                )
            )
        elif kind in ("sat", "truck") and len(row) >= 3:
            status = _text(_cell(row, 3), "active").lower()
            if status not in VEHICLE_STATUSES:
                logger.info(f"Vehicle {_text(row[1])} has status {status!r}; treating it as off-duty")
                status = "off-duty"
            vehicle = Vehicle(
                id=_text(row[1]),
                capacity=_to_int(row[2], 500 if kind == "sat" else 5000),
                status=status,
                vehicle_type=kind,
            )
            (snapshot.sats if kind == "sat" else snapshot.trucks).append(vehicle)
        else:
            result.skipped_rows += 1

    return result


def _sheet_rows(workbook: Workbook, sheet_name: str) -> List[tuple]:
    return [row for row in workbook[sheet_name].iter_rows(values_only=True)]


def _find_sheet(workbook: Workbook, candidates: Iterable[str]) -> Optional[str]:
    lowered = [name.lower() for name in candidates]
    for sheet_name in workbook.sheetnames:
        if any(name in sheet_name.lower() for name in lowered):
            return sheet_name
    return None


def _header_index(rows: Sequence[Sequence[Any]], keywords: Sequence[str]) -> int:
    for idx, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        if row and any(keyword in str(cell).lower() for cell in row if cell is not None for keyword in keywords):
            return idx
    return 0


def _parse_gvp_rows(rows: Sequence[Sequence[Any]], result: ImportResult) -> None:
    header = _header_index(rows, ("longitude", "latitude"))
    for i in range(header + 1, len(rows)):
        row = rows[i]
        if not row or len(row) < 4:
            continue
        try:
            first, second = float(row[2]), float(row[3])
        except (TypeError, ValueError):
            result.skipped_rows += 1
            continue
        coords = detect_lat_lng(first, second)
        if coords is None:
            logger.warning(f"Skipping GVP row {i}: coordinates out of range ({first}, {second})")
            result.skipped_rows += 1
            continue
        estimated_waste = _to_float(_cell(row, 4), 1.0)
        result.snapshot.bins.append(
            SmartBin(
                id=f"GVP-{_text(row[0]) or i}",
                lat=coords[0],
                lng=coords[1],
                capacity=100,
                current_level=float(min(100, round(estimated_waste * 50))),
                area=_text(row[1]),
                is_smart_bin=False,
            )
        )


def _parse_fleet_rows(rows: Sequence[Sequence[Any]], result: ImportResult) -> None:
    header = _header_index(rows, ("vehicle", "payload"))
    for i in range(header + 1, len(rows)):
        row = rows[i]
        if not row or len(row) < 4:
            continue
        vehicle_kind = _text(row[1]).lower()
        if not vehicle_kind:
            result.skipped_rows += 1
            continue
        payload_tonnes = _to_float(row[3], 4.0)
        capacity_kg = payload_tonnes * 1000
        count = _to_int(_cell(row, 4), 1)
        is_truck = capacity_kg >= 16000 or not any(tag in vehicle_kind for tag in ("mini", "tipper", "sat"))
        prefix = "TRUCK" if is_truck else "SAT"
        for n in range(count):
            vehicle = Vehicle(
                id=f"{prefix}-{payload_tonnes:g}T-{n + 1}",
                capacity=capacity_kg,
                status="active",
                vehicle_type="truck" if is_truck else "sat",
            )
            (result.snapshot.trucks if is_truck else result.snapshot.sats).append(vehicle)


def _parse_sctp_rows(rows: Sequence[Sequence[Any]], result: ImportResult) -> None:
    header = _header_index(rows, ("station", "coordinate"))
    for i in range(header + 1, len(rows)):
        row = rows[i]
        if not row or len(row) < 3:
            continue
        station_name = _text(row[1])
        coord_text = _text(row[2])
        if not station_name or not coord_text:
            continue
        coords = parse_dms_coordinates(coord_text)
        if coords is None:
            result.skipped_rows += 1
            continue
        result.snapshot.stations.append(
            CompactStation(
                id=f"SCTP-{_text(row[0]) or i}",
                lat=coords[0],
                lng=coords[1],
                capacity=20000,
                current_level=0,
                area=station_name,
            )
        )


def parse_workbook(workbook: Workbook) -> ImportResult:
    """Parse the multi-sheet GVP / fleet / SCTP workbook layout."""
    result = ImportResult()
    for names, parse in (
        (GVP_SHEET_NAMES, _parse_gvp_rows),
        (FLEET_SHEET_NAMES, _parse_fleet_rows),
        (SCTP_SHEET_NAMES, _parse_sctp_rows),
    ):
        sheet_name = _find_sheet(workbook, names)
        if sheet_name is not None:
            parse(_sheet_rows(workbook, sheet_name), result)
    return result


def is_multi_sheet(workbook: Workbook) -> bool:
    names = [name.lower() for name in workbook.sheetnames]
    return len(names) > 1 or any(hint in name for name in names for hint in MULTI_SHEET_HINTS)


def load_workbook_bytes(payload: bytes) -> ImportResult:
    """Load an .xlsx upload and dispatch to the matching layout parser."""
    workbook = load_workbook(BytesIO(payload), data_only=True)
    try:
        if is_multi_sheet(workbook):
            result = parse_workbook(workbook)
        else:
            result = parse_rows(_sheet_rows(workbook, workbook.sheetnames[0]))
    finally:
        workbook.close()
    logger.info(f"Imported {result.counts} ({result.skipped_rows} rows skipped)")
    return result
