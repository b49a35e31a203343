"""Bulk import endpoints."""

from __future__ import annotations

import logging
from zipfile import BadZipFile

from fastapi import APIRouter, HTTPException, Request, status

from ...schemas.imports import ImportResponse, RowsImportRequest
from ...schemas.routing import FleetSnapshotModel
from ...services.imports.parser import ImportResult, load_workbook_bytes, parse_rows

router = APIRouter(prefix="/imports", tags=["imports"])
logger = logging.getLogger(__name__)


def _to_response(result: ImportResult) -> ImportResponse:
    if result.total == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No valid data found.")
    return ImportResponse(
        snapshot=FleetSnapshotModel.from_domain(result.snapshot),
        counts=result.counts,
        skipped_rows=result.skipped_rows,
    )


@router.post("/rows", response_model=ImportResponse, status_code=status.HTTP_200_OK)
def import_rows(payload: RowsImportRequest) -> ImportResponse:
    return _to_response(parse_rows(payload.rows))


@router.post("/workbook", response_model=ImportResponse, status_code=status.HTTP_200_OK)
async def import_workbook(request: Request) -> ImportResponse:
    """Accept a raw .xlsx body and parse whichever layout it uses."""
    payload = await request.body()
    if not payload:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Request body is empty.")
    try:
        result = load_workbook_bytes(payload)
    except (BadZipFile, OSError, ValueError, KeyError) as exc:
        logger.warning(f"Failed to parse workbook upload: {exc}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to parse Excel file.",
        ) from exc
    return _to_response(result)
