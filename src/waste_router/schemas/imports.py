"""Bulk import schemas."""

from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, Field

from .routing import FleetSnapshotModel


class RowsImportRequest(BaseModel):
    rows: List[List[Any]] = Field(..., description="Sheet rows including the header row.")


class ImportResponse(BaseModel):
    snapshot: FleetSnapshotModel
    counts: dict[str, int]
    skipped_rows: int
