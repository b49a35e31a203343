"""Routing endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...schemas.routing import RoutingRequest, RoutingResponse
from ...services.outputs.routing_formatter import run_to_response
from ...services.routing.service import default_runner, generate_optimized_routes

router = APIRouter(prefix="/routes", tags=["routes"])
logger = logging.getLogger(__name__)


@router.post("/optimize", response_model=RoutingResponse, status_code=status.HTTP_200_OK)
async def optimize(payload: RoutingRequest) -> RoutingResponse:
    """Plan routes and return the provisional result; refinement continues in the background."""
    try:
        run = await generate_optimized_routes(
            payload.snapshot.to_domain(),
            strategy=payload.strategy,
            refine=payload.refine,
            runner=default_runner,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception(f"Error optimizing routes: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to optimize routes: {str(exc)}"
        ) from exc
    return run_to_response(run)


@router.get("/runs/current", response_model=RoutingResponse, status_code=status.HTTP_200_OK)
def current_run() -> RoutingResponse:
    run = default_runner.current
    if run is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No route run has been started yet.")
    return run_to_response(run)


@router.get("/runs/{run_id}", response_model=RoutingResponse, status_code=status.HTTP_200_OK)
def get_run(run_id: str) -> RoutingResponse:
    """Latest state of a run, including any refinement that has completed since it started."""
    run = default_runner.get(run_id)
    if run is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Run '{run_id}' not found.")
    return run_to_response(run)
