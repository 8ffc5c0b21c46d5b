"""Liveness endpoint for the linecalc API."""

from datetime import UTC, datetime
from typing import Final

from fastapi import APIRouter
from pydantic import BaseModel

from linecalc.units.registry import UnitRegistry

router = APIRouter(tags=["Health"])

LINECALC_VERSION: Final = "0.1.0"


class HealthResponse(BaseModel):
    status: str
    time: str
    version: str
    unit_count: int


@router.get("/health", response_model=HealthResponse)
def get_health() -> HealthResponse:
    """Report that the service is up and the built-in unit table loaded."""
    return HealthResponse(
        status="ok",
        time=datetime.now(UTC).isoformat(),
        version=LINECALC_VERSION,
        unit_count=len(UnitRegistry.get_instance().list_units()),
    )
