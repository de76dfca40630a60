"""Liveness endpoints.

Both paths are excluded from the access and api stages by the health-check
filter, but are still traced.
"""

from __future__ import annotations

__all__ = ["router"]

from fastapi import APIRouter

from reqscope.api.schemas import HealthResponse

router = APIRouter()


@router.get("/health")
async def health() -> HealthResponse:
    return HealthResponse()


@router.get("/ping")
async def ping() -> HealthResponse:
    return HealthResponse()
