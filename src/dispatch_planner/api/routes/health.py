"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok", "warehouse_id": settings.warehouse_id}


@router.get("/health/osrm", status_code=status.HTTP_200_OK)
def health_osrm() -> dict:
    """Check the OSRM service used for distance enrichment."""
    from ...services.distances.osrm_client import check_health

    if not settings.osrm_base_url:
        return {"service": "osrm", "configured": False, "healthy": False}
    return {"service": "osrm", "configured": True, "healthy": check_health()}
