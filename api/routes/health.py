"""Health check and metrics endpoints."""

from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.services import SyncServices, get_services
from core import __version__
from core.observability.metrics import get_metrics


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    shop: str
    scheduler: Dict[str, Any]
    last_pass: Optional[Dict[str, Any]] = None


@router.get("/health", response_model=HealthResponse)
async def health_check(services: SyncServices = Depends(get_services)) -> HealthResponse:
    """Health check endpoint."""
    scheduler = services.scheduler.status()
    last_report = scheduler.pop("last_report")

    return HealthResponse(
        status="degraded" if scheduler["last_error"] else "healthy",
        timestamp=datetime.utcnow().isoformat(),
        version=__version__,
        shop=services.settings.shop,
        scheduler=scheduler,
        last_pass=last_report["summary"] if last_report else None,
    )


@router.get("/metrics")
async def metrics() -> Dict[str, Any]:
    """In-process counters for passes, materials and webhooks."""
    return get_metrics().get_summary()
