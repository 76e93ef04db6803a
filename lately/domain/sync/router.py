"""Sync router - FastAPI endpoints for triggering and inspecting schedule syncs"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...database import get_db
from ...services.platform_adapter import (
    AdapterError,
    ConnectionNotFoundError,
    PlatformRejectedError,
    PlatformUnavailableError,
    UnsupportedPlatformError,
)
from .schemas import (
    ProcessRequest,
    ReconcileSummary,
    SyncedAppointmentResponse,
    SyncRequest,
    SyncResult,
    SyncRunResponse,
)
from .service import ProviderNotFoundError, SyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sync", tags=["Sync"])


def get_sync_service(db: Session = Depends(get_db)) -> SyncService:
    """Dependency injection for SyncService"""
    return SyncService(db)


def _adapter_error_status(error: AdapterError) -> int:
    if isinstance(error, PlatformUnavailableError):
        return 502
    if isinstance(error, ConnectionNotFoundError):
        return 404
    if isinstance(error, (PlatformRejectedError, UnsupportedPlatformError)):
        return 400
    return 502


@router.post("/trigger", response_model=SyncResult)
async def trigger_sync(data: SyncRequest, service: SyncService = Depends(get_sync_service)):
    """Fetch a provider's bookings from a platform and reconcile them into the catalog"""
    try:
        return await service.trigger_sync(data.provider_id, data.platform, data.sync_type)
    except ProviderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except AdapterError as e:
        logger.error(f"Sync failed for provider {data.provider_id} on {data.platform}: {e}")
        raise HTTPException(status_code=_adapter_error_status(e), detail=f"Sync failed: {e}") from e


@router.post("/process", response_model=ReconcileSummary)
async def process_synced_appointments(data: ProcessRequest, service: SyncService = Depends(get_sync_service)):
    """Re-run reconciliation over already stored appointments"""
    try:
        return await service.reconcile(data.provider_id, data.platform, data.appointment_ids)
    except ProviderNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.get("/appointments", response_model=list[SyncedAppointmentResponse])
async def get_synced_appointments(
    provider_id: int = Query(...),
    platform: Optional[str] = Query(None),
    service: SyncService = Depends(get_sync_service),
):
    return service.get_appointments(provider_id, platform)


@router.get("/runs", response_model=list[SyncRunResponse])
async def get_sync_runs(
    provider_id: int = Query(...),
    limit: int = Query(20, ge=1, le=100),
    service: SyncService = Depends(get_sync_service),
):
    """Recent sync runs, newest first"""
    return service.get_sync_runs(provider_id, limit)
