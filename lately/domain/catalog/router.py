"""Catalog router - FastAPI endpoints for bookable services and time slots"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...database import get_db
from .schemas import ServiceResponse, TimeSlotResponse
from .service import CatalogService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/services", tags=["Services"])
time_slots_router = APIRouter(prefix="/time-slots", tags=["Time Slots"])


def get_catalog_service(db: Session = Depends(get_db)) -> CatalogService:
    """Dependency injection for CatalogService"""
    return CatalogService(db)


@router.get("/bookable", response_model=list[ServiceResponse])
async def list_bookable_services(
    provider_id: Optional[int] = Query(None),
    service: CatalogService = Depends(get_catalog_service),
):
    """Services consumers can book right now"""
    return service.list_bookable_services(provider_id)


@router.get("/pending", response_model=list[ServiceResponse])
async def list_pending_services(
    provider_id: int = Query(...),
    service: CatalogService = Depends(get_catalog_service),
):
    """Synced services waiting for the provider's approval"""
    return service.list_pending_services(provider_id)


@router.post("/{service_id}/approve", response_model=ServiceResponse)
async def approve_service(service_id: int, service: CatalogService = Depends(get_catalog_service)):
    return service.approve_service(service_id)


@router.post("/{service_id}/reject", response_model=ServiceResponse)
async def reject_service(service_id: int, service: CatalogService = Depends(get_catalog_service)):
    return service.reject_service(service_id)


@router.get("/{service_id}/time-slots", response_model=list[TimeSlotResponse])
async def get_service_time_slots(service_id: int, service: CatalogService = Depends(get_catalog_service)):
    return service.get_time_slots(service_id)


@router.get("/{service_id}", response_model=ServiceResponse)
async def get_service(service_id: int, service: CatalogService = Depends(get_catalog_service)):
    return service.get_service(service_id)


@time_slots_router.post("/{slot_id}/reserve", response_model=TimeSlotResponse)
async def reserve_time_slot(slot_id: int, service: CatalogService = Depends(get_catalog_service)):
    """Mark a slot as booked by a consumer"""
    return service.reserve_time_slot(slot_id)
