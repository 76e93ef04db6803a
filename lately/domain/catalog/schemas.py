"""Catalog domain schemas - Pydantic models for validation"""

import datetime as dt
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ServiceResponse(BaseModel):
    """Schema for service response"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    provider_id: int
    category_id: Optional[int] = None
    name: str
    description: Optional[str] = None
    price: float
    original_price: Optional[float] = None
    duration_minutes: int
    is_available: bool
    sync_source: Optional[str] = None
    platform_service_id: Optional[str] = None
    sync_metadata: Optional[dict[str, Any]] = None


class TimeSlotResponse(BaseModel):
    """Schema for time slot response"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    service_id: int
    date: dt.date
    start_time: str
    end_time: str
    is_available: bool
    sync_source: Optional[str] = None
    platform_appointment_id: Optional[str] = None
