"""Sync domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict


class SyncRequest(BaseModel):
    """Schema for triggering a sync for one provider/platform pair"""

    provider_id: int
    platform: str
    sync_type: Literal["full", "incremental"] = "full"


class ProcessRequest(BaseModel):
    """Schema for re-running reconciliation over stored appointments"""

    provider_id: int
    platform: str
    appointment_ids: Optional[list[int]] = None


class ReconcileSummary(BaseModel):
    processed_count: int = 0
    services_created: int = 0
    time_slots_created: int = 0
    slots_released: int = 0
    failed_groups: int = 0


class SyncResult(BaseModel):
    synced_count: int = 0
    services_created: int = 0
    slots_created: int = 0
    processed_count: int = 0
    supported: bool = True
    sync_run_id: Optional[int] = None


class SyncedAppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    provider_id: int
    platform: str
    platform_appointment_id: str
    service_name: Optional[str] = None
    appointment_date: datetime
    duration_minutes: Optional[int] = None
    total_amount: Optional[float] = None
    status: Optional[str] = None
    is_available: bool
    customer_name: Optional[str] = None
    customer_note: Optional[str] = None
    notes: Optional[str] = None
    platform_specific_data: Optional[dict[str, Any]] = None
    last_synced_at: Optional[datetime] = None


class SyncRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    provider_id: int
    platform: str
    sync_type: str
    status: str
    synced_count: int
    services_created: int
    slots_created: int
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
