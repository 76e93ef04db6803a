"""Connection domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class ConnectionUpsert(BaseModel):
    """Schema for storing a provider's platform credentials"""

    provider_id: int
    platform: str
    access_token: str
    refresh_token: Optional[str] = None
    token_expires_at: Optional[datetime] = None
    platform_user_id: Optional[str] = None
    platform_specific_data: Optional[dict[str, Any]] = None

    @field_validator("platform")
    @classmethod
    def normalize_platform(cls, v):
        return v.strip().lower()


class ConnectionResponse(BaseModel):
    """Schema for connection response - tokens are never returned"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    provider_id: int
    platform: str
    platform_user_id: Optional[str] = None
    is_active: bool
    token_expires_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None
