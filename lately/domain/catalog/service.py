"""Catalog service - Bookable listings and the provider's approve/reject decision"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ... import config
from ...models import Service, TimeSlot
from ...shared.timezone import today_in
from .repository import CatalogRepository

logger = logging.getLogger(__name__)

APPROVED = "approved"
REJECTED = "rejected"


class CatalogService:
    """Service layer for catalog business logic"""

    def __init__(self, db: Session, operating_timezone: str = config.OPERATING_TIMEZONE):
        self.db = db
        self.operating_timezone = operating_timezone
        self.repo = CatalogRepository()

    def list_bookable_services(self, provider_id: Optional[int] = None) -> list[Service]:
        """Only services consumers may book"""
        return self.repo.get_bookable_services(self.db, provider_id)

    def list_pending_services(self, provider_id: int) -> list[Service]:
        """Synced services held back for approval that the provider has not reviewed yet"""
        return [
            service
            for service in self.repo.get_unavailable_synced_services(self.db, provider_id)
            if (service.sync_metadata or {}).get("approval_status") is None
        ]

    def get_service(self, service_id: int) -> Service:
        service = self.repo.get_service_by_id(self.db, service_id)
        if not service:
            raise HTTPException(status_code=404, detail="Service not found")
        return service

    def approve_service(self, service_id: int) -> Service:
        service = self.get_service(service_id)
        logger.info(f"Approving service {service_id} ({service.name}) for provider {service.provider_id}")
        return self._review(service, APPROVED)

    def reject_service(self, service_id: int) -> Service:
        service = self.get_service(service_id)
        logger.info(f"Rejecting service {service_id} ({service.name}) for provider {service.provider_id}")
        return self._review(service, REJECTED)

    def get_time_slots(self, service_id: int, today: Optional[date] = None) -> list[TimeSlot]:
        """Available slots dated today or later in the operating timezone"""
        self.get_service(service_id)
        today = today or today_in(self.operating_timezone)
        return self.repo.get_upcoming_slots(self.db, service_id, today)

    def reserve_time_slot(self, slot_id: int) -> TimeSlot:
        """Take a slot off the market once a consumer books it"""
        slot = self.repo.get_slot_by_id(self.db, slot_id)
        if not slot:
            raise HTTPException(status_code=404, detail="Time slot not found")

        if not self.repo.claim_slot(self.db, slot_id):
            logger.warning(f"Time slot {slot_id} is no longer available")
            raise HTTPException(status_code=409, detail="Time slot is no longer available")

        self.db.refresh(slot)
        logger.info(f"Reserved time slot {slot_id} for service {slot.service_id}")
        return slot

    def _review(self, service: Service, decision: str) -> Service:
        # Reassign the dict so the JSON column is flagged dirty
        metadata = dict(service.sync_metadata or {})
        metadata["approval_status"] = decision
        metadata["reviewed_at"] = datetime.utcnow().isoformat()
        return self.repo.set_service_availability(self.db, service, decision == APPROVED, metadata)
