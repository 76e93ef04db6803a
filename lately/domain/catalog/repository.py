"""Catalog repository - Database operations for bookable services and time slots"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Service, TimeSlot


class CatalogRepository:
    """Repository for catalog database operations"""

    @staticmethod
    def get_bookable_services(db: Session, provider_id: Optional[int] = None) -> list[Service]:
        query = db.query(Service).filter(Service.is_available.is_(True))
        if provider_id is not None:
            query = query.filter(Service.provider_id == provider_id)
        return query.order_by(Service.id.asc()).all()

    @staticmethod
    def get_unavailable_synced_services(db: Session, provider_id: int) -> list[Service]:
        return (
            db.query(Service)
            .filter(
                Service.provider_id == provider_id,
                Service.sync_source.isnot(None),
                Service.is_available.is_(False),
            )
            .order_by(Service.id.asc())
            .all()
        )

    @staticmethod
    def get_service_by_id(db: Session, service_id: int) -> Optional[Service]:
        return db.query(Service).filter(Service.id == service_id).first()

    @staticmethod
    def get_upcoming_slots(db: Session, service_id: int, today: date) -> list[TimeSlot]:
        return (
            db.query(TimeSlot)
            .filter(
                TimeSlot.service_id == service_id,
                TimeSlot.is_available.is_(True),
                TimeSlot.date >= today,
            )
            .order_by(TimeSlot.date.asc(), TimeSlot.start_time.asc())
            .all()
        )

    @staticmethod
    def get_slot_by_id(db: Session, slot_id: int) -> Optional[TimeSlot]:
        return db.query(TimeSlot).filter(TimeSlot.id == slot_id).first()

    @staticmethod
    def claim_slot(db: Session, slot_id: int) -> bool:
        """Flip a slot to unavailable; False when it was already taken"""
        updated = (
            db.query(TimeSlot)
            .filter(TimeSlot.id == slot_id, TimeSlot.is_available.is_(True))
            .update({TimeSlot.is_available: False}, synchronize_session=False)
        )
        db.commit()
        return updated == 1

    @staticmethod
    def set_service_availability(db: Session, service: Service, is_available: bool, sync_metadata: dict) -> Service:
        service.is_available = is_available
        service.sync_metadata = sync_metadata
        db.commit()
        db.refresh(service)
        return service
