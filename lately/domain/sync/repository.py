"""Sync repository - Database operations for synced appointments, synced services and slots"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models import (
    Category,
    PlatformConnection,
    Provider,
    Service,
    SyncedAppointment,
    SyncRun,
    TimeSlot,
)
from ...services.platform_adapter import RawAppointment

logger = logging.getLogger(__name__)

NATURAL_KEY = ["provider_id", "platform", "platform_appointment_id"]

# Everything except the natural key is last-write-wins
UPSERT_COLUMNS = [
    "service_name",
    "appointment_date",
    "duration_minutes",
    "total_amount",
    "status",
    "is_available",
    "customer_name",
    "customer_note",
    "notes",
    "platform_specific_data",
    "last_synced_at",
]

UNAVAILABLE_STATUS_MARKERS = ("cancel", "declined", "no_show", "noshow")


def status_is_available(status: Optional[str]) -> bool:
    """Cancelled, declined and no-show appointments cannot back a bookable slot"""
    normalized = (status or "").lower()
    return not any(marker in normalized for marker in UNAVAILABLE_STATUS_MARKERS)


def _dialect_insert(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upsert not supported for dialect {dialect}")


class SyncRepository:
    """Repository for sync database operations"""

    # Synced appointment store

    @staticmethod
    def upsert_appointments(
        db: Session, provider_id: int, platform: str, appointments: list[RawAppointment]
    ) -> list[int]:
        """
        Insert or update appointments keyed by (provider, platform, native id).
        Returns the stored row ids for the batch.
        """
        if not appointments:
            return []

        synced_at = datetime.utcnow()
        rows: dict[str, dict] = {}
        # Duplicates inside one batch collapse to the last occurrence
        for appointment in appointments:
            payload = appointment.model_dump(mode="json")
            rows[appointment.platform_appointment_id] = {
                "provider_id": provider_id,
                "platform": platform,
                "platform_appointment_id": appointment.platform_appointment_id,
                "service_name": appointment.service_name,
                "appointment_date": appointment.start_at.astimezone(timezone.utc),
                "duration_minutes": appointment.duration_minutes,
                "total_amount": appointment.price,
                "status": appointment.status,
                "is_available": status_is_available(appointment.status),
                "customer_name": appointment.customer_name,
                "customer_note": appointment.customer_note,
                "notes": appointment.notes,
                "platform_specific_data": payload["platform_data"],
                "last_synced_at": synced_at,
            }

        insert = _dialect_insert(db)
        # Fixed key order so overlapping runs lock rows in the same sequence
        ordered = [rows[key] for key in sorted(rows)]
        stmt = insert(SyncedAppointment).values(ordered)
        stmt = stmt.on_conflict_do_update(
            index_elements=NATURAL_KEY,
            set_={column: stmt.excluded[column] for column in UPSERT_COLUMNS},
        )
        db.execute(stmt)
        db.commit()

        stored = (
            db.query(SyncedAppointment.id)
            .filter(
                SyncedAppointment.provider_id == provider_id,
                SyncedAppointment.platform == platform,
                SyncedAppointment.platform_appointment_id.in_(list(rows)),
            )
            .all()
        )
        return [row.id for row in stored]

    @staticmethod
    def get_appointments(
        db: Session, provider_id: int, platform: Optional[str] = None
    ) -> list[SyncedAppointment]:
        query = db.query(SyncedAppointment).filter(SyncedAppointment.provider_id == provider_id)
        if platform:
            query = query.filter(SyncedAppointment.platform == platform)
        return query.order_by(SyncedAppointment.appointment_date.asc(), SyncedAppointment.id.asc()).all()

    @staticmethod
    def get_available_appointments(
        db: Session, provider_id: int, platform: str, appointment_ids: Optional[list[int]] = None
    ) -> list[SyncedAppointment]:
        query = db.query(SyncedAppointment).filter(
            SyncedAppointment.provider_id == provider_id,
            SyncedAppointment.platform == platform,
            SyncedAppointment.is_available.is_(True),
        )
        if appointment_ids:
            query = query.filter(SyncedAppointment.id.in_(appointment_ids))
        return query.order_by(SyncedAppointment.appointment_date.asc(), SyncedAppointment.id.asc()).all()

    # Providers and connections

    @staticmethod
    def get_provider(db: Session, provider_id: int) -> Optional[Provider]:
        return db.query(Provider).filter(Provider.id == provider_id).first()

    @staticmethod
    def get_active_connection(db: Session, provider_id: int, platform: str) -> Optional[PlatformConnection]:
        return (
            db.query(PlatformConnection)
            .filter(
                PlatformConnection.provider_id == provider_id,
                PlatformConnection.platform == platform,
                PlatformConnection.is_active.is_(True),
            )
            .first()
        )

    @staticmethod
    def get_active_connections(db: Session) -> list[PlatformConnection]:
        return (
            db.query(PlatformConnection)
            .filter(PlatformConnection.is_active.is_(True))
            .order_by(PlatformConnection.id.asc())
            .all()
        )

    # Catalog lookups used by the reconciler

    @staticmethod
    def get_synced_service(db: Session, provider_id: int, platform: str, signature_key: str) -> Optional[Service]:
        return (
            db.query(Service)
            .filter(
                Service.provider_id == provider_id,
                Service.sync_source == platform,
                Service.platform_service_id == signature_key,
            )
            .first()
        )

    @staticmethod
    def get_watched_service(db: Session, provider_id: int, name: str) -> Optional[Service]:
        return (
            db.query(Service)
            .filter(
                Service.provider_id == provider_id,
                Service.name == name,
                Service.sync_source.is_(None),
            )
            .order_by(Service.id.asc())
            .first()
        )

    @staticmethod
    def convert_watched_service(
        db: Session, service_id: int, platform: str, signature_key: str, sync_metadata: dict
    ) -> bool:
        """
        Stamp lineage onto a watched service. Only matches while sync_source is still NULL,
        so a second conversion (ours or a concurrent run's) updates nothing.
        """
        try:
            with db.begin_nested():
                updated = (
                    db.query(Service)
                    .filter(Service.id == service_id, Service.sync_source.is_(None))
                    .update(
                        {
                            Service.sync_source: platform,
                            Service.platform_service_id: signature_key,
                            Service.sync_metadata: sync_metadata,
                        },
                        synchronize_session=False,
                    )
                )
        except IntegrityError:
            logger.info(f"Service lineage {platform}/{signature_key} already claimed, not converting {service_id}")
            return False
        db.commit()
        return updated == 1

    @staticmethod
    def insert_service(db: Session, service: Service) -> bool:
        """Insert a synced service; False when the lineage already exists"""
        try:
            with db.begin_nested():
                db.add(service)
                db.flush()
        except IntegrityError:
            logger.info(f"Synced service {service.sync_source}/{service.platform_service_id} already exists")
            return False
        db.commit()
        return True

    @staticmethod
    def get_or_create_category(db: Session, name: str, description: str, icon_name: str) -> Category:
        """Insert-or-fetch on the unique category name"""
        category = db.query(Category).filter(Category.name == name).first()
        if category:
            return category

        category = Category(name=name, description=description, icon_name=icon_name)
        try:
            with db.begin_nested():
                db.add(category)
                db.flush()
        except IntegrityError:
            logger.info(f"Category {name} created concurrently, using existing row")
            return db.query(Category).filter(Category.name == name).one()
        db.commit()
        logger.info(f"Created new category: {name} (ID: {category.id})")
        return category

    # Time slots

    @staticmethod
    def get_time_slot(db: Session, service_id: int, platform_appointment_id: str) -> Optional[TimeSlot]:
        return (
            db.query(TimeSlot)
            .filter(
                TimeSlot.service_id == service_id,
                TimeSlot.platform_appointment_id == platform_appointment_id,
            )
            .first()
        )

    @staticmethod
    def insert_time_slot(db: Session, slot: TimeSlot) -> bool:
        """Insert a synced slot; False when (service, appointment) already has one"""
        try:
            with db.begin_nested():
                db.add(slot)
                db.flush()
        except IntegrityError:
            logger.debug(f"Time slot for appointment {slot.platform_appointment_id} already exists")
            return False
        return True

    @staticmethod
    def release_unavailable_slots(db: Session, provider_id: int, platform: str) -> int:
        """Flag slots unavailable when their originating appointment no longer is"""
        unavailable_ids = select(SyncedAppointment.platform_appointment_id).where(
            SyncedAppointment.provider_id == provider_id,
            SyncedAppointment.platform == platform,
            SyncedAppointment.is_available.is_(False),
        )
        service_ids = select(Service.id).where(
            Service.provider_id == provider_id, Service.sync_source == platform
        )
        released = (
            db.query(TimeSlot)
            .filter(
                TimeSlot.service_id.in_(service_ids),
                TimeSlot.sync_source == platform,
                TimeSlot.is_available.is_(True),
                TimeSlot.platform_appointment_id.in_(unavailable_ids),
            )
            .update({TimeSlot.is_available: False}, synchronize_session=False)
        )
        db.commit()
        return released

    # Sync run audit

    @staticmethod
    def create_sync_run(db: Session, provider_id: int, platform: str, sync_type: str) -> SyncRun:
        run = SyncRun(provider_id=provider_id, platform=platform, sync_type=sync_type, status="running")
        db.add(run)
        db.commit()
        db.refresh(run)
        return run

    @staticmethod
    def finish_sync_run(db: Session, run: SyncRun, status: str, error: Optional[str] = None, **counts) -> SyncRun:
        run.status = status
        run.error = error
        run.finished_at = datetime.utcnow()
        for key, value in counts.items():
            setattr(run, key, value)
        db.commit()
        return run

    @staticmethod
    def get_sync_runs(db: Session, provider_id: int, limit: int = 20) -> list[SyncRun]:
        return (
            db.query(SyncRun)
            .filter(SyncRun.provider_id == provider_id)
            .order_by(SyncRun.started_at.desc(), SyncRun.id.desc())
            .limit(limit)
            .all()
        )
