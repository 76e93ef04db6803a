"""
Time slot materializer
One bookable slot per synced appointment occurrence, dated in the operating timezone.
Create-if-absent only: an existing slot is never re-timed.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Service, SyncedAppointment, TimeSlot
from ...shared.timezone import as_utc, to_operating_time, today_in
from .repository import SyncRepository
from .settings import SyncSettings

logger = logging.getLogger(__name__)


class TimeSlotMaterializer:
    def __init__(self, settings: SyncSettings):
        self.settings = settings
        self.repo = SyncRepository()

    def materialize(
        self,
        db: Session,
        service: Service,
        platform: str,
        duration_minutes: int,
        appointments: list[SyncedAppointment],
        today: Optional[date] = None,
    ) -> int:
        """Returns the number of slots created"""
        today = today or today_in(self.settings.operating_timezone)
        created = 0

        for appointment in appointments:
            local_start = to_operating_time(appointment.appointment_date, self.settings.operating_timezone)
            if local_start.date() < today:
                logger.debug(f"Skipping past appointment {appointment.platform_appointment_id} ({local_start.date()})")
                continue

            if self.repo.get_time_slot(db, service.id, appointment.platform_appointment_id):
                continue

            # Duration is elapsed time; add it in UTC, then convert
            local_end = to_operating_time(
                as_utc(appointment.appointment_date) + timedelta(minutes=duration_minutes),
                self.settings.operating_timezone,
            )
            slot = TimeSlot(
                service_id=service.id,
                date=local_start.date(),
                start_time=local_start.strftime("%H:%M"),
                end_time=local_end.strftime("%H:%M"),
                is_available=appointment.is_available,
                sync_source=platform,
                platform_appointment_id=appointment.platform_appointment_id,
                sync_metadata={
                    "platform": platform,
                    "appointment_id": appointment.id,
                    "customer_name": appointment.customer_name,
                    "status": appointment.status,
                },
            )
            if self.repo.insert_time_slot(db, slot):
                created += 1
                logger.info(f"Created time slot for {service.name} on {slot.date} at {slot.start_time}")

        db.commit()
        return created

    def release_unavailable(self, db: Session, provider_id: int, platform: str) -> int:
        released = self.repo.release_unavailable_slots(db, provider_id, platform)
        if released:
            logger.info(f"Released {released} time slots whose {platform} appointments were cancelled")
        return released
