"""Sync service - Orchestrates ingest, upsert, reconcile and materialize for one provider/platform pair"""

import asyncio
import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import SyncedAppointment, SyncRun
from ...services.notification_service import ServiceApprovalNotifier
from ...services.platform_adapter import (
    AdapterError,
    AdapterRegistry,
    ConnectionNotFoundError,
    DateWindow,
    build_default_registry,
)
from ...shared.timezone import today_in
from .classifier import CategoryClassifier
from .materializer import TimeSlotMaterializer
from .reconciler import ServiceReconciler, group_by_signature
from .repository import SyncRepository
from .schemas import ReconcileSummary, SyncResult
from .settings import SyncSettings

logger = logging.getLogger(__name__)


class ProviderNotFoundError(Exception):
    def __init__(self, provider_id: int):
        self.provider_id = provider_id
        super().__init__(f"Provider {provider_id} not found")


class SyncService:
    """Service layer for schedule sync"""

    def __init__(
        self,
        db: Session,
        settings: Optional[SyncSettings] = None,
        registry: Optional[AdapterRegistry] = None,
        reconciler: Optional[ServiceReconciler] = None,
        materializer: Optional[TimeSlotMaterializer] = None,
        notifier: Optional[ServiceApprovalNotifier] = None,
        classifier: Optional[CategoryClassifier] = None,
    ):
        self.db = db
        self.settings = settings or SyncSettings.from_env()
        self.registry = registry or build_default_registry()
        self.reconciler = reconciler or ServiceReconciler(
            self.settings,
            classifier=classifier or CategoryClassifier(self.settings),
            notifier=notifier,
        )
        self.materializer = materializer or TimeSlotMaterializer(self.settings)
        self.repo = SyncRepository()

    async def trigger_sync(
        self,
        provider_id: int,
        platform: str,
        sync_type: str = "full",
        now: Optional[datetime] = None,
    ) -> SyncResult:
        """
        Fetch from the platform, upsert into the store, then reconcile.

        Adapter errors propagate after the run is recorded as failed; the store is
        left untouched because nothing is written until the fetch completes.
        """
        adapter = self.registry.get(platform)
        if not adapter.supported:
            logger.info(f"{platform} sync is not supported yet - nothing to do for provider {provider_id}")
            return SyncResult(supported=False)

        if not self.repo.get_provider(self.db, provider_id):
            raise ProviderNotFoundError(provider_id)

        connection = self.repo.get_active_connection(self.db, provider_id, platform)
        if not connection:
            raise ConnectionNotFoundError(platform, f"no active connection for provider {provider_id}")

        run = self.repo.create_sync_run(self.db, provider_id, platform, sync_type)
        logger.info(f"Starting {sync_type} {platform} sync for provider {provider_id} (run {run.id})")

        window = DateWindow.around_today(
            self.settings.operating_timezone,
            self.settings.lookback_days,
            self.settings.lookahead_days,
            now,
        )

        try:
            raw_appointments = await adapter.fetch(provider_id, connection, window)
        except AdapterError as e:
            logger.error(f"{platform} fetch failed for provider {provider_id}: {e}")
            self.repo.finish_sync_run(self.db, run, "failed", error=str(e))
            raise
        except asyncio.CancelledError:
            self._abort_run(run, "cancelled during fetch")
            raise

        try:
            appointment_ids = self.repo.upsert_appointments(self.db, provider_id, platform, raw_appointments)
            logger.info(f"Stored {len(appointment_ids)} {platform} appointments for provider {provider_id}")

            connection.last_synced_at = datetime.utcnow()
            self.db.commit()

            today = today_in(self.settings.operating_timezone, now)
            if sync_type == "incremental":
                summary = await self.reconcile(provider_id, platform, appointment_ids, today=today)
            else:
                summary = await self.reconcile(provider_id, platform, today=today)
        except asyncio.CancelledError:
            self._abort_run(run, "cancelled during reconciliation")
            raise
        except Exception as e:
            logger.error(f"{platform} sync for provider {provider_id} failed after fetch: {e}")
            self.db.rollback()
            self.repo.finish_sync_run(self.db, run, "failed", error=str(e))
            raise

        status = "partial" if summary.failed_groups else "succeeded"
        self.repo.finish_sync_run(
            self.db,
            run,
            status,
            error=f"{summary.failed_groups} service group(s) failed" if summary.failed_groups else None,
            synced_count=len(appointment_ids),
            services_created=summary.services_created,
            slots_created=summary.time_slots_created,
        )

        logger.info(
            f"Sync run {run.id} {status}: {len(appointment_ids)} synced, "
            f"{summary.services_created} services created, {summary.time_slots_created} slots created"
        )
        return SyncResult(
            synced_count=len(appointment_ids),
            services_created=summary.services_created,
            slots_created=summary.time_slots_created,
            processed_count=summary.processed_count,
            supported=True,
            sync_run_id=run.id,
        )

    async def reconcile(
        self,
        provider_id: int,
        platform: str,
        appointment_ids: Optional[list[int]] = None,
        today: Optional[date] = None,
    ) -> ReconcileSummary:
        """
        Turn stored available appointments into services and time slots.

        appointment_ids limits the pass to those rows; None means every available
        appointment for the pair. A failing signature group is rolled back and skipped.
        """
        provider = self.repo.get_provider(self.db, provider_id)
        if not provider:
            raise ProviderNotFoundError(provider_id)

        summary = ReconcileSummary()
        if appointment_ids is not None and not appointment_ids:
            logger.info(f"No new {platform} appointments to process for provider {provider_id}")
            return summary

        today = today or today_in(self.settings.operating_timezone)
        appointments: list[SyncedAppointment] = self.repo.get_available_appointments(
            self.db, provider_id, platform, appointment_ids
        )
        groups = group_by_signature(appointments)
        logger.info(
            f"Processing {len(appointments)} {platform} appointments in {len(groups)} service groups "
            f"for provider {provider_id}"
        )

        for signature, group in groups.items():
            try:
                outcome = await self.reconciler.reconcile_group(self.db, provider, platform, signature, group)
                slots_created = self.materializer.materialize(
                    self.db, outcome.service, platform, signature.duration_minutes, group, today=today
                )
            except Exception as e:
                self.db.rollback()
                summary.failed_groups += 1
                logger.error(f"Error processing service group {signature.key} for provider {provider_id}: {e}")
                continue

            summary.processed_count += len(group)
            summary.time_slots_created += slots_created
            if outcome.created:
                summary.services_created += 1

        summary.slots_released = self.materializer.release_unavailable(self.db, provider_id, platform)

        logger.info(
            f"Processed {summary.processed_count} appointments, created {summary.services_created} services "
            f"and {summary.time_slots_created} time slots"
        )
        return summary

    def get_appointments(self, provider_id: int, platform: Optional[str] = None) -> list[SyncedAppointment]:
        return self.repo.get_appointments(self.db, provider_id, platform)

    def get_sync_runs(self, provider_id: int, limit: int = 20) -> list[SyncRun]:
        return self.repo.get_sync_runs(self.db, provider_id, limit)

    def _abort_run(self, run: SyncRun, reason: str) -> None:
        self.db.rollback()
        self.repo.finish_sync_run(self.db, run, "cancelled", error=reason)
        logger.warning(f"Sync run {run.id} {reason}")
