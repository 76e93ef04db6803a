"""
Service reconciler
Turns groups of synced appointments into catalog services: reuse the synced service
with the same signature, else promote a provider's watched placeholder in place,
else create a new service priced with the provider discount net of the platform fee.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import NamedTuple, Optional

from sqlalchemy.orm import Session

from ...models import Provider, Service, SyncedAppointment
from ...services.notification_service import ServiceApprovalNotifier
from .classifier import CategoryClassifier
from .repository import SyncRepository
from .settings import SyncSettings

logger = logging.getLogger(__name__)

UNKNOWN_SERVICE_NAME = "Unknown Service"
DEFAULT_DURATION_MINUTES = 60


class ServiceSignature(NamedTuple):
    """(name, duration) grouping key; `key` is what platform_service_id stores"""

    name: str
    duration_minutes: int

    @property
    def key(self) -> str:
        return f"{self.name}_{self.duration_minutes}"

    @classmethod
    def of(cls, appointment: SyncedAppointment) -> "ServiceSignature":
        return cls(
            appointment.service_name or UNKNOWN_SERVICE_NAME,
            appointment.duration_minutes or DEFAULT_DURATION_MINUTES,
        )


def group_by_signature(appointments: list[SyncedAppointment]) -> dict[ServiceSignature, list[SyncedAppointment]]:
    groups: dict[ServiceSignature, list[SyncedAppointment]] = {}
    for appointment in appointments:
        groups.setdefault(ServiceSignature.of(appointment), []).append(appointment)
    return groups


def representative_price(appointments: list[SyncedAppointment]) -> float:
    """Mean amount; missing amounts count as zero"""
    if not appointments:
        return 0.0
    return sum(a.total_amount or 0 for a in appointments) / len(appointments)


def discounted_price(original_price: float, discount_percentage: float, platform_fee_percentage: float) -> float:
    """
    price = original * (1 - max(0, discount - fee) / 100)

    The platform keeps `fee` points of the provider's discount; a discount at or below
    the fee leaves the price unchanged.
    """
    effective = max(0.0, (discount_percentage or 0) - platform_fee_percentage)
    if effective == 0:
        return original_price
    return round(original_price - (original_price * effective) / 100, 2)


@dataclass
class ReconcileOutcome:
    service: Service
    created: bool = False
    converted: bool = False


class ServiceReconciler:
    def __init__(
        self,
        settings: SyncSettings,
        classifier: Optional[CategoryClassifier] = None,
        notifier: Optional[ServiceApprovalNotifier] = None,
    ):
        self.settings = settings
        self.classifier = classifier or CategoryClassifier(settings)
        self.notifier = notifier or ServiceApprovalNotifier()
        self.repo = SyncRepository()

    async def reconcile_group(
        self,
        db: Session,
        provider: Provider,
        platform: str,
        signature: ServiceSignature,
        appointments: list[SyncedAppointment],
    ) -> ReconcileOutcome:
        existing = self.repo.get_synced_service(db, provider.id, platform, signature.key)
        if existing:
            return ReconcileOutcome(service=existing)

        watched = self.repo.get_watched_service(db, provider.id, signature.name)
        if watched:
            outcome = self._convert_watched(db, watched, platform, signature, appointments)
            if outcome:
                return outcome

        return await self._create_service(db, provider, platform, signature, appointments)

    def _convert_watched(
        self,
        db: Session,
        watched: Service,
        platform: str,
        signature: ServiceSignature,
        appointments: list[SyncedAppointment],
    ) -> Optional[ReconcileOutcome]:
        """Promote a watched placeholder, keeping its provider-authored price, duration and category"""
        logger.info(f'Found watched service "{signature.name}" - converting to synced service')
        converted = self.repo.convert_watched_service(
            db,
            watched.id,
            platform,
            signature.key,
            {
                "platform": platform,
                "created_from_appointments": True,
                "service_key": signature.key,
                "appointment_count": len(appointments),
                "was_watched_service": True,
                "converted_at": datetime.utcnow().isoformat(),
            },
        )
        if converted:
            db.refresh(watched)
            logger.info(f'Converted watched service "{signature.name}" to synced service (ID: {watched.id})')
            return ReconcileOutcome(service=watched, converted=True)

        # Lost a race: another run converted it or claimed the lineage first
        claimed = self.repo.get_synced_service(db, watched.provider_id, platform, signature.key)
        if claimed:
            return ReconcileOutcome(service=claimed)
        return None

    async def _create_service(
        self,
        db: Session,
        provider: Provider,
        platform: str,
        signature: ServiceSignature,
        appointments: list[SyncedAppointment],
    ) -> ReconcileOutcome:
        category_id = self.classifier.resolve(db, signature.name, platform)

        discount_percentage = provider.default_discount_percentage or 0
        requires_approval = provider.requires_service_approval is not False
        original_price = representative_price(appointments)
        price = discounted_price(original_price, discount_percentage, self.settings.platform_fee_percentage)

        platform_data = appointments[0].platform_specific_data or {}
        catalog_description = platform_data.get("service_description")
        description = catalog_description or f"{signature.name} - Synced from {platform}"

        service = Service(
            provider_id=provider.id,
            category_id=category_id,
            name=signature.name,
            description=description,
            price=price,
            original_price=original_price,
            duration_minutes=signature.duration_minutes,
            is_available=not requires_approval,
            sync_source=platform,
            platform_service_id=signature.key,
            sync_metadata={
                "platform": platform,
                "created_from_appointments": True,
                "service_key": signature.key,
                "appointment_count": len(appointments),
                "discount_applied": discount_percentage,
                "requires_approval": requires_approval,
                "has_catalog_description": bool(catalog_description),
            },
        )

        if not self.repo.insert_service(db, service):
            claimed = self.repo.get_synced_service(db, provider.id, platform, signature.key)
            if claimed is None:
                raise RuntimeError(f"Could not create or find synced service {platform}/{signature.key}")
            return ReconcileOutcome(service=claimed)

        logger.info(
            f"Created service: {service.name} (ID: {service.id}) - "
            f"Approval required: {requires_approval}, Discount: {discount_percentage}%"
        )

        if requires_approval:
            await self.notifier.notify(
                provider,
                service,
                platform,
                original_price=original_price,
                discounted_price=price,
                discount_percentage=discount_percentage,
            )

        return ReconcileOutcome(service=service, created=True)
