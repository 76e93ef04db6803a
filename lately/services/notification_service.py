"""
Service Approval Notifications
Tells a provider that a synced service is waiting for approval. Delivery is best
effort: the pending service (is_available = False) is already committed, so a
failed notification is logged and never propagated.
"""

import logging
from typing import Awaitable, Callable, Optional

from ..email_service import send_service_approval_email
from ..models import Provider, Service

logger = logging.getLogger(__name__)

EMAIL_PREFERENCES = {"email", "both"}


class ServiceApprovalNotifier:
    def __init__(self, email_func: Optional[Callable[..., Awaitable[dict]]] = None):
        self.email_func = email_func or send_service_approval_email

    async def notify(
        self,
        provider: Provider,
        service: Service,
        platform: str,
        original_price: float,
        discounted_price: float,
        discount_percentage: float,
    ) -> dict:
        result = {"email_sent": False, "email_error": None}

        try:
            message = (
                f'New service "{service.name}" synced from {platform} requires your approval before going live.'
            )
            logger.info(
                f"Approval notification for {provider.business_name}: {message} "
                f"(original ${original_price:.2f}, discounted ${discounted_price:.2f}, "
                f"discount {discount_percentage}%)"
            )

            preference = provider.notification_preference or "email"
            if not provider.email or preference not in EMAIL_PREFERENCES:
                logger.debug(f"Provider {provider.id} does not receive email notifications ({preference})")
                return result

            await self.email_func(
                to=provider.email,
                business_name=provider.business_name,
                service_name=service.name,
                platform=platform,
                original_price=original_price,
                discounted_price=discounted_price,
                discount_percentage=discount_percentage,
            )
            result["email_sent"] = True
            logger.info(f"Sent approval notification for service {service.id} to {provider.email}")
        except Exception as e:
            result["email_error"] = str(e)
            logger.error(f"Failed to send approval notification for service {service.id}: {e}")

        return result
