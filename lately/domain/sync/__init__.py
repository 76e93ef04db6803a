"""Sync domain - Pulls platform bookings and reconciles them into services and time slots"""

from .classifier import CategoryClassifier, CategoryRule
from .materializer import TimeSlotMaterializer
from .reconciler import ServiceReconciler, ServiceSignature, discounted_price
from .router import router
from .service import ProviderNotFoundError, SyncService
from .settings import SyncSettings

__all__ = [
    "CategoryClassifier",
    "CategoryRule",
    "ProviderNotFoundError",
    "ServiceReconciler",
    "ServiceSignature",
    "SyncService",
    "SyncSettings",
    "TimeSlotMaterializer",
    "discounted_price",
    "router",
]
