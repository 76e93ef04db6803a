"""Catalog domain - Bookable services, provider approval and time slots"""

from .router import router, time_slots_router
from .service import CatalogService

__all__ = ["CatalogService", "router", "time_slots_router"]
