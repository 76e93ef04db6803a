"""Connections domain - Provider credentials for source platforms"""

from .router import router
from .service import ConnectionService

__all__ = ["ConnectionService", "router"]
