"""
Platform Adapter contract
Each source platform gets one adapter that fetches bookings over that platform's
protocol and normalizes them into RawAppointment records. Adapters are picked
from a registry keyed on the platform identifier.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, time, timedelta, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo

import httpx
from pydantic import BaseModel, Field

from ..config import (
    ADAPTER_MAX_RETRIES,
    ADAPTER_RETRY_BACKOFF_SECONDS,
    ADAPTER_TIMEOUT_SECONDS,
    OPERATING_TIMEZONE,
    SYNC_LOOKAHEAD_DAYS,
    SYNC_LOOKBACK_DAYS,
)
from ..shared.timezone import today_in

logger = logging.getLogger(__name__)


class AdapterError(Exception):
    """Base class for failures fetching from a source platform"""

    def __init__(self, platform: str, message: str):
        self.platform = platform
        super().__init__(f"{platform}: {message}")


class PlatformUnavailableError(AdapterError):
    """Network failure, timeout, rate limit or 5xx that survived every retry"""


class PlatformRejectedError(AdapterError):
    """Protocol-level rejection (bad credentials, missing scope, bad request) - never retried"""

    def __init__(self, platform: str, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(platform, message)


class ConnectionNotFoundError(AdapterError):
    """No active connection for the (provider, platform) pair"""


class UnsupportedPlatformError(AdapterError):
    """Platform identifier unknown to the registry"""


class RawAppointment(BaseModel):
    """Canonical shape every adapter normalizes platform bookings into"""

    platform_appointment_id: str
    service_name: str
    start_at: datetime
    duration_minutes: int = 60
    price: Optional[float] = None
    status: str = "confirmed"
    customer_name: Optional[str] = None
    customer_note: Optional[str] = None
    notes: Optional[str] = None
    platform_data: dict[str, Any] = Field(default_factory=dict)


class DateWindow(BaseModel):
    start: datetime
    end: datetime

    @classmethod
    def around_today(
        cls,
        tz_name: str = OPERATING_TIMEZONE,
        lookback_days: int = SYNC_LOOKBACK_DAYS,
        lookahead_days: int = SYNC_LOOKAHEAD_DAYS,
        now: Optional[datetime] = None,
    ) -> "DateWindow":
        """Window from the start of (today - lookback) to the start of (today + lookahead)"""
        zone = ZoneInfo(tz_name)
        today = today_in(tz_name, now)
        start = datetime.combine(today - timedelta(days=lookback_days), time.min, tzinfo=zone)
        end = datetime.combine(today + timedelta(days=lookahead_days), time.min, tzinfo=zone)
        return cls(start=start.astimezone(timezone.utc), end=end.astimezone(timezone.utc))


class PlatformAdapter(ABC):
    """Stateless per call: fetch(provider_id, connection, window) -> list[RawAppointment]"""

    platform: str = ""
    supported: bool = True

    def __init__(
        self,
        timeout: float = ADAPTER_TIMEOUT_SECONDS,
        max_retries: int = ADAPTER_MAX_RETRIES,
        backoff_seconds: float = ADAPTER_RETRY_BACKOFF_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.transport = transport

    @abstractmethod
    async def fetch(self, provider_id: int, connection, window: DateWindow) -> list[RawAppointment]:
        raise NotImplementedError

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def send_with_retry(
        self, client: httpx.AsyncClient, method: str, url: str, **kwargs
    ) -> httpx.Response:
        """
        Send a request, retrying network failures, 429 and 5xx with exponential backoff.

        Other 4xx responses raise PlatformRejectedError straight away.
        """
        delay = self.backoff_seconds
        attempts = self.max_retries + 1
        last_error = "no attempt made"

        for attempt in range(1, attempts + 1):
            try:
                response = await client.request(method, url, **kwargs)
            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(f"{self.platform} {method} {url} failed (attempt {attempt}/{attempts}): {last_error}")
            else:
                if response.status_code == 429 or response.status_code >= 500:
                    last_error = f"HTTP {response.status_code}"
                    logger.warning(
                        f"{self.platform} {method} {url} returned {response.status_code} "
                        f"(attempt {attempt}/{attempts})"
                    )
                elif response.status_code >= 400:
                    logger.error(f"{self.platform} rejected {method} {url}: {response.status_code} {response.text[:200]}")
                    raise PlatformRejectedError(
                        self.platform,
                        f"HTTP {response.status_code}: {response.text[:500]}",
                        status_code=response.status_code,
                    )
                else:
                    return response

            if attempt < attempts:
                await asyncio.sleep(delay)
                delay *= 2

        raise PlatformUnavailableError(self.platform, f"giving up after {attempts} attempts ({last_error})")


class NotYetImplementedAdapter(PlatformAdapter):
    """Placeholder for platforms without protocol support; yields nothing instead of failing the run"""

    supported = False

    def __init__(self, platform: str, **kwargs):
        super().__init__(**kwargs)
        self.platform = platform

    async def fetch(self, provider_id: int, connection, window: DateWindow) -> list[RawAppointment]:
        logger.info(f"{self.platform} schedule sync not yet implemented - provider {provider_id} skipped")
        return []


class AdapterRegistry:
    """Maps platform identifiers to adapter instances"""

    def __init__(self, adapters: Optional[list[PlatformAdapter]] = None):
        self._adapters: dict[str, PlatformAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: PlatformAdapter) -> None:
        self._adapters[adapter.platform] = adapter

    def get(self, platform: str) -> PlatformAdapter:
        adapter = self._adapters.get(platform)
        if adapter is None:
            raise UnsupportedPlatformError(platform, "unsupported platform")
        return adapter

    def platforms(self) -> list[str]:
        return sorted(self._adapters)


def build_default_registry(**adapter_kwargs) -> AdapterRegistry:
    from .square_sync_service import SquareAdapter

    return AdapterRegistry(
        [
            SquareAdapter(**adapter_kwargs),
            NotYetImplementedAdapter("vagaro", **adapter_kwargs),
            NotYetImplementedAdapter("boulevard", **adapter_kwargs),
            NotYetImplementedAdapter("zenoti", **adapter_kwargs),
            NotYetImplementedAdapter("setmore", **adapter_kwargs),
        ]
    )
