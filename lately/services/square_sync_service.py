"""
Square Schedule Sync
Pulls bookings for a merchant's active location and normalizes them into RawAppointments
"""

import logging
from typing import Any, Optional

import httpx
from cryptography.fernet import InvalidToken

from ..config import SQUARE_API_VERSION, SQUARE_ENVIRONMENT
from ..shared.timezone import parse_platform_timestamp
from ..shared.tokens import decrypt_token
from .platform_adapter import (
    AdapterError,
    DateWindow,
    PlatformAdapter,
    PlatformRejectedError,
    RawAppointment,
)

logger = logging.getLogger(__name__)

if SQUARE_ENVIRONMENT == "production":
    SQUARE_API_URL = "https://connect.squareup.com/v2"
else:
    SQUARE_API_URL = "https://connect.squareupsandbox.com/v2"

DEFAULT_SERVICE_NAME = "Square Service"
DEFAULT_DURATION_MINUTES = 60


class SquareAdapter(PlatformAdapter):
    platform = "square"

    def __init__(self, base_url: str = SQUARE_API_URL, **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    def _headers(self, access_token: str) -> dict[str, str]:
        return {
            "Square-Version": SQUARE_API_VERSION,
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    async def fetch(self, provider_id: int, connection, window: DateWindow) -> list[RawAppointment]:
        try:
            access_token = decrypt_token(connection.access_token)
        except InvalidToken as e:
            raise PlatformRejectedError(self.platform, "stored access token cannot be decrypted") from e

        headers = self._headers(access_token)
        logger.info(
            f"Fetching Square bookings for provider {provider_id} "
            f"(merchant {connection.platform_user_id}) from {window.start.isoformat()} to {window.end.isoformat()}"
        )

        async with self.http_client() as client:
            location_id = await self._get_location_id(client, headers)
            if not location_id:
                logger.info(f"No Square locations for provider {provider_id}")
                return []

            bookings = await self._list_bookings(client, headers, location_id, window)
            seen = {booking.get("id") for booking in bookings}

            # Search is secondary - accounts without the scope still sync from the list results
            try:
                for booking in await self._search_bookings(client, headers, location_id, window):
                    if booking.get("id") not in seen:
                        seen.add(booking.get("id"))
                        bookings.append(booking)
            except AdapterError as e:
                logger.warning(f"Square booking search unavailable, continuing with list results: {e}")

            logger.info(f"Total unique Square bookings found: {len(bookings)}")

            try:
                by_variation_id, by_name = await self._fetch_catalog_details(client, headers)
            except AdapterError as e:
                logger.warning(f"Square catalog enrichment failed, continuing without descriptions: {e}")
                by_variation_id, by_name = {}, {}

        appointments = []
        for booking in bookings:
            appointment = self._normalize(booking, by_variation_id, by_name)
            if appointment:
                appointments.append(appointment)

        logger.info(f"Normalized {len(appointments)} Square bookings for provider {provider_id}")
        return appointments

    async def _get_location_id(self, client: httpx.AsyncClient, headers: dict) -> Optional[str]:
        """First ACTIVE location, else the first location listed"""
        response = await self.send_with_retry(client, "GET", f"{self.base_url}/locations", headers=headers)
        locations = response.json().get("locations") or []
        if not locations:
            return None

        for location in locations:
            if location.get("status") == "ACTIVE":
                return location.get("id")

        logger.warning(f"No active Square location found, using first location: {locations[0].get('id')}")
        return locations[0].get("id")

    async def _list_bookings(
        self, client: httpx.AsyncClient, headers: dict, location_id: str, window: DateWindow
    ) -> list[dict[str, Any]]:
        bookings: list[dict[str, Any]] = []
        params: dict[str, Any] = {
            "location_id": location_id,
            "start_at_min": window.start.isoformat(),
            "start_at_max": window.end.isoformat(),
        }

        while True:
            response = await self.send_with_retry(
                client, "GET", f"{self.base_url}/bookings", headers=headers, params=params
            )
            data = response.json()
            bookings.extend(data.get("bookings") or [])
            cursor = data.get("cursor")
            if not cursor:
                break
            params["cursor"] = cursor

        logger.info(f"Found {len(bookings)} Square bookings via list API")
        return bookings

    async def _search_bookings(
        self, client: httpx.AsyncClient, headers: dict, location_id: str, window: DateWindow
    ) -> list[dict[str, Any]]:
        bookings: list[dict[str, Any]] = []
        payload: dict[str, Any] = {
            "query": {
                "filter": {
                    "location_id": location_id,
                    "start_at_range": {
                        "start_at": window.start.isoformat(),
                        "end_at": window.end.isoformat(),
                    },
                }
            }
        }

        while True:
            response = await self.send_with_retry(
                client, "POST", f"{self.base_url}/bookings/search", headers=headers, json=payload
            )
            data = response.json()
            bookings.extend(data.get("bookings") or [])
            cursor = data.get("cursor")
            if not cursor:
                break
            payload["cursor"] = cursor

        logger.info(f"Found {len(bookings)} Square bookings via search API")
        return bookings

    async def _fetch_catalog_details(
        self, client: httpx.AsyncClient, headers: dict
    ) -> tuple[dict[str, dict], dict[str, dict]]:
        """Map service variations (by id and by name) to item description, category and price"""
        by_variation_id: dict[str, dict] = {}
        by_name: dict[str, dict] = {}
        params: dict[str, Any] = {"types": "ITEM"}

        while True:
            response = await self.send_with_retry(
                client, "GET", f"{self.base_url}/catalog/list", headers=headers, params=params
            )
            data = response.json()

            for item in data.get("objects") or []:
                if item.get("type") != "ITEM" or not item.get("item_data"):
                    continue
                item_data = item["item_data"]
                for variation in item_data.get("variations") or []:
                    variation_data = variation.get("item_variation_data")
                    if not variation_data:
                        continue
                    name = variation_data.get("name") or item_data.get("name")
                    detail = {
                        "name": name,
                        "description": item_data.get("description"),
                        "category": item_data.get("category_name"),
                        "price_cents": (variation_data.get("price_money") or {}).get("amount"),
                    }
                    if variation.get("id"):
                        by_variation_id[variation["id"]] = detail
                    if name:
                        by_name[name] = detail

            cursor = data.get("cursor")
            if not cursor:
                break
            params["cursor"] = cursor

        logger.info(f"Mapped {len(by_variation_id)} Square catalog variations")
        return by_variation_id, by_name

    def _normalize(
        self, booking: dict[str, Any], by_variation_id: dict[str, dict], by_name: dict[str, dict]
    ) -> Optional[RawAppointment]:
        booking_id = booking.get("id")
        start_at = parse_platform_timestamp(booking.get("start_at"))
        if not booking_id or not start_at:
            logger.warning(f"Skipping Square booking without id or start time: {booking_id}")
            return None

        segments = booking.get("appointment_segments") or [{}]
        segment = segments[0] or {}
        variation = segment.get("service_variation") or {}

        detail = by_variation_id.get(segment.get("service_variation_id") or "")
        service_name = variation.get("name") or (detail or {}).get("name") or DEFAULT_SERVICE_NAME
        if detail is None:
            detail = by_name.get(service_name)
        detail = detail or {}

        amount_cents = (variation.get("price_money") or {}).get("amount")
        if amount_cents is None:
            amount_cents = detail.get("price_cents")

        return RawAppointment(
            platform_appointment_id=str(booking_id),
            service_name=service_name,
            start_at=start_at,
            duration_minutes=segment.get("duration_minutes") or DEFAULT_DURATION_MINUTES,
            price=amount_cents / 100 if amount_cents is not None else None,
            status=(booking.get("status") or "confirmed").lower(),
            customer_name=booking.get("customer_note") or "Square Customer",
            customer_note=booking.get("customer_note"),
            notes=booking.get("seller_note"),
            platform_data={
                **booking,
                "service_description": detail.get("description"),
                "service_category": detail.get("category"),
            },
        )
