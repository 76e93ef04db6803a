import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from lately.models import PlatformConnection
from lately.services.platform_adapter import (
    DateWindow,
    PlatformRejectedError,
    PlatformUnavailableError,
    UnsupportedPlatformError,
    build_default_registry,
)
from lately.services.square_sync_service import SquareAdapter
from lately.shared.tokens import encrypt_token
from tests.conftest import NOW

BASE_URL = "https://square.test/v2"

LOCATIONS = {"locations": [{"id": "L0", "status": "INACTIVE"}, {"id": "L1", "status": "ACTIVE"}]}

BOOKING_1 = {
    "id": "bk-1",
    "start_at": "2026-03-10T17:00:00Z",
    "status": "ACCEPTED",
    "customer_note": "Jane",
    "seller_note": "Prefers firm pressure",
    "appointment_segments": [
        {
            "duration_minutes": 60,
            "service_variation_id": "VAR1",
            "service_variation": {"name": "Swedish Massage", "price_money": {"amount": 12000}},
        }
    ],
}
BOOKING_2 = {
    "id": "bk-2",
    "start_at": "2026-03-11T18:30:00Z",
    "status": "PENDING",
    "appointment_segments": [{"duration_minutes": 45, "service_variation_id": "VAR2"}],
}
BOOKING_3 = {"id": "bk-3", "start_at": "2026-03-12T16:00:00Z", "status": "CANCELLED_BY_SELLER"}

CATALOG = {
    "objects": [
        {
            "type": "ITEM",
            "item_data": {
                "name": "Massage",
                "description": "Full body relaxation",
                "category_name": "Spa",
                "variations": [
                    {"id": "VAR1", "item_variation_data": {"name": "Swedish Massage", "price_money": {"amount": 12000}}}
                ],
            },
        },
        {
            "type": "ITEM",
            "item_data": {
                "name": "Brows",
                "description": "Lifted, shaped brows",
                "variations": [
                    {"id": "VAR2", "item_variation_data": {"name": "Brow Lamination", "price_money": {"amount": 7000}}}
                ],
            },
        },
    ]
}


def square_handler(calls, overrides=None):
    overrides = overrides or {}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        calls.append((request.method, path, dict(request.url.params)))
        if path in overrides:
            return overrides[path](request)
        if path == "/v2/locations":
            return httpx.Response(200, json=LOCATIONS)
        if path == "/v2/bookings":
            if request.url.params.get("cursor") == "page-2":
                return httpx.Response(200, json={"bookings": [BOOKING_2]})
            return httpx.Response(200, json={"bookings": [BOOKING_1], "cursor": "page-2"})
        if path == "/v2/bookings/search":
            return httpx.Response(200, json={"bookings": [BOOKING_2, BOOKING_3]})
        if path == "/v2/catalog/list":
            return httpx.Response(200, json=CATALOG)
        return httpx.Response(404, json={"errors": [{"code": "NOT_FOUND"}]})

    return handler


def make_adapter(handler, max_retries=2):
    return SquareAdapter(
        base_url=BASE_URL,
        max_retries=max_retries,
        backoff_seconds=0,
        transport=httpx.MockTransport(handler),
    )


def connection(token="sq-access-token"):
    return PlatformConnection(provider_id=1, platform="square", access_token=token, platform_user_id="MERCHANT1")


def fetch(adapter, conn=None):
    window = DateWindow.around_today("America/Los_Angeles", 1, 7, now=NOW)
    return asyncio.run(adapter.fetch(1, conn or connection(encrypt_token("sq-access-token")), window))


def test_window_is_anchored_on_operating_date():
    window = DateWindow.around_today("America/Los_Angeles", 1, 7, now=NOW)

    assert window.start == datetime(2026, 3, 9, 7, 0, tzinfo=timezone.utc)
    assert window.end == datetime(2026, 3, 17, 7, 0, tzinfo=timezone.utc)


def test_fetch_merges_pages_and_search_results():
    calls = []
    appointments = fetch(make_adapter(square_handler(calls)))

    assert [a.platform_appointment_id for a in appointments] == ["bk-1", "bk-2", "bk-3"]
    list_calls = [c for c in calls if c[1] == "/v2/bookings"]
    assert len(list_calls) == 2
    assert all(params["location_id"] == "L1" for _, _, params in list_calls)


def test_fetch_normalizes_bookings():
    appointments = {a.platform_appointment_id: a for a in fetch(make_adapter(square_handler([])))}

    massage = appointments["bk-1"]
    assert massage.service_name == "Swedish Massage"
    assert massage.duration_minutes == 60
    assert massage.price == 120.0
    assert massage.status == "accepted"
    assert massage.customer_name == "Jane"
    assert massage.customer_note == "Jane"
    assert massage.notes == "Prefers firm pressure"
    assert massage.start_at == datetime(2026, 3, 10, 17, 0, tzinfo=timezone.utc)
    assert massage.platform_data["service_description"] == "Full body relaxation"
    assert massage.platform_data["service_category"] == "Spa"

    brows = appointments["bk-2"]
    assert brows.service_name == "Brow Lamination"
    assert brows.duration_minutes == 45
    assert brows.price == 70.0
    assert brows.customer_name == "Square Customer"

    bare = appointments["bk-3"]
    assert bare.service_name == "Square Service"
    assert bare.duration_minutes == 60
    assert bare.price is None
    assert bare.status == "cancelled_by_seller"


def test_requests_carry_auth_headers():
    seen = []

    def handler(request):
        seen.append(request.headers)
        return square_handler([])(request)

    fetch(make_adapter(handler))

    assert seen
    assert all(h["Authorization"] == "Bearer sq-access-token" for h in seen)
    assert all("Square-Version" in h for h in seen)


def test_catalog_failure_is_not_fatal():
    calls = []
    adapter = make_adapter(
        square_handler(calls, {"/v2/catalog/list": lambda request: httpx.Response(500, json={})})
    )

    appointments = {a.platform_appointment_id: a for a in fetch(adapter)}

    assert len(appointments) == 3
    assert appointments["bk-1"].service_name == "Swedish Massage"
    assert appointments["bk-1"].platform_data["service_description"] is None
    assert appointments["bk-2"].service_name == "Square Service"
    assert len([c for c in calls if c[1] == "/v2/catalog/list"]) == 3


def test_search_rejection_falls_back_to_list_results():
    adapter = make_adapter(
        square_handler([], {"/v2/bookings/search": lambda request: httpx.Response(403, json={"errors": []})})
    )

    assert [a.platform_appointment_id for a in fetch(adapter)] == ["bk-1", "bk-2"]


def test_no_locations_returns_nothing():
    adapter = make_adapter(square_handler([], {"/v2/locations": lambda request: httpx.Response(200, json={})}))

    assert fetch(adapter) == []


def test_first_location_used_when_none_active():
    calls = []
    adapter = make_adapter(
        square_handler(
            calls,
            {"/v2/locations": lambda request: httpx.Response(200, json={"locations": [{"id": "L9", "status": "INACTIVE"}]})},
        )
    )

    fetch(adapter)

    assert {params["location_id"] for _, path, params in calls if path == "/v2/bookings"} == {"L9"}


def test_client_error_is_not_retried():
    calls = []
    adapter = make_adapter(
        square_handler(calls, {"/v2/locations": lambda request: httpx.Response(401, json={"errors": []})})
    )

    with pytest.raises(PlatformRejectedError) as exc_info:
        fetch(adapter)

    assert exc_info.value.status_code == 401
    assert len(calls) == 1


def test_server_errors_are_retried_then_surface():
    calls = []
    adapter = make_adapter(
        square_handler(calls, {"/v2/locations": lambda request: httpx.Response(503)}), max_retries=2
    )

    with pytest.raises(PlatformUnavailableError):
        fetch(adapter)

    assert len(calls) == 3


def test_rate_limit_then_success():
    responses = iter([httpx.Response(429), httpx.Response(200, json=LOCATIONS)])
    adapter = make_adapter(square_handler([], {"/v2/locations": lambda request: next(responses)}))

    assert len(fetch(adapter)) == 3


def test_network_errors_are_retried():
    attempts = []

    def flaky(request):
        attempts.append(request)
        if len(attempts) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(200, json=LOCATIONS)

    adapter = make_adapter(square_handler([], {"/v2/locations": flaky}))

    assert len(fetch(adapter)) == 3
    assert len(attempts) == 2


def test_undecryptable_token_is_rejected():
    with pytest.raises(PlatformRejectedError):
        fetch(make_adapter(square_handler([])), connection("not-a-fernet-token"))


def test_registry_dispatch():
    registry = build_default_registry()

    assert isinstance(registry.get("square"), SquareAdapter)
    assert registry.get("vagaro").supported is False
    assert "zenoti" in registry.platforms()
    with pytest.raises(UnsupportedPlatformError):
        registry.get("myspace")


def test_unimplemented_platform_returns_empty():
    adapter = build_default_registry().get("boulevard")
    window = DateWindow.around_today("America/Los_Angeles", 1, 7, now=NOW)

    assert asyncio.run(adapter.fetch(1, None, window)) == []
