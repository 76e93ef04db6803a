from datetime import datetime, timedelta, timezone

import pytest

from lately.domain.sync.router import get_sync_service
from lately.domain.sync.service import SyncService
from lately.main import app
from lately.models import PlatformConnection, TimeSlot
from lately.services.platform_adapter import (
    AdapterRegistry,
    NotYetImplementedAdapter,
    PlatformRejectedError,
    PlatformUnavailableError,
    RawAppointment,
)
from lately.shared.timezone import today_in
from lately.shared.tokens import decrypt_token
from tests.conftest import StubAdapter


@pytest.fixture
def use_adapter(db, settings, notifier):
    def _use(adapter):
        registry = AdapterRegistry([adapter, NotYetImplementedAdapter("vagaro")])
        app.dependency_overrides[get_sync_service] = lambda: SyncService(
            db, settings=settings, registry=registry, notifier=notifier
        )
        return adapter

    return _use


def upcoming(booking_id, days_ahead=1, name="Swedish Massage"):
    return RawAppointment(
        platform_appointment_id=booking_id,
        service_name=name,
        start_at=datetime.now(timezone.utc) + timedelta(days=days_ahead),
        duration_minutes=60,
        price=100.0,
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


# Sync


def test_trigger_sync(client, make_provider, make_connection, use_adapter):
    provider = make_provider()
    make_connection(provider)
    use_adapter(StubAdapter([upcoming("bk-1"), upcoming("bk-2", name="Gel Manicure")]))

    response = client.post("/sync/trigger", json={"provider_id": provider.id, "platform": "square"})

    assert response.status_code == 200
    body = response.json()
    assert body["synced_count"] == 2
    assert body["services_created"] == 2
    assert body["supported"] is True
    assert body["sync_run_id"] is not None

    runs = client.get("/sync/runs", params={"provider_id": provider.id}).json()
    assert [run["status"] for run in runs] == ["succeeded"]
    appointments = client.get("/sync/appointments", params={"provider_id": provider.id}).json()
    assert {a["platform_appointment_id"] for a in appointments} == {"bk-1", "bk-2"}


def test_trigger_sync_unsupported_platform(client, make_provider, use_adapter):
    provider = make_provider()
    use_adapter(StubAdapter([]))

    response = client.post("/sync/trigger", json={"provider_id": provider.id, "platform": "vagaro"})

    assert response.status_code == 200
    assert response.json()["supported"] is False


@pytest.mark.parametrize(
    "error,status_code",
    [
        (PlatformUnavailableError("square", "timed out"), 502),
        (PlatformRejectedError("square", "HTTP 401", status_code=401), 400),
    ],
)
def test_trigger_sync_adapter_errors(client, make_provider, make_connection, use_adapter, error, status_code):
    provider = make_provider()
    make_connection(provider)
    use_adapter(StubAdapter(error=error))

    response = client.post("/sync/trigger", json={"provider_id": provider.id, "platform": "square"})

    assert response.status_code == status_code
    assert "Sync failed" in response.json()["detail"]


def test_trigger_sync_lookup_errors(client, make_provider, use_adapter):
    provider = make_provider()
    use_adapter(StubAdapter([]))

    assert client.post("/sync/trigger", json={"provider_id": provider.id, "platform": "square"}).status_code == 404
    assert client.post("/sync/trigger", json={"provider_id": 999, "platform": "square"}).status_code == 404
    assert client.post("/sync/trigger", json={"provider_id": provider.id, "platform": "myspace"}).status_code == 400


def test_trigger_sync_rejects_unknown_sync_type(client, make_provider):
    provider = make_provider()

    response = client.post(
        "/sync/trigger", json={"provider_id": provider.id, "platform": "square", "sync_type": "weekly"}
    )

    assert response.status_code == 422


def test_process_reconciles_stored_appointments(client, make_provider, make_appointment, use_adapter):
    provider = make_provider()
    make_appointment(provider, appointment_date=datetime.now(timezone.utc) + timedelta(days=1))
    use_adapter(StubAdapter([]))

    response = client.post("/sync/process", json={"provider_id": provider.id, "platform": "square"})

    assert response.status_code == 200
    assert response.json()["processed_count"] == 1
    assert response.json()["services_created"] == 1


# Services


def test_bookable_lists_only_available_services(client, make_provider, make_service):
    provider = make_provider()
    other = make_provider(business_name="Other Spa")
    visible = make_service(provider, name="Visible")
    make_service(provider, name="Hidden", is_available=False)
    elsewhere = make_service(other, name="Elsewhere")

    everything = client.get("/services/bookable").json()
    assert {s["id"] for s in everything} == {visible.id, elsewhere.id}

    mine = client.get("/services/bookable", params={"provider_id": provider.id}).json()
    assert [s["name"] for s in mine] == ["Visible"]


def test_approve_and_reject(client, make_provider, make_service):
    provider = make_provider()
    pending = make_service(
        provider,
        name="Swedish Massage",
        is_available=False,
        sync_source="square",
        platform_service_id="Swedish Massage_60",
    )
    declined = make_service(
        provider,
        name="Gel Manicure",
        is_available=False,
        sync_source="square",
        platform_service_id="Gel Manicure_60",
    )

    listed = client.get("/services/pending", params={"provider_id": provider.id}).json()
    assert {s["id"] for s in listed} == {pending.id, declined.id}

    approved = client.post(f"/services/{pending.id}/approve")
    assert approved.status_code == 200
    assert approved.json()["is_available"] is True
    assert approved.json()["sync_metadata"]["approval_status"] == "approved"

    rejected = client.post(f"/services/{declined.id}/reject")
    assert rejected.status_code == 200
    assert rejected.json()["is_available"] is False

    assert client.get("/services/pending", params={"provider_id": provider.id}).json() == []
    bookable = client.get("/services/bookable", params={"provider_id": provider.id}).json()
    assert [s["id"] for s in bookable] == [pending.id]


def test_unknown_service(client):
    assert client.post("/services/999/approve").status_code == 404
    assert client.post("/services/999/reject").status_code == 404
    assert client.get("/services/999/time-slots").status_code == 404


# Time slots


def add_slot(db, service, day, start="10:00", is_available=True):
    slot = TimeSlot(service_id=service.id, date=day, start_time=start, end_time="11:00", is_available=is_available)
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return slot


def test_time_slots_are_upcoming_and_available(client, db, make_provider, make_service):
    provider = make_provider()
    service = make_service(provider)
    today = today_in("America/Los_Angeles")
    add_slot(db, service, today - timedelta(days=1))
    later = add_slot(db, service, today + timedelta(days=1), start="09:00")
    now_slot = add_slot(db, service, today, start="15:00")
    add_slot(db, service, today, start="16:00", is_available=False)

    slots = client.get(f"/services/{service.id}/time-slots").json()

    assert [s["id"] for s in slots] == [now_slot.id, later.id]


def test_reserve_slot(client, db, make_provider, make_service):
    provider = make_provider()
    service = make_service(provider)
    slot = add_slot(db, service, today_in("America/Los_Angeles"))

    first = client.post(f"/time-slots/{slot.id}/reserve")
    second = client.post(f"/time-slots/{slot.id}/reserve")

    assert first.status_code == 200
    assert first.json()["is_available"] is False
    assert second.status_code == 409
    assert client.post("/time-slots/999/reserve").status_code == 404


# Connections


def test_connection_lifecycle(client, db, make_provider):
    provider = make_provider()
    payload = {
        "provider_id": provider.id,
        "platform": "Square",
        "access_token": "sq-access-1",
        "refresh_token": "sq-refresh-1",
        "platform_user_id": "MERCHANT1",
    }

    created = client.put("/connections", json=payload)
    assert created.status_code == 200
    body = created.json()
    assert body["platform"] == "square"
    assert body["is_active"] is True
    assert "access_token" not in body

    stored = db.get(PlatformConnection, body["id"])
    assert stored.access_token != "sq-access-1"
    assert decrypt_token(stored.access_token) == "sq-access-1"

    updated = client.put("/connections", json={**payload, "access_token": "sq-access-2"})
    assert updated.json()["id"] == body["id"]
    db.refresh(stored)
    assert decrypt_token(stored.access_token) == "sq-access-2"

    removed = client.delete(f"/connections/{body['id']}")
    assert removed.status_code == 200
    assert removed.json()["is_active"] is False

    listed = client.get("/connections", params={"provider_id": provider.id}).json()
    assert len(listed) == 1
    assert listed[0]["is_active"] is False


def test_connection_errors(client):
    response = client.put(
        "/connections", json={"provider_id": 999, "platform": "square", "access_token": "token"}
    )
    assert response.status_code == 404
    assert client.delete("/connections/999").status_code == 404

