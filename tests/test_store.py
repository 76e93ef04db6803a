from datetime import datetime, timezone

import pytest

from lately.domain.sync.repository import SyncRepository, status_is_available
from lately.models import SyncedAppointment
from lately.services.platform_adapter import RawAppointment


def raw(booking_id, **overrides):
    values = {
        "platform_appointment_id": booking_id,
        "service_name": "Swedish Massage",
        "start_at": datetime(2026, 3, 10, 17, 0, tzinfo=timezone.utc),
        "duration_minutes": 60,
        "price": 100.0,
        "status": "accepted",
        "customer_name": "Square Customer",
        "platform_data": {"id": booking_id},
    }
    values.update(overrides)
    return RawAppointment(**values)


def test_upsert_twice_keeps_row_count(db, make_provider):
    provider = make_provider()
    batch = [raw("bk-1"), raw("bk-2"), raw("bk-3")]

    first_ids = SyncRepository.upsert_appointments(db, provider.id, "square", batch)
    second_ids = SyncRepository.upsert_appointments(db, provider.id, "square", batch)

    assert sorted(first_ids) == sorted(second_ids)
    assert db.query(SyncedAppointment).count() == 3


def test_upsert_writes_rows_in_native_id_order(db, make_provider):
    provider = make_provider()
    SyncRepository.upsert_appointments(db, provider.id, "square", [raw("bk-3"), raw("bk-1"), raw("bk-2")])

    stored = db.query(SyncedAppointment).order_by(SyncedAppointment.id.asc()).all()
    assert [row.platform_appointment_id for row in stored] == ["bk-1", "bk-2", "bk-3"]


def test_upsert_updates_every_field_but_the_key(db, make_provider):
    provider = make_provider()
    SyncRepository.upsert_appointments(db, provider.id, "square", [raw("bk-1")])
    SyncRepository.upsert_appointments(
        db, provider.id, "square", [raw("bk-1", status="cancelled_by_customer", price=80.0, notes="moved")]
    )
    db.expire_all()

    stored = db.query(SyncedAppointment).one()
    assert stored.platform_appointment_id == "bk-1"
    assert stored.status == "cancelled_by_customer"
    assert stored.total_amount == 80.0
    assert stored.notes == "moved"
    assert stored.is_available is False


def test_duplicate_ids_in_one_batch_collapse_to_last(db, make_provider):
    provider = make_provider()
    ids = SyncRepository.upsert_appointments(
        db, provider.id, "square", [raw("bk-1", price=50.0), raw("bk-1", price=65.0)]
    )

    assert len(ids) == 1
    assert db.query(SyncedAppointment).one().total_amount == 65.0


def test_same_native_id_on_another_platform_is_a_separate_row(db, make_provider):
    provider = make_provider()
    SyncRepository.upsert_appointments(db, provider.id, "square", [raw("bk-1")])
    SyncRepository.upsert_appointments(db, provider.id, "vagaro", [raw("bk-1")])

    assert db.query(SyncedAppointment).count() == 2


def test_empty_batch_is_a_no_op(db, make_provider):
    provider = make_provider()
    assert SyncRepository.upsert_appointments(db, provider.id, "square", []) == []


@pytest.mark.parametrize(
    "status,expected",
    [
        ("accepted", True),
        ("pending", True),
        (None, True),
        ("cancelled_by_seller", False),
        ("CANCELLED_BY_CUSTOMER", False),
        ("declined", False),
        ("no_show", False),
    ],
)
def test_status_is_available(status, expected):
    assert status_is_available(status) is expected


def test_customer_note_is_persisted(db, make_provider):
    provider = make_provider()
    SyncRepository.upsert_appointments(db, provider.id, "square", [raw("bk-1", customer_note="Running late")])
    SyncRepository.upsert_appointments(db, provider.id, "square", [raw("bk-1", customer_note="Parking at the back")])
    db.expire_all()

    assert db.query(SyncedAppointment).one().customer_note == "Parking at the back"
