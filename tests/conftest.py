import os

# Must be set before lately.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import date, datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lately.database import Base, build_engine, get_db
from lately.domain.sync.settings import SyncSettings
from lately.main import app
from lately.models import PlatformConnection, Provider, Service, SyncedAppointment
from lately.services.platform_adapter import PlatformAdapter
from lately.shared.tokens import encrypt_token

# 2026-03-10 11:00 in Los Angeles (PDT)
NOW = datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)
TODAY = date(2026, 3, 10)


class StubAdapter(PlatformAdapter):
    """Square adapter that returns canned appointments or raises a canned error"""

    platform = "square"

    def __init__(self, appointments=None, error=None):
        super().__init__()
        self.appointments = appointments or []
        self.error = error
        self.windows = []

    async def fetch(self, provider_id, connection, window):
        self.windows.append(window)
        if self.error:
            raise self.error
        return list(self.appointments)


class RecordingNotifier:
    """Stands in for ServiceApprovalNotifier and records each call"""

    def __init__(self):
        self.calls = []

    async def notify(self, provider, service, platform, **kwargs):
        self.calls.append({"provider_id": provider.id, "service_id": service.id, "platform": platform, **kwargs})
        return {"email_sent": True, "email_error": None}


@pytest.fixture
def engine():
    test_engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def settings():
    return SyncSettings(
        platform_fee_percentage=7.0,
        operating_timezone="America/Los_Angeles",
        default_category_by_platform={"square": "Square Services", "vagaro": "Salon & Spa"},
        default_category_name="Platform Services",
        platform_icon_by_platform={"square": "credit-card"},
        default_platform_icon="calendar",
        lookback_days=1,
        lookahead_days=7,
    )


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_provider(db):
    def _make(**overrides):
        values = {
            "business_name": "Glow Studio",
            "email": "owner@glow.example",
            "notification_preference": "email",
            "default_discount_percentage": 27,
            "requires_service_approval": True,
        }
        values.update(overrides)
        provider = Provider(**values)
        db.add(provider)
        db.commit()
        db.refresh(provider)
        return provider

    return _make


@pytest.fixture
def make_connection(db):
    def _make(provider, platform="square", **overrides):
        values = {
            "provider_id": provider.id,
            "platform": platform,
            "access_token": encrypt_token("sq-access-token"),
            "platform_user_id": "MERCHANT1",
            "is_active": True,
        }
        values.update(overrides)
        connection = PlatformConnection(**values)
        db.add(connection)
        db.commit()
        db.refresh(connection)
        return connection

    return _make


@pytest.fixture
def make_appointment(db):
    counter = {"n": 0}

    def _make(provider, **overrides):
        counter["n"] += 1
        values = {
            "provider_id": provider.id,
            "platform": "square",
            "platform_appointment_id": f"bk-{counter['n']}",
            "service_name": "Swedish Massage",
            "appointment_date": datetime(2026, 3, 10, 17, 0, tzinfo=timezone.utc),
            "duration_minutes": 60,
            "total_amount": 100.0,
            "status": "accepted",
            "is_available": True,
            "customer_name": "Square Customer",
            "platform_specific_data": {},
        }
        values.update(overrides)
        appointment = SyncedAppointment(**values)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make


@pytest.fixture
def make_service(db):
    def _make(provider, **overrides):
        values = {
            "provider_id": provider.id,
            "name": "Brow Lamination",
            "price": 55.0,
            "original_price": 70.0,
            "duration_minutes": 45,
            "is_available": True,
        }
        values.update(overrides)
        service = Service(**values)
        db.add(service)
        db.commit()
        db.refresh(service)
        return service

    return _make


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
