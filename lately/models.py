"""
Marketplace models
Providers, their platform connections, synced appointments and the bookable catalog
"""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class Provider(Base):
    __tablename__ = "service_providers"

    id = Column(Integer, primary_key=True, index=True)
    business_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    notification_preference = Column(String(20), default="email", nullable=True)  # email, push, both, none
    default_discount_percentage = Column(Float, default=0, nullable=True)
    # NULL is treated as "approval required"
    requires_service_approval = Column(Boolean, default=True, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    connections = relationship("PlatformConnection", back_populates="provider")
    services = relationship("Service", back_populates="provider")


class PlatformConnection(Base):
    """OAuth tokens and merchant identity binding a provider to one source platform"""

    __tablename__ = "provider_platform_connections"
    __table_args__ = (UniqueConstraint("provider_id", "platform", name="uq_connection_provider_platform"),)

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(Integer, ForeignKey("service_providers.id"), nullable=False, index=True)
    platform = Column(String(50), nullable=False)
    access_token = Column(Text, nullable=False)  # Encrypted
    refresh_token = Column(Text, nullable=True)  # Encrypted
    token_expires_at = Column(DateTime, nullable=True)
    platform_user_id = Column(String(255), nullable=True)  # Merchant / account id on the platform
    platform_specific_data = Column(JSON, default=dict, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    last_synced_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    provider = relationship("Provider", back_populates="connections")


class SyncedAppointment(Base):
    __tablename__ = "synced_appointments"
    __table_args__ = (
        UniqueConstraint(
            "provider_id", "platform", "platform_appointment_id", name="uq_synced_appointment_natural_key"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(Integer, ForeignKey("service_providers.id"), nullable=False, index=True)
    platform = Column(String(50), nullable=False)
    platform_appointment_id = Column(String(255), nullable=False)
    service_name = Column(String(255), nullable=True)
    appointment_date = Column(DateTime(timezone=True), nullable=False)
    duration_minutes = Column(Integer, nullable=True)
    total_amount = Column(Float, nullable=True)
    status = Column(String(50), nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)
    customer_name = Column(String(255), nullable=True)
    customer_note = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    platform_specific_data = Column(JSON, default=dict, nullable=True)
    last_synced_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, server_default=func.now())


class Category(Base):
    __tablename__ = "service_categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    icon_name = Column(String(50), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Service(Base):
    __tablename__ = "services"
    __table_args__ = (
        UniqueConstraint("provider_id", "sync_source", "platform_service_id", name="uq_service_sync_lineage"),
    )

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(Integer, ForeignKey("service_providers.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("service_categories.id"), nullable=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False, default=0)
    original_price = Column(Float, nullable=True)  # Pre-discount price
    duration_minutes = Column(Integer, nullable=False, default=60)
    is_available = Column(Boolean, default=True, nullable=False)
    # Sync lineage - both NULL for manually authored / watched services
    sync_source = Column(String(50), nullable=True)
    platform_service_id = Column(String(512), nullable=True)
    sync_metadata = Column(JSON, default=dict, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    provider = relationship("Provider", back_populates="services")
    category = relationship("Category")
    time_slots = relationship("TimeSlot", back_populates="service")


class TimeSlot(Base):
    __tablename__ = "time_slots"
    __table_args__ = (
        UniqueConstraint("service_id", "platform_appointment_id", name="uq_time_slot_appointment"),
    )

    id = Column(Integer, primary_key=True, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)  # HH:MM, operating timezone
    end_time = Column(String(5), nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    sync_source = Column(String(50), nullable=True)
    platform_appointment_id = Column(String(255), nullable=True)
    sync_metadata = Column(JSON, default=dict, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    service = relationship("Service", back_populates="time_slots")


class SyncRun(Base):
    """Audit row for each sync trigger"""

    __tablename__ = "sync_runs"

    id = Column(Integer, primary_key=True, index=True)
    provider_id = Column(Integer, ForeignKey("service_providers.id"), nullable=False, index=True)
    platform = Column(String(50), nullable=False)
    sync_type = Column(String(20), nullable=False, default="full")
    status = Column(String(20), nullable=False, default="running")  # running, succeeded, partial, failed, cancelled
    synced_count = Column(Integer, default=0, nullable=False)
    services_created = Column(Integer, default=0, nullable=False)
    slots_created = Column(Integer, default=0, nullable=False)
    error = Column(Text, nullable=True)
    started_at = Column(DateTime, default=datetime.utcnow)
    finished_at = Column(DateTime, nullable=True)
