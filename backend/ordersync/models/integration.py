"""
Marketplace integrations, one row per (business, provider)
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
import enum
from ordersync.core.database import Base
from ordersync.utils.timeutils import utcnow


class Provider(str, enum.Enum):
    UBER_EATS = "uber_eats"
    DOORDASH = "doordash"


class IntegrationStatus(str, enum.Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


class Integration(Base):
    """
    Connection between a business and a marketplace store.

    Never hard-deleted: disconnecting clears `credentials_encrypted`
    and keeps the row for history.
    """
    __tablename__ = "integrations"
    __table_args__ = (
        UniqueConstraint("business_id", "provider", name="uq_integrations_business_provider"),
    )

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    provider = Column(String(30), nullable=False)
    external_store_id = Column(String(100), nullable=False, index=True)

    # Sealed blob (ordersync.core.security); never returned by read APIs
    credentials_encrypted = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=IntegrationStatus.CONNECTED.value)
    last_error = Column(Text, nullable=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    last_webhook_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
