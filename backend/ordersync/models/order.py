from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Numeric, JSON, UniqueConstraint, Index
from sqlalchemy.sql import func
from typing import Optional
import enum
from ordersync.core.database import Base
from ordersync.models.integration import Provider
from ordersync.utils.timeutils import utcnow


class OrderStatus(str, enum.Enum):
    CREATED = "created"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SyncState(str, enum.Enum):
    PENDING = "pending"
    OK = "ok"
    ERROR = "error"


# Orders entered by staff; never pushed to a marketplace
MANUAL_SOURCES = frozenset({"manual", "phone", "whatsapp", "walk-in"})

# Order.source label -> provider. Lowercase labels come from older rows.
SOURCE_PROVIDERS = {
    "Uber Eats": Provider.UBER_EATS,
    "DoorDash": Provider.DOORDASH,
    "uber_eats": Provider.UBER_EATS,
    "doordash": Provider.DOORDASH,
}

EXTERNAL_SOURCES = tuple(SOURCE_PROVIDERS.keys())


def provider_for_source(source: Optional[str]) -> Optional[Provider]:
    if not source or source in MANUAL_SOURCES:
        return None
    return SOURCE_PROVIDERS.get(source)


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (
        UniqueConstraint("business_id", "source", "external_order_id", name="uq_orders_business_source_external"),
        Index("ix_orders_sync_retry", "sync_state", "retry_count", "updated_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)

    source = Column(String(50), nullable=False, default="manual")
    external_order_id = Column(String(100), nullable=True)

    status = Column(String(20), nullable=False, default=OrderStatus.CREATED.value)
    # Bumped on every local status change; sync results for older versions are discarded
    status_version = Column(Integer, nullable=False, default=0)
    cancellation_reason = Column(Text, nullable=True)

    customer_name = Column(String(200), nullable=True)
    customer_phone = Column(String(50), nullable=True)
    notes = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    total = Column(Numeric(10, 2), nullable=True)

    # {"raw": <provider payload>, "canonical": <order draft>}
    source_details = Column(JSON, nullable=True)

    sync_state = Column(String(20), nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    last_sync_error = Column(Text, nullable=True)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    sync_lease_until = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def provider(self) -> Optional[Provider]:
        return provider_for_source(self.source)
