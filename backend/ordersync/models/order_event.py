from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
import enum
from ordersync.core.database import Base


class EventType(str, enum.Enum):
    PROVIDER_WEBHOOK_RECEIVED = "provider_webhook_received"
    ORDER_UPSERTED = "order_upserted"
    STATUS_CHANGED = "status_changed"
    SYNC_ATTEMPT = "provider_status_sync_attempt"
    SYNC_SUCCESS = "provider_status_sync_success"
    SYNC_FAILED = "provider_status_sync_failed"
    SYNC_SKIPPED = "provider_status_sync_skipped"
    SYNC_RETRY = "provider_status_sync_retry"
    INTEGRATION_CONNECTED = "integration_connected"
    INTEGRATION_DISCONNECTED = "integration_disconnected"


class OrderEvent(Base):
    """Append-only audit trail. Rows are never updated or deleted."""
    __tablename__ = "order_events"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(String(50), nullable=False, index=True)
    provider = Column(String(30), nullable=True)
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
