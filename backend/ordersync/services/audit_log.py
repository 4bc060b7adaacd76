"""Append-only order event log

Two ways to write an event:

- `record` adds the event to the caller's session, so it commits (or rolls
  back) together with the change it describes.
- `record_detached` commits through its own session. Used for webhook
  receipts, which must survive a failed upsert.
"""
from sqlalchemy.orm import Session
from ordersync.models import OrderEvent, EventType
from ordersync.core.database import SessionLocal
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)


def _build_event(
    business_id: int,
    event_type: EventType,
    order_id: Optional[int] = None,
    provider: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None
) -> OrderEvent:
    return OrderEvent(
        business_id=business_id,
        order_id=order_id,
        event_type=EventType(event_type).value,
        provider=getattr(provider, "value", provider),
        payload=payload or {}
    )


def record(
    db: Session,
    business_id: int,
    event_type: EventType,
    order_id: Optional[int] = None,
    provider: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None
) -> OrderEvent:
    """Add an event to the current transaction. The caller commits."""
    event = _build_event(business_id, event_type, order_id, provider, payload)
    db.add(event)
    return event


def record_detached(
    business_id: int,
    event_type: EventType,
    order_id: Optional[int] = None,
    provider: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None
) -> Optional[int]:
    """
    Write an event in an independent session.

    Failures are logged and swallowed: losing a diagnostic row must not
    fail the request that produced it.
    """
    log_db = SessionLocal()
    try:
        event = _build_event(business_id, event_type, order_id, provider, payload)
        log_db.add(event)
        log_db.commit()
        logger.info(f"Recorded {event.event_type} for business {business_id}")
        return event.id

    except Exception as e:
        logger.error(f"Error recording {event_type} event: {e}")
        log_db.rollback()
        return None
    finally:
        log_db.close()
