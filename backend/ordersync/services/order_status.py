"""
Local status changes made by staff, and their propagation to the marketplace
"""
import httpx
import logging
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from ordersync.core.config import settings
from ordersync.core.exceptions import AuthorizationError, OrderNotFoundError
from ordersync.core.logging import log_security_event
from ordersync.models import Order, OrderStatus, EventType, User
from ordersync.services import audit_log
from ordersync.services.integration_lifecycle import can_operate
from ordersync.services.status_sync import StatusSyncDispatcher

logger = logging.getLogger(__name__)

INLINE = "inline"
QUEUE = "queue"


class OrderStatusService:
    def __init__(self, db: Session, transport: Optional[httpx.BaseTransport] = None, mode: Optional[str] = None):
        self.db = db
        self.transport = transport
        self.mode = (mode or settings.STATUS_SYNC_MODE).lower()

    def update_status(
        self,
        user: User,
        order_id: int,
        status: OrderStatus,
        cancel_reason: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Change an order's status, then sync it if the order came from a marketplace.

        The local change is committed before any provider call and is never
        undone by a sync failure.
        """
        status = OrderStatus(status)
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if order is None:
            raise OrderNotFoundError("Order not found")

        if not can_operate(self.db, order.business_id, user):
            log_security_event(
                logger,
                "authorization_denied",
                user_id=user.id,
                details={"order_id": order_id, "action": "update_order_status"},
                severity="WARNING",
            )
            raise AuthorizationError("Unauthorized")

        dispatcher = StatusSyncDispatcher(self.db, transport=self.transport)
        old_status = order.status

        order.status = status.value
        order.status_version = (order.status_version or 0) + 1
        if status == OrderStatus.CANCELLED and cancel_reason:
            order.cancellation_reason = cancel_reason

        needs_sync = dispatcher.needs_sync(order)
        if needs_sync:
            dispatcher.mark_pending(order)

        audit_log.record(
            self.db,
            business_id=order.business_id,
            event_type=EventType.STATUS_CHANGED,
            order_id=order.id,
            provider=order.provider,
            payload={"old_status": old_status, "new_status": status.value, "user_id": user.id},
        )
        self.db.commit()
        self.db.refresh(order)
        logger.info(f"Order {order.id}: {old_status} -> {status.value}")

        response = {"success": True, "order_id": order.id, "status": order.status}
        if not needs_sync:
            return response

        if self.mode == QUEUE:
            from ordersync.tasks.scheduled_tasks import sync_order_status
            try:
                sync_order_status.delay(order.id, order.status_version)
            except Exception as e:
                logger.error(f"Could not queue sync of order {order.id}: {e}")
                outcome = dispatcher.record_failure(order, "Could not queue provider sync")
                self.db.refresh(order)
                response["sync_result"] = outcome.status
            response["sync_state"] = order.sync_state
            return response

        outcome = dispatcher.sync(order)
        self.db.refresh(order)
        response["sync_state"] = order.sync_state
        response["sync_result"] = outcome.status
        return response
