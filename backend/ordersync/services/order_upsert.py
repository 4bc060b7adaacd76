"""
Idempotent merge of marketplace orders into the orders table.

The (business_id, source, external_order_id) unique key is the idempotency
boundary: the row is written with INSERT ... ON CONFLICT DO UPDATE, so any
number of redeliveries of a webhook converge on one row. There is no
in-process lock.

Status rules:
- a new order starts as `created`
- an existing order keeps its status (staff progress is never reverted)
- a terminal state reported by the provider (cancelled/completed) always wins
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy import case
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from ordersync.models.order import Order, OrderStatus, SyncState
from ordersync.models.order_event import EventType
from ordersync.schemas.orders import OrderDraft
from ordersync.services import audit_log
from ordersync.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

UNIQUE_KEY = ["business_id", "source", "external_order_id"]

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass
class UpsertResult:
    order: Order
    created: bool
    previous_status: Optional[str] = None


class OrderUpsertEngine:
    def __init__(self, db: Session):
        self.db = db

    def _insert(self):
        dialect = self.db.get_bind().dialect.name
        insert = _INSERTS.get(dialect)
        if insert is None:
            raise RuntimeError(f"Upsert not supported on {dialect}")
        return insert(Order)

    def _find(self, business_id: int, source: str, external_order_id: str):
        return self.db.query(Order).filter(
            Order.business_id == business_id,
            Order.source == source,
            Order.external_order_id == external_order_id,
        )

    def upsert(self, business_id: int, draft: OrderDraft, raw: Dict[str, Any]) -> UpsertResult:
        """
        Insert or refresh the order described by `draft`.

        Does not commit. `order_upserted` is recorded only when the row is new.
        """
        existing = (
            self._find(business_id, draft.source, draft.external_order_id)
            .with_entities(Order.id, Order.status)
            .first()
        )
        created = existing is None
        previous_status = None if created else existing.status

        if draft.terminal_status is not None:
            status = draft.terminal_status.value
        elif created:
            status = OrderStatus.CREATED.value
        else:
            status = previous_status

        now = utcnow()
        values = {
            "customer_name": draft.customer_name,
            "customer_phone": draft.customer_phone,
            "notes": draft.notes,
            "description": draft.description,
            "total": draft.totals.total,
            "source_details": {
                "raw": raw,
                "canonical": draft.model_dump(mode="json"),
            },
            "updated_at": now,
        }

        stmt = self._insert().values(
            business_id=business_id,
            source=draft.source,
            external_order_id=draft.external_order_id,
            status=status,
            status_version=0,
            # Fresh from the provider, so nothing to push back yet
            sync_state=SyncState.OK.value,
            retry_count=0,
            last_synced_at=now,
            created_at=now,
            **values,
        )

        update_set = {name: stmt.excluded[name] for name in values}
        if draft.terminal_status is not None:
            table = Order.__table__
            update_set["status"] = stmt.excluded.status
            # Invalidates any in-flight outbound sync of the previous status
            moved = table.c.status != stmt.excluded.status
            update_set["status_version"] = case(
                (moved, table.c.status_version + 1),
                else_=table.c.status_version,
            )
            # The provider decided the outcome itself; nothing is left to push
            update_set["sync_state"] = case((moved, SyncState.OK.value), else_=table.c.sync_state)
            update_set["last_sync_error"] = case((moved, None), else_=table.c.last_sync_error)
            update_set["sync_lease_until"] = case((moved, None), else_=table.c.sync_lease_until)

        stmt = stmt.on_conflict_do_update(index_elements=UNIQUE_KEY, set_=update_set)
        self.db.execute(stmt)

        order = (
            self._find(business_id, draft.source, draft.external_order_id)
            .populate_existing()
            .one()
        )

        if created:
            audit_log.record(
                self.db,
                business_id=business_id,
                event_type=EventType.ORDER_UPSERTED,
                order_id=order.id,
                provider=draft.provider,
                payload={"external_order_id": draft.external_order_id, "status": order.status},
            )
            logger.info(f"Created order {order.id} from {draft.provider.value} order {draft.external_order_id}")
        elif previous_status != order.status:
            logger.info(f"Order {order.id} moved {previous_status} -> {order.status} by provider")

        return UpsertResult(order=order, created=created, previous_status=previous_status)
