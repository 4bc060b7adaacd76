"""
Pushes local status changes of marketplace orders back to the marketplace.

The local status change is always committed before anything here runs, so
a provider outage can only ever leave the order with sync_state=error; it
never undoes the change itself.

Results are written with a compare-and-set on Order.status_version: if the
status moved on while the call was in flight, the result is audited but
the order's sync fields are left to the newer change.
"""
import httpx
import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from ordersync.core.exceptions import ProviderAPIError
from ordersync.models import Integration, Order, OrderStatus, SyncState, EventType, Provider
from ordersync.services import audit_log
from ordersync.services.integration_registry import IntegrationRegistry
from ordersync.services.provider_client import ProviderClient, ACCEPT, CANCEL
from ordersync.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

# ready/completed/created have no provider-side call
SYNC_ACTIONS = {
    OrderStatus.PREPARING.value: ACCEPT,
    OrderStatus.CANCELLED.value: CANCEL,
}

SYNCED = "synced"
FAILED = "failed"
SKIPPED = "skipped"
STALE = "stale"
NOT_APPLICABLE = "not_applicable"


@dataclass
class SyncOutcome:
    order_id: int
    status: str
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (SYNCED, SKIPPED)


class StatusSyncDispatcher:
    def __init__(self, db: Session, transport: Optional[httpx.BaseTransport] = None):
        self.db = db
        self.transport = transport
        self.registry = IntegrationRegistry(db)

    @staticmethod
    def needs_sync(order: Order) -> bool:
        return order.provider is not None and bool(order.external_order_id)

    @staticmethod
    def mark_pending(order: Order) -> None:
        """Optimistic state set together with the local status change. Not committed here."""
        order.sync_state = SyncState.PENDING.value
        order.last_sync_error = None

    def sync(
        self,
        order: Order,
        expected_version: Optional[int] = None,
        attempt_event: EventType = EventType.SYNC_ATTEMPT,
        attempt_payload: Optional[Dict[str, Any]] = None
    ) -> SyncOutcome:
        """
        Push `order.status` to its provider and record the result.

        Args:
            order: Order whose local change is already committed
            expected_version: status_version the caller is syncing; an order
                that has moved past it is left alone
            attempt_event: event written before calling out
            attempt_payload: payload of that event

        Returns:
            SyncOutcome; provider failures are recorded, never raised
        """
        if not self.needs_sync(order):
            return SyncOutcome(order.id, NOT_APPLICABLE)

        version = order.status_version if expected_version is None else expected_version
        if order.status_version != version:
            logger.info(f"Order {order.id} is at version {order.status_version}, skipping sync of {version}")
            return SyncOutcome(order.id, STALE)

        provider = order.provider
        status = order.status
        action = SYNC_ACTIONS.get(status)

        if action is None:
            return self._skip(order, provider, version)

        audit_log.record(
            self.db,
            business_id=order.business_id,
            event_type=attempt_event,
            order_id=order.id,
            provider=provider,
            payload={"status": status, "action": action, **(attempt_payload or {})},
        )
        # Nothing stays locked while waiting on the provider
        self.db.commit()

        order_id = order.id
        business_id = order.business_id
        external_order_id = order.external_order_id
        reason = order.cancellation_reason

        try:
            credentials = self.registry.credentials_for(business_id, provider)
            client = ProviderClient(provider, credentials, transport=self.transport)
            result = client.perform(action, external_order_id, reason=reason)
        except ProviderAPIError as e:
            return self._record_failure(order_id, business_id, provider, version, e.message)
        except Exception as e:
            logger.exception(f"Unexpected error syncing order {order_id} to {provider.value}: {e}")
            self.db.rollback()
            return self._record_failure(
                order_id, business_id, provider, version, f"Unexpected error during {provider.value} sync"
            )

        return self._record_success(order_id, business_id, provider, version, result)

    def record_failure(self, order: Order, error: str, expected_version: Optional[int] = None) -> SyncOutcome:
        """Put an order in `error` without calling out, e.g. when its sync could not be queued"""
        version = order.status_version if expected_version is None else expected_version
        return self._record_failure(order.id, order.business_id, order.provider, version, error)

    def _compare_and_set(self, order_id: int, version: int, values: Dict[str, Any]) -> bool:
        updated = (
            self.db.query(Order)
            .filter(Order.id == order_id, Order.status_version == version)
            .update(values, synchronize_session=False)
        )
        return updated == 1

    def _touch_integration(self, business_id: int, provider: Provider, values: Dict[str, Any]) -> None:
        (
            self.db.query(Integration)
            .filter(Integration.business_id == business_id, Integration.provider == provider.value)
            .update(values, synchronize_session=False)
        )

    def _skip(self, order: Order, provider: Provider, version: int) -> SyncOutcome:
        applied = self._compare_and_set(order.id, version, {
            Order.sync_state: SyncState.OK.value,
            Order.last_sync_error: None,
            Order.sync_lease_until: None,
            Order.updated_at: utcnow(),
        })
        audit_log.record(
            self.db,
            business_id=order.business_id,
            event_type=EventType.SYNC_SKIPPED,
            order_id=order.id,
            provider=provider,
            payload={"status": order.status, "reason": "no provider action for status", "stale": not applied},
        )
        self.db.commit()
        logger.info(f"No {provider.value} action for status {order.status} of order {order.id}")
        return SyncOutcome(order.id, SKIPPED if applied else STALE)

    def _record_success(
        self,
        order_id: int,
        business_id: int,
        provider: Provider,
        version: int,
        result: Dict[str, Any]
    ) -> SyncOutcome:
        now = utcnow()
        applied = self._compare_and_set(order_id, version, {
            Order.sync_state: SyncState.OK.value,
            Order.last_synced_at: now,
            Order.last_sync_error: None,
            Order.retry_count: 0,
            Order.sync_lease_until: None,
            Order.updated_at: now,
        })
        self._touch_integration(business_id, provider, {Integration.last_sync_at: now})
        audit_log.record(
            self.db,
            business_id=business_id,
            event_type=EventType.SYNC_SUCCESS,
            order_id=order_id,
            provider=provider,
            payload={**result, "stale": not applied},
        )
        self.db.commit()

        logger.info(f"Synced order {order_id} to {provider.value} ({result['action']})")
        return SyncOutcome(order_id, SYNCED if applied else STALE)

    def _record_failure(
        self,
        order_id: int,
        business_id: int,
        provider: Provider,
        version: int,
        error: str
    ) -> SyncOutcome:
        applied = self._compare_and_set(order_id, version, {
            Order.sync_state: SyncState.ERROR.value,
            Order.retry_count: Order.retry_count + 1,
            Order.last_sync_error: error,
            Order.sync_lease_until: None,
            Order.updated_at: utcnow(),
        })
        self._touch_integration(business_id, provider, {Integration.last_error: error})
        audit_log.record(
            self.db,
            business_id=business_id,
            event_type=EventType.SYNC_FAILED,
            order_id=order_id,
            provider=provider,
            payload={"error": error, "stale": not applied},
        )
        self.db.commit()

        logger.warning(f"Sync of order {order_id} to {provider.value} failed: {error}")
        return SyncOutcome(order_id, FAILED if applied else STALE, error=error)
