"""
Periodic re-attempt of failed outbound syncs.

Budget: an order is retried while retry_count < SYNC_RETRY_MAX_ATTEMPTS and
its last update is inside the trailing SYNC_RETRY_WINDOW_HOURS. Orders past
either bound stay in `error` until someone changes their status again.

A sweep first claims its rows (FOR UPDATE SKIP LOCKED plus a short
sync_lease_until lease), so overlapping sweeps never process the same order.
"""
import httpx
import logging
from datetime import timedelta
from typing import Optional, Dict, Any, List

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ordersync.core.config import settings
from ordersync.models import Order, SyncState, EventType, EXTERNAL_SOURCES
from ordersync.services.status_sync import StatusSyncDispatcher
from ordersync.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


class RetryScheduler:
    def __init__(
        self,
        db: Session,
        transport: Optional[httpx.BaseTransport] = None,
        max_attempts: Optional[int] = None,
        window_hours: Optional[int] = None,
        lease_seconds: Optional[int] = None
    ):
        self.db = db
        self.dispatcher = StatusSyncDispatcher(db, transport=transport)
        self.max_attempts = max_attempts if max_attempts is not None else settings.SYNC_RETRY_MAX_ATTEMPTS
        self.window_hours = window_hours if window_hours is not None else settings.SYNC_RETRY_WINDOW_HOURS
        self.lease_seconds = lease_seconds if lease_seconds is not None else settings.SYNC_RETRY_LEASE_SECONDS

    def eligible_query(self, now=None):
        now = now or utcnow()
        cutoff = now - timedelta(hours=self.window_hours)
        return (
            self.db.query(Order)
            .filter(
                Order.sync_state == SyncState.ERROR.value,
                Order.source.in_(EXTERNAL_SOURCES),
                Order.retry_count < self.max_attempts,
                Order.updated_at > cutoff,
                or_(Order.sync_lease_until.is_(None), Order.sync_lease_until < now),
            )
            .order_by(Order.updated_at)
        )

    def claim(self) -> List[int]:
        """Lease every eligible order to this sweep and return their ids"""
        now = utcnow()
        rows = (
            self.eligible_query(now)
            .with_entities(Order.id)
            .with_for_update(skip_locked=True)
            .all()
        )
        ids = [row.id for row in rows]

        if ids:
            (
                self.db.query(Order)
                .filter(Order.id.in_(ids))
                .update(
                    {
                        Order.sync_lease_until: now + timedelta(seconds=self.lease_seconds),
                        # the lease is not an order change; keep the retry window where it is
                        Order.updated_at: Order.updated_at,
                    },
                    synchronize_session=False,
                )
            )
        self.db.commit()
        return ids

    def run(self) -> Dict[str, Any]:
        """
        One sweep.

        Returns:
            {"processed": N, "results": [{"id": ..., "status": "synced" | "failed"}]}
        """
        ids = self.claim()
        results = []

        for order_id in ids:
            order = self.db.query(Order).filter(Order.id == order_id).first()
            if order is None:
                continue

            attempt = order.retry_count + 1
            logger.info(f"Retrying sync for order {order.id} ({order.source}), attempt {attempt}")
            try:
                outcome = self.dispatcher.sync(
                    order,
                    attempt_event=EventType.SYNC_RETRY,
                    attempt_payload={"attempt": attempt},
                )
            except Exception as e:
                # the lease runs out on its own; the next sweep picks the order up again
                logger.error(f"Retry of order {order_id} aborted: {e}")
                self.db.rollback()
                results.append({"id": order_id, "status": "failed"})
                continue
            results.append({"id": order_id, "status": "synced" if outcome.ok else "failed"})

        if results:
            logger.info(f"Retry sweep processed {len(results)} order(s)")
        return {"processed": len(results), "results": results}
