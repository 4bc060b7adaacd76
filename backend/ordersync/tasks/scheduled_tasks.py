"""
Background tasks
- retry_provider_sync: Celery Beat sweep over failed outbound syncs
- sync_order_status: queued outbound sync (STATUS_SYNC_MODE=queue)
"""
import logging

from ordersync.api.deps import get_provider_transport
from ordersync.tasks.celery_app import celery_app
from ordersync.core.database import SessionLocal
from ordersync.models import Order

logger = logging.getLogger(__name__)


@celery_app.task(name="retry_provider_sync")
def retry_provider_sync():
    """Retry failed syncs that are still inside the retry budget"""
    from ordersync.services.retry_scheduler import RetryScheduler

    db = SessionLocal()
    try:
        result = RetryScheduler(db, transport=get_provider_transport()).run()
        logger.info(f"Retry sweep done: {result['processed']} processed")
        return result

    except Exception as e:
        logger.error(f"Error in retry sweep: {str(e)}", exc_info=True)
        db.rollback()
        return {"processed": 0, "results": [], "error": str(e)}
    finally:
        db.close()


@celery_app.task(name="sync_order_status")
def sync_order_status(order_id: int, status_version: int):
    """
    Push one status change to the provider.

    `status_version` is the version that was committed when the task was
    queued; if the order changed again since, this run does nothing.
    """
    from ordersync.services.status_sync import StatusSyncDispatcher

    db = SessionLocal()
    try:
        order = db.query(Order).filter(Order.id == order_id).first()
        if not order:
            logger.warning(f"Order {order_id} not found for sync")
            return {"order_id": order_id, "status": "missing"}

        outcome = StatusSyncDispatcher(db, transport=get_provider_transport()).sync(order, expected_version=status_version)
        return {"order_id": order_id, "status": outcome.status, "error": outcome.error}

    except Exception as e:
        logger.error(f"Error syncing order {order_id}: {str(e)}", exc_info=True)
        db.rollback()
        return {"order_id": order_id, "status": "error", "error": str(e)}
    finally:
        db.close()
