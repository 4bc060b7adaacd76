"""
Order status changes and the provider sync retry sweep
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from pydantic import BaseModel, Field
import httpx

from ordersync.api.deps import get_provider_transport
from ordersync.core.auth import get_current_user, require_service_caller
from ordersync.core.database import get_db
from ordersync.models import OrderStatus, User
from ordersync.services.order_status import OrderStatusService
from ordersync.services.retry_scheduler import RetryScheduler

router = APIRouter(prefix="/api", tags=["orders"])


class UpdateOrderStatusRequest(BaseModel):
    order_id: int
    status: OrderStatus
    cancel_reason: Optional[str] = Field(None, max_length=500)


@router.post("/update-order-status")
def update_order_status(
    data: UpdateOrderStatusRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    transport: Optional[httpx.BaseTransport] = Depends(get_provider_transport)
):
    """Always succeeds once the local change is saved; sync failures only show up in sync_state"""
    service = OrderStatusService(db, transport=transport)
    return service.update_status(current_user, data.order_id, data.status, data.cancel_reason)


@router.post("/retry-provider-sync")
def retry_provider_sync(
    db: Session = Depends(get_db),
    caller: dict = Depends(require_service_caller),
    transport: Optional[httpx.BaseTransport] = Depends(get_provider_transport)
):
    return RetryScheduler(db, transport=transport).run()
