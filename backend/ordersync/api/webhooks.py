"""
Inbound marketplace webhooks
"""
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import logging

from ordersync.api.rate_limit import limiter
from ordersync.core.config import settings, PROVIDER_CONFIGS
from ordersync.core.database import get_db
from ordersync.core.exceptions import OrderSyncError
from ordersync.models import Provider
from ordersync.services.webhook_processor import WebhookProcessor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


async def _receive(request: Request, db: Session, provider: Provider) -> JSONResponse:
    body = await request.body()
    signature = request.headers.get(PROVIDER_CONFIGS[provider.value]["signature_header"])
    ip_address = request.client.host if request.client else None

    processor = WebhookProcessor(db, provider)
    try:
        result = await run_in_threadpool(processor.handle, body, signature, ip_address)
    except OrderSyncError as e:
        db.rollback()
        return JSONResponse(status_code=e.status_code, content={"error": e.message})
    except Exception as e:
        db.rollback()
        logger.error(f"Unhandled error in {provider.value} webhook: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return JSONResponse(status_code=200, content=result)


@router.post("/uber-eats")
@limiter.limit(settings.WEBHOOK_RATE_LIMIT)
async def uber_eats_webhook(request: Request, db: Session = Depends(get_db)):
    return await _receive(request, db, Provider.UBER_EATS)


@router.post("/doordash")
@limiter.limit(settings.WEBHOOK_RATE_LIMIT)
async def doordash_webhook(request: Request, db: Session = Depends(get_db)):
    return await _receive(request, db, Provider.DOORDASH)
