"""
Connect, disconnect and list marketplace integrations of a business
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from pydantic import BaseModel, Field
from datetime import datetime

from ordersync.core.auth import get_current_user
from ordersync.core.database import get_db
from ordersync.core.exceptions import AuthorizationError
from ordersync.models import Provider, User
from ordersync.services.integration_lifecycle import IntegrationLifecycleManager, can_operate
from ordersync.services.integration_registry import IntegrationRegistry

router = APIRouter(prefix="/api", tags=["integrations"])


class ConnectIntegrationRequest(BaseModel):
    business_id: int
    provider: Provider
    external_store_id: str = Field(..., min_length=1, max_length=100)
    api_key: str = Field(..., min_length=1)
    api_secret: str = Field(..., min_length=1)


class DisconnectIntegrationRequest(BaseModel):
    business_id: int
    provider: Provider


class IntegrationView(BaseModel):
    """Integration as exposed to members. Credentials are never part of it."""
    id: int
    business_id: int
    provider: str
    external_store_id: str
    status: str
    last_error: Optional[str] = None
    last_sync_at: Optional[datetime] = None
    last_webhook_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@router.post("/connect-integration")
def connect_integration(
    data: ConnectIntegrationRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    integration = IntegrationLifecycleManager(db).connect(
        current_user,
        business_id=data.business_id,
        provider=data.provider,
        external_store_id=data.external_store_id,
        api_key=data.api_key,
        api_secret=data.api_secret,
    )
    return {"success": True, "status": integration.status}


@router.post("/disconnect-integration")
def disconnect_integration(
    data: DisconnectIntegrationRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    IntegrationLifecycleManager(db).disconnect(current_user, data.business_id, data.provider)
    return {"success": True}


@router.get("/integrations", response_model=List[IntegrationView])
def list_integrations(
    business_id: int = Query(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    if not can_operate(db, business_id, current_user):
        raise AuthorizationError("Unauthorized access to business")
    return IntegrationRegistry(db).list_public(business_id)
