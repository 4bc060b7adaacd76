"""
Connecting and disconnecting marketplace integrations.

Only the business owner or an owner/admin member may do either. Both
authorization paths are checked: businesses.owner_id and the
business_members table can each be the authoritative one.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from ordersync.core.exceptions import AuthorizationError, ValidationError
from ordersync.core.logging import log_security_event
from ordersync.core.security import seal_credentials
from ordersync.models import (
    Business,
    BusinessMember,
    Integration,
    IntegrationStatus,
    Provider,
    EventType,
    User,
    MANAGER_ROLES,
)
from ordersync.services import audit_log
from ordersync.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


def _is_owner(db: Session, business_id: int, user_id: int) -> bool:
    return (
        db.query(Business.id)
        .filter(Business.id == business_id, Business.owner_id == user_id)
        .first()
        is not None
    )


def _member_role(db: Session, business_id: int, user_id: int) -> Optional[str]:
    row = (
        db.query(BusinessMember.role)
        .filter(BusinessMember.business_id == business_id, BusinessMember.user_id == user_id)
        .first()
    )
    return row.role if row else None


def can_manage(db: Session, business_id: int, user: User) -> bool:
    is_owner = _is_owner(db, business_id, user.id)
    role = _member_role(db, business_id, user.id)
    return is_owner or role in MANAGER_ROLES


def can_operate(db: Session, business_id: int, user: User) -> bool:
    """Owner or any member (staff included) may work on the business's orders"""
    is_owner = _is_owner(db, business_id, user.id)
    role = _member_role(db, business_id, user.id)
    return is_owner or role is not None


class IntegrationLifecycleManager:
    def __init__(self, db: Session):
        self.db = db

    def _authorize(self, business_id: int, user: User, action: str) -> None:
        if not can_manage(self.db, business_id, user):
            log_security_event(
                logger,
                "authorization_denied",
                user_id=user.id,
                details={"business_id": business_id, "action": action},
                severity="WARNING",
            )
            raise AuthorizationError("Unauthorized access to business")

    def connect(
        self,
        user: User,
        business_id: int,
        provider: Provider,
        external_store_id: str,
        api_key: str,
        api_secret: str
    ) -> Integration:
        """
        Store sealed credentials and mark the integration connected.

        Raises:
            AuthorizationError: caller is neither owner nor owner/admin member
            ValidationError: store already connected to another business
        """
        self._authorize(business_id, user, "connect")
        provider = Provider(provider)
        external_store_id = external_store_id.strip()

        taken = (
            self.db.query(Integration.id)
            .filter(
                Integration.provider == provider.value,
                Integration.external_store_id == external_store_id,
                Integration.status == IntegrationStatus.CONNECTED.value,
                Integration.business_id != business_id,
            )
            .first()
        )
        if taken is not None:
            raise ValidationError("Store is already connected to another business")

        sealed = seal_credentials({
            "api_key": api_key,
            "api_secret": api_secret,
            "created_at": utcnow().isoformat(),
        })

        integration = (
            self.db.query(Integration)
            .filter(Integration.business_id == business_id, Integration.provider == provider.value)
            .first()
        )
        if integration is None:
            integration = Integration(business_id=business_id, provider=provider.value)
            self.db.add(integration)

        integration.external_store_id = external_store_id
        integration.credentials_encrypted = sealed
        integration.status = IntegrationStatus.CONNECTED.value
        integration.last_error = None
        self.db.flush()

        audit_log.record(
            self.db,
            business_id=business_id,
            event_type=EventType.INTEGRATION_CONNECTED,
            provider=provider,
            payload={"external_store_id": external_store_id, "user_id": user.id},
        )
        self.db.commit()
        self.db.refresh(integration)

        logger.info(f"Business {business_id} connected {provider.value} store {external_store_id}")
        return integration

    def disconnect(self, user: User, business_id: int, provider: Provider) -> Optional[Integration]:
        """Mark disconnected and drop the credentials. The row itself stays."""
        self._authorize(business_id, user, "disconnect")
        provider = Provider(provider)

        integration = (
            self.db.query(Integration)
            .filter(Integration.business_id == business_id, Integration.provider == provider.value)
            .first()
        )
        if integration is None:
            return None

        integration.status = IntegrationStatus.DISCONNECTED.value
        integration.credentials_encrypted = None

        audit_log.record(
            self.db,
            business_id=business_id,
            event_type=EventType.INTEGRATION_DISCONNECTED,
            provider=provider,
            payload={"external_store_id": integration.external_store_id, "user_id": user.id},
        )
        self.db.commit()

        logger.info(f"Business {business_id} disconnected {provider.value}")
        return integration
