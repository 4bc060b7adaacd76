"""
Resolves which business a marketplace store belongs to
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ordersync.core.exceptions import IntegrationNotFoundError, ProviderAPIError
from ordersync.core.security import CredentialSealError, open_credentials
from ordersync.models.integration import Integration, IntegrationStatus, Provider

logger = logging.getLogger(__name__)

# Every column except the sealed credentials
PUBLIC_COLUMNS = (
    "id",
    "business_id",
    "provider",
    "external_store_id",
    "status",
    "last_error",
    "last_sync_at",
    "last_webhook_at",
    "created_at",
    "updated_at",
)


class IntegrationRegistry:
    def __init__(self, db: Session):
        self.db = db

    def resolve(self, provider: Provider, external_store_id: str) -> Integration:
        """
        Connected integration for a store.

        Raises:
            IntegrationNotFoundError: store unknown or not connected (yet)
        """
        integration = (
            self.db.query(Integration)
            .filter(
                Integration.provider == Provider(provider).value,
                Integration.external_store_id == external_store_id,
                Integration.status == IntegrationStatus.CONNECTED.value,
            )
            .first()
        )
        if integration is None:
            logger.info(f"No connected {provider} integration for store {external_store_id}")
            raise IntegrationNotFoundError("Store not integrated")
        return integration

    def for_business(self, business_id: int, provider: Provider) -> Optional[Integration]:
        return (
            self.db.query(Integration)
            .filter(
                Integration.business_id == business_id,
                Integration.provider == Provider(provider).value,
            )
            .first()
        )

    def credentials_for(self, business_id: int, provider: Provider) -> Dict[str, Any]:
        """
        Opened credentials of a connected integration, for the outbound client only.

        Raises:
            ProviderAPIError: not connected or credentials unusable
        """
        integration = self.for_business(business_id, provider)
        if (
            integration is None
            or integration.status != IntegrationStatus.CONNECTED.value
            or not integration.credentials_encrypted
        ):
            raise ProviderAPIError(f"Missing credentials for {Provider(provider).value}")

        try:
            return open_credentials(integration.credentials_encrypted)
        except CredentialSealError as e:
            logger.error(f"Could not open credentials of integration {integration.id}: {e}")
            raise ProviderAPIError(f"Unreadable credentials for {Provider(provider).value}")

    def list_public(self, business_id: int) -> List[Dict[str, Any]]:
        """Integrations of a business without the credentials column"""
        columns = [getattr(Integration, name) for name in PUBLIC_COLUMNS]
        rows = (
            self.db.query(*columns)
            .filter(Integration.business_id == business_id)
            .order_by(Integration.provider)
            .all()
        )
        return [dict(row._mapping) for row in rows]
