"""
Inbound webhook pipeline:

    signature -> parse -> store lookup -> receipt event -> normalize -> upsert

Errors raised here map to the webhook's HTTP status so the provider's own
redelivery policy applies: bad signature 401 (nothing written), unknown
store 404 (provider retries while onboarding finishes). Payloads that do
not parse are acknowledged and dropped so they never cause retry storms.
"""
import json
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ordersync.core.exceptions import ValidationError
from ordersync.models import EventType, Provider
from ordersync.schemas.providers import parse_provider_payload
from ordersync.services import audit_log
from ordersync.services.integration_registry import IntegrationRegistry
from ordersync.services.normalizer import PayloadNormalizer
from ordersync.services.order_upsert import OrderUpsertEngine
from ordersync.services.signature import SignatureVerifier
from ordersync.utils.timeutils import utcnow

logger = logging.getLogger(__name__)


def _ignored(reason: str) -> Dict[str, Any]:
    return {"success": True, "order_id": None, "ignored": reason}


class WebhookProcessor:
    def __init__(self, db: Session, provider: Provider, verifier: Optional[SignatureVerifier] = None):
        self.db = db
        self.provider = Provider(provider)
        self.verifier = verifier or SignatureVerifier(self.provider)
        self.registry = IntegrationRegistry(db)
        self.normalizer = PayloadNormalizer()
        self.upserts = OrderUpsertEngine(db)

    def handle(self, body: bytes, signature: Optional[str], ip_address: Optional[str] = None) -> Dict[str, Any]:
        """
        Process one delivery.

        Returns:
            Response body for a 200

        Raises:
            SignatureVerificationError: before anything is read or written
            IntegrationNotFoundError: store not connected
        """
        self.verifier.verify(body, signature, ip_address=ip_address)

        try:
            data = json.loads(body)
        except ValueError:
            logger.warning(f"Ignoring {self.provider.value} webhook with a non-JSON body")
            return _ignored("body is not JSON")

        try:
            payload = parse_provider_payload(self.provider, data)
        except ValidationError as e:
            logger.warning(f"Ignoring {self.provider.value} webhook: {e.message}")
            return _ignored(e.message)

        integration = self.registry.resolve(self.provider, payload.store_id)
        business_id = integration.business_id

        # Own session: the receipt stays even if the upsert below fails
        audit_log.record_detached(
            business_id=business_id,
            event_type=EventType.PROVIDER_WEBHOOK_RECEIVED,
            provider=self.provider,
            payload=payload.receipt_summary(),
        )

        draft = self.normalizer.normalize(payload)
        result = self.upserts.upsert(business_id, draft, raw=data)

        integration.last_webhook_at = utcnow()
        self.db.commit()

        logger.info(
            f"Processed {self.provider.value} webhook for order {draft.external_order_id} "
            f"(order {result.order.id}, created={result.created})"
        )
        return {"success": True, "order_id": result.order.id}
