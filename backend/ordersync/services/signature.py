"""
Webhook signature verification

Every marketplace signs the raw request body with HMAC-SHA256 and sends the
hex digest in its own header. The digest is computed over the bytes exactly
as received and compared in constant time. A provider without a configured
secret rejects everything; the only way around that is
WEBHOOK_SIGNATURE_BYPASS, which is ignored outside ENVIRONMENT=development.
"""
import hashlib
import hmac
import logging
from typing import Optional

from ordersync.core.config import settings, get_provider_setting, PROVIDER_CONFIGS
from ordersync.core.exceptions import SignatureVerificationError
from ordersync.core.logging import log_security_event
from ordersync.models.integration import Provider

logger = logging.getLogger(__name__)


def compute_signature(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class SignatureVerifier:
    """Checks the signature header of one provider's webhooks"""

    def __init__(self, provider: Provider, secret: Optional[str] = None):
        self.provider = Provider(provider)
        self.header_name = PROVIDER_CONFIGS[self.provider.value]["signature_header"]
        self._secret = secret

    @property
    def secret(self) -> str:
        if self._secret is not None:
            return self._secret
        return get_provider_setting(self.provider.value, "webhook_secret") or ""

    def verify(self, body: bytes, signature_header: Optional[str], ip_address: Optional[str] = None) -> None:
        """
        Raise SignatureVerificationError unless `signature_header` matches `body`.

        Args:
            body: Raw request body, untouched
            signature_header: Hex HMAC-SHA256 sent by the provider
            ip_address: Client address, for the security log only
        """
        secret = self.secret
        if not secret:
            # Local development without a provider secret only
            if settings.WEBHOOK_SIGNATURE_BYPASS and settings.is_development:
                log_security_event(
                    logger,
                    "signature_bypassed",
                    ip_address=ip_address,
                    details={"provider": self.provider.value},
                    severity="WARNING",
                )
                return
            self._reject("secret_not_configured", ip_address)

        if not signature_header:
            self._reject("missing_signature", ip_address)

        expected = compute_signature(secret, body)
        received = signature_header.strip().lower()
        if not hmac.compare_digest(expected.encode(), received.encode("utf-8")):
            self._reject("signature_mismatch", ip_address)

    def _reject(self, reason: str, ip_address: Optional[str]):
        log_security_event(
            logger,
            "signature_rejected",
            ip_address=ip_address,
            details={"provider": self.provider.value, "reason": reason},
            severity="WARNING",
        )
        raise SignatureVerificationError("Invalid signature")
