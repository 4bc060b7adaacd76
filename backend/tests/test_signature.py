"""
Webhook signature verification
"""
import pytest
from unittest.mock import patch

from ordersync.core.config import settings
from ordersync.core.exceptions import SignatureVerificationError
from ordersync.models import Provider
from ordersync.services.signature import SignatureVerifier, compute_signature

BODY = b'{"store_id":"S1","order_id":"O1"}'


def test_valid_signature_passes():
    """A hex HMAC-SHA256 of the raw body is accepted"""
    verifier = SignatureVerifier(Provider.UBER_EATS, secret="s3cret")
    verifier.verify(BODY, compute_signature("s3cret", BODY))


def test_uppercase_hex_is_accepted():
    """Hex digests are compared case-insensitively"""
    verifier = SignatureVerifier(Provider.DOORDASH, secret="s3cret")
    verifier.verify(BODY, compute_signature("s3cret", BODY).upper())


def test_signature_is_over_raw_bytes():
    """Re-serializing the same JSON with other spacing breaks the signature"""
    verifier = SignatureVerifier(Provider.UBER_EATS, secret="s3cret")
    signature = compute_signature("s3cret", BODY)
    reformatted = b'{"store_id": "S1", "order_id": "O1"}'

    with pytest.raises(SignatureVerificationError):
        verifier.verify(reformatted, signature)


def test_tampered_body_rejected():
    """Changing one byte of the body invalidates the signature"""
    verifier = SignatureVerifier(Provider.UBER_EATS, secret="s3cret")
    signature = compute_signature("s3cret", BODY)

    with pytest.raises(SignatureVerificationError):
        verifier.verify(BODY.replace(b"O1", b"O2"), signature)


def test_missing_header_rejected():
    """No signature header means no processing"""
    verifier = SignatureVerifier(Provider.UBER_EATS, secret="s3cret")
    with pytest.raises(SignatureVerificationError):
        verifier.verify(BODY, None)
    with pytest.raises(SignatureVerificationError):
        verifier.verify(BODY, "")


def test_non_hex_header_rejected():
    """Garbage in the header is a mismatch, not a crash"""
    verifier = SignatureVerifier(Provider.UBER_EATS, secret="s3cret")
    with pytest.raises(SignatureVerificationError):
        verifier.verify(BODY, "not-a-signature-ü")


def test_unconfigured_secret_fails_closed():
    """Without a secret every delivery is rejected, even one signed with an empty key"""
    verifier = SignatureVerifier(Provider.UBER_EATS, secret="")
    with pytest.raises(SignatureVerificationError):
        verifier.verify(BODY, compute_signature("", BODY))


def test_secret_read_from_settings():
    """Each provider uses its own configured secret"""
    uber = SignatureVerifier(Provider.UBER_EATS)
    doordash = SignatureVerifier(Provider.DOORDASH)

    assert uber.secret == settings.UBER_EATS_WEBHOOK_SECRET
    assert doordash.secret == settings.DOORDASH_WEBHOOK_SECRET
    assert uber.header_name == "x-uber-signature"
    assert doordash.header_name == "x-doordash-signature"


@patch.object(settings, "WEBHOOK_SIGNATURE_BYPASS", True)
def test_bypass_ignored_outside_development():
    """The bypass flag has no effect unless ENVIRONMENT=development"""
    verifier = SignatureVerifier(Provider.UBER_EATS, secret="")
    with pytest.raises(SignatureVerificationError):
        verifier.verify(BODY, None)


@patch.object(settings, "ENVIRONMENT", "development")
@patch.object(settings, "WEBHOOK_SIGNATURE_BYPASS", True)
def test_bypass_in_development():
    """Development can skip verification explicitly"""
    verifier = SignatureVerifier(Provider.UBER_EATS, secret="")
    verifier.verify(BODY, None)


@patch.object(settings, "ENVIRONMENT", "development")
@patch.object(settings, "WEBHOOK_SIGNATURE_BYPASS", True)
def test_bypass_does_not_override_configured_secret():
    """With a secret configured, a wrong signature fails even in development"""
    verifier = SignatureVerifier(Provider.UBER_EATS, secret="s3cret")
    with pytest.raises(SignatureVerificationError):
        verifier.verify(BODY, compute_signature("other", BODY))
