"""
Sealing of provider credentials.

Blobs are stored as ``v1:<key_id>:<fernet token>`` so keys can be rotated:
new blobs use CREDENTIALS_ACTIVE_KEY_ID, old blobs keep opening as long as
their key id is still in the keyring.
"""
from cryptography.fernet import Fernet, InvalidToken
from functools import lru_cache
from typing import Any, Dict
from .config import settings
from .secrets_manager import get_secrets_provider
import base64
import hashlib
import json

BLOB_VERSION = "v1"
DEFAULT_KEY_ID = "default"


class CredentialSealError(ValueError):
    pass


def derive_key(secret: str) -> bytes:
    key = hashlib.sha256(secret.encode()).digest()
    return base64.urlsafe_b64encode(key)


@lru_cache()
def get_keyring() -> Dict[str, bytes]:
    """Key id -> Fernet key. The `default` id is derived from SECRET_KEY unless the keyring overrides it."""
    provider = get_secrets_provider(settings.SECRETS_PROVIDER, region_name=settings.AWS_REGION)
    configured = provider.get_secret_dict(settings.CREDENTIALS_KEYRING_SECRET) or {}

    keyring = {str(key_id): str(key).encode() for key_id, key in configured.items()}
    keyring.setdefault(DEFAULT_KEY_ID, derive_key(settings.SECRET_KEY))
    return keyring


def seal_credentials(credentials: Dict[str, Any], key_id: str = None) -> str:
    key_id = key_id or settings.CREDENTIALS_ACTIVE_KEY_ID
    keyring = get_keyring()
    if key_id not in keyring:
        raise CredentialSealError(f"Unknown credential key id: {key_id}")

    token = Fernet(keyring[key_id]).encrypt(json.dumps(credentials).encode()).decode()
    return f"{BLOB_VERSION}:{key_id}:{token}"


def open_credentials(blob: str) -> Dict[str, Any]:
    try:
        version, key_id, token = blob.split(":", 2)
    except (AttributeError, ValueError):
        raise CredentialSealError("Malformed credential blob")

    if version != BLOB_VERSION:
        raise CredentialSealError(f"Unsupported credential blob version: {version}")

    key = get_keyring().get(key_id)
    if key is None:
        raise CredentialSealError(f"Credential key id not in keyring: {key_id}")

    try:
        return json.loads(Fernet(key).decrypt(token.encode()).decode())
    except (InvalidToken, json.JSONDecodeError):
        raise CredentialSealError("Credential blob could not be decrypted")
