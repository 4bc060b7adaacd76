from pydantic_settings import BaseSettings
from typing import Optional, Dict, Any


class Settings(BaseSettings):
    DATABASE_URL: str
    REDIS_URL: str = "redis://localhost:6379/0"
    SECRET_KEY: str
    ENVIRONMENT: str = "production"  # "development", "staging" or "production"

    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = True

    # Webhooks
    UBER_EATS_WEBHOOK_SECRET: str = ""
    DOORDASH_WEBHOOK_SECRET: str = ""
    WEBHOOK_SIGNATURE_BYPASS: bool = False  # only honoured when ENVIRONMENT=development
    RATE_LIMIT_ENABLED: bool = True
    WEBHOOK_RATE_LIMIT: str = "300/minute"

    # Provider APIs
    UBER_EATS_API_BASE_URL: str = "https://api.uber.com/v1/eats"
    UBER_EATS_TOKEN_URL: str = "https://login.uber.com/oauth/v2/token"
    DOORDASH_API_BASE_URL: str = "https://openapi.doordash.com/marketplace/api/v1"
    DOORDASH_TOKEN_URL: str = "https://identity.doordash.com/connect/token"
    PROVIDER_HTTP_TIMEOUT_SECONDS: float = 10.0

    # Status sync
    STATUS_SYNC_MODE: str = "inline"  # "inline" or "queue"
    SYNC_RETRY_MAX_ATTEMPTS: int = 3
    SYNC_RETRY_WINDOW_HOURS: int = 2
    SYNC_RETRY_INTERVAL_MINUTES: int = 5
    SYNC_RETRY_LEASE_SECONDS: int = 300

    # Credential sealing
    CREDENTIALS_ACTIVE_KEY_ID: str = "default"
    SECRETS_PROVIDER: str = "env"  # "env" or "aws"
    CREDENTIALS_KEYRING_SECRET: str = "CREDENTIALS_KEYRING"
    AWS_REGION: str = "us-east-1"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()


# Static metadata per marketplace. Base URLs and token endpoints come from settings.
PROVIDER_CONFIGS: Dict[str, Dict[str, Any]] = {
    "uber_eats": {
        "name": "Uber Eats",
        "source": "Uber Eats",
        "signature_header": "x-uber-signature",
        "webhook_secret_setting": "UBER_EATS_WEBHOOK_SECRET",
        "api_base_url_setting": "UBER_EATS_API_BASE_URL",
        "token_url_setting": "UBER_EATS_TOKEN_URL",
        "scope": "eats.order",
        "actions": {
            "accept": {"method": "POST", "path": "/orders/{order_id}/accept_pos_order"},
            "cancel": {"method": "POST", "path": "/orders/{order_id}/cancel"},
        },
    },
    "doordash": {
        "name": "DoorDash",
        "source": "DoorDash",
        "signature_header": "x-doordash-signature",
        "webhook_secret_setting": "DOORDASH_WEBHOOK_SECRET",
        "api_base_url_setting": "DOORDASH_API_BASE_URL",
        "token_url_setting": "DOORDASH_TOKEN_URL",
        "scope": "marketplace.orders",
        "actions": {
            "accept": {"method": "PATCH", "path": "/orders/{order_id}"},
            "cancel": {"method": "PATCH", "path": "/orders/{order_id}"},
        },
    },
}


def get_provider_setting(provider: str, key: str) -> Optional[str]:
    """Resolve a provider value that is stored by setting name in PROVIDER_CONFIGS"""
    config = PROVIDER_CONFIGS.get(provider)
    if not config:
        return None
    setting_name = config.get(f"{key}_setting")
    if not setting_name:
        return config.get(key)
    return getattr(settings, setting_name, None)
