"""
Client for the marketplaces' order APIs

Each call fetches a fresh client-credentials token; nothing is cached
between calls. Every request carries PROVIDER_HTTP_TIMEOUT_SECONDS.
"""
import httpx
import logging
import time
from typing import Optional, Dict, Any

from ordersync.core.config import settings, get_provider_setting, PROVIDER_CONFIGS
from ordersync.core.exceptions import ProviderAPIError
from ordersync.core.logging import log_api_call
from ordersync.models.integration import Provider

logger = logging.getLogger(__name__)

ACCEPT = "accept"
CANCEL = "cancel"


def _action_body(provider: Provider, action: str, reason: Optional[str]) -> Dict[str, Any]:
    if provider == Provider.UBER_EATS:
        if action == ACCEPT:
            return {"reason": reason or "accepted"}
        return {"reason": "OTHER", "details": reason or "Cancelled by merchant"}

    if action == ACCEPT:
        return {"order_status": "success"}
    return {"order_status": "fail", "failure_reason": reason or "Cancelled by merchant"}


class ProviderClient:
    """Outbound calls for one provider with one set of credentials"""

    def __init__(
        self,
        provider: Provider,
        credentials: Dict[str, Any],
        transport: Optional[httpx.BaseTransport] = None,
        timeout: Optional[float] = None
    ):
        self.provider = Provider(provider)
        self.config = PROVIDER_CONFIGS[self.provider.value]
        self.credentials = credentials
        self.base_url = (get_provider_setting(self.provider.value, "api_base_url") or "").rstrip("/")
        self.token_url = get_provider_setting(self.provider.value, "token_url")
        self.timeout = timeout if timeout is not None else settings.PROVIDER_HTTP_TIMEOUT_SECONDS
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self.transport)

    def _request(self, client: httpx.Client, method: str, url: str, **kwargs) -> httpx.Response:
        start = time.monotonic()
        try:
            response = client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            duration_ms = round((time.monotonic() - start) * 1000, 2)
            error = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
            log_api_call(logger, self.provider.value, url, duration_ms=duration_ms, error=error)
            raise ProviderAPIError(f"{self.config['name']} unreachable ({error})")

        duration_ms = round((time.monotonic() - start) * 1000, 2)
        if response.is_success:
            log_api_call(logger, self.provider.value, url, response.status_code, duration_ms)
            return response

        error = f"HTTP {response.status_code}"
        log_api_call(logger, self.provider.value, url, response.status_code, duration_ms, error=error)
        raise ProviderAPIError(f"{self.config['name']} returned {error}", status_code=response.status_code)

    def get_access_token(self, client: httpx.Client) -> str:
        client_id = self.credentials.get("api_key")
        client_secret = self.credentials.get("api_secret")
        if not client_id or not client_secret:
            raise ProviderAPIError(f"Missing credentials for {self.provider.value}")

        response = self._request(
            client,
            "POST",
            self.token_url,
            data={
                "client_id": client_id,
                "client_secret": client_secret,
                "grant_type": "client_credentials",
                "scope": self.config["scope"],
            },
        )
        try:
            body = response.json()
        except ValueError:
            body = None
        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise ProviderAPIError(f"{self.config['name']} token response without access_token")
        return token

    def perform(self, action: str, external_order_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
        """
        Run `accept` or `cancel` against the provider.

        Returns:
            Dict with action, endpoint and the provider's status code

        Raises:
            ProviderAPIError: network error, non-2xx or missing credentials
        """
        route = self.config["actions"].get(action)
        if route is None:
            raise ProviderAPIError(f"Unsupported {self.provider.value} action: {action}")

        url = self.base_url + route["path"].format(order_id=external_order_id)
        with self._client() as client:
            token = self.get_access_token(client)
            response = self._request(
                client,
                route["method"],
                url,
                json=_action_body(self.provider, action, reason),
                headers={"Authorization": f"Bearer {token}"},
            )

        return {"action": action, "endpoint": url, "status_code": response.status_code}
