from typing import Optional
import httpx


def get_provider_transport() -> Optional[httpx.BaseTransport]:
    """Transport for outbound provider calls. None means real network; tests override it."""
    return None
