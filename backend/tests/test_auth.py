"""
JWT authentication
"""
from datetime import timedelta

import pytest

from ordersync.core.auth import create_access_token, decode_access_token
from ordersync.core.exceptions import AuthenticationError


def test_create_and_decode_token():
    """Round trip of a user token"""
    token = create_access_token(data={"sub": "1"})
    assert isinstance(token, str)

    payload = decode_access_token(token)
    assert payload["sub"] == "1"
    assert "exp" in payload


def test_invalid_token():
    with pytest.raises(AuthenticationError):
        decode_access_token("invalid_token")


def test_expired_token():
    """Tokens past exp are refused"""
    token = create_access_token(data={"sub": "1"}, expires_delta=timedelta(seconds=-1))
    with pytest.raises(AuthenticationError):
        decode_access_token(token)


def test_unknown_user_rejected(client):
    """A valid token for a user that does not exist is a 401"""
    token = create_access_token(data={"sub": "4242"})
    response = client.post(
        "/api/disconnect-integration",
        json={"business_id": 1, "provider": "uber_eats"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 401


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
