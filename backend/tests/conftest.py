"""
Shared fixtures.

The settings are read at import time, so the environment is prepared
before anything from ordersync is imported.
"""
import os
import tempfile

_db_fd, _db_path = tempfile.mkstemp(prefix="ordersync-test-", suffix=".db")
os.close(_db_fd)

os.environ["DATABASE_URL"] = f"sqlite:///{_db_path}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ENVIRONMENT"] = "test"
os.environ["JSON_LOGS"] = "false"
os.environ["REDIS_URL"] = "memory://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["STATUS_SYNC_MODE"] = "inline"
os.environ["UBER_EATS_WEBHOOK_SECRET"] = "uber-test-secret"
os.environ["DOORDASH_WEBHOOK_SECRET"] = "doordash-test-secret"
os.environ["UBER_EATS_API_BASE_URL"] = "https://uber.test/v1/eats"
os.environ["UBER_EATS_TOKEN_URL"] = "https://uber.test/oauth/token"
os.environ["DOORDASH_API_BASE_URL"] = "https://doordash.test/api/v1"
os.environ["DOORDASH_TOKEN_URL"] = "https://doordash.test/connect/token"

import json
from datetime import timedelta

import httpx
import pytest
from fastapi.testclient import TestClient

from ordersync.api.deps import get_provider_transport
from ordersync.core.auth import create_access_token, SERVICE_ROLE
from ordersync.core.database import Base, SessionLocal, engine
from ordersync.core.security import seal_credentials
from ordersync.main import app
from ordersync.models import (
    Business,
    BusinessMember,
    Integration,
    IntegrationStatus,
    Order,
    SyncState,
    User,
)
from ordersync.services.signature import compute_signature
from ordersync.utils.timeutils import utcnow

UBER_SECRET = os.environ["UBER_EATS_WEBHOOK_SECRET"]
DOORDASH_SECRET = os.environ["DOORDASH_WEBHOOK_SECRET"]


def pytest_sessionfinish(session, exitstatus):
    engine.dispose()
    if os.path.exists(_db_path):
        os.remove(_db_path)


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


class ProviderStub:
    """httpx.MockTransport handler recording every outbound request"""

    def __init__(self, fail_with=None, token="provider-token", token_body=None):
        self.fail_with = fail_with
        self.token = token
        self.token_body = token_body
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.fail_with, Exception):
            raise self.fail_with
        if "token" in request.url.path:
            if self.token_body is not None:
                return httpx.Response(200, json=self.token_body)
            return httpx.Response(200, json={"access_token": self.token, "expires_in": 3600})
        if self.fail_with:
            return httpx.Response(self.fail_with, json={"error": "provider error"})
        return httpx.Response(200, json={"ok": True})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    @property
    def action_requests(self):
        return [r for r in self.requests if "token" not in r.url.path]


@pytest.fixture
def provider_ok():
    return ProviderStub()


@pytest.fixture
def provider_down():
    return ProviderStub(fail_with=httpx.ConnectError("connection refused"))


@pytest.fixture
def client(provider_ok):
    app.dependency_overrides[get_provider_transport] = lambda: provider_ok.transport
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def use_transport(stub: ProviderStub):
    app.dependency_overrides[get_provider_transport] = lambda: stub.transport


# ---------------------------------------------------------------- factories

def make_user(db, email="owner@example.com", is_active=True) -> User:
    user = User(email=email, is_active=is_active)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_business(db, owner: User, name="Taqueria") -> Business:
    business = Business(name=name, owner_id=owner.id)
    db.add(business)
    db.commit()
    db.refresh(business)
    return business


def add_member(db, business: Business, user: User, role="staff") -> BusinessMember:
    member = BusinessMember(business_id=business.id, user_id=user.id, role=role)
    db.add(member)
    db.commit()
    return member


def make_integration(
    db,
    business: Business,
    provider="uber_eats",
    store_id="S1",
    status=IntegrationStatus.CONNECTED.value,
    credentials=None,
) -> Integration:
    if credentials is None:
        credentials = {"api_key": "client-id", "api_secret": "client-secret"}
    integration = Integration(
        business_id=business.id,
        provider=provider,
        external_store_id=store_id,
        credentials_encrypted=seal_credentials(credentials) if credentials else None,
        status=status,
    )
    db.add(integration)
    db.commit()
    db.refresh(integration)
    return integration


def make_order(db, business: Business, **fields) -> Order:
    values = {
        "source": "Uber Eats",
        "external_order_id": "O1",
        "status": "created",
        "sync_state": SyncState.OK.value,
        "retry_count": 0,
    }
    values.update(fields)
    order = Order(business_id=business.id, **values)
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


def service_headers() -> dict:
    token = create_access_token({"sub": "scheduler", "role": SERVICE_ROLE}, expires_delta=timedelta(minutes=5))
    return {"Authorization": f"Bearer {token}"}


def signed(payload, secret=UBER_SECRET, header="x-uber-signature"):
    """Serialized body plus the headers a provider would send with it"""
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return body, {header: compute_signature(secret, body), "Content-Type": "application/json"}


def uber_payload(**overrides) -> dict:
    payload = {
        "store_id": "S1",
        "order_id": "O1",
        "display_id": "A1B2",
        "eater": {"first_name": "Ana", "phone": "+15550001111"},
        "cart": {"items": [{"title": "Burger", "quantity": 2, "price": 1599}]},
        "payment": {
            "charges": {
                "subtotal": {"amount": 3198},
                "tax": {"amount": 320},
                "total": {"amount": 3518, "currency_code": "CAD"},
            }
        },
    }
    payload.update(overrides)
    return payload


def doordash_payload(**overrides) -> dict:
    payload = {
        "merchant_id": "D1",
        "id": "DD-100",
        "status": "NEW",
        "consumer": {
            "first_name": "Sam",
            "last_name": "Lee",
            "phone_number": "+15550002222",
            "should_leave_at_door": True,
        },
        "items": [
            {"name": "Taco", "quantity": 3, "price": 450, "options": [{"name": "Extra salsa"}, {"name": "No onion"}]},
            {"name": "Soda", "quantity": 1, "price": 250},
        ],
        "tax_amount": 208,
        "order_total": 1808,
    }
    payload.update(overrides)
    return payload


def age(db, order: Order, hours: float):
    """Move an order's updated_at into the past"""
    db.query(Order).filter(Order.id == order.id).update(
        {Order.updated_at: utcnow() - timedelta(hours=hours)}, synchronize_session=False
    )
    db.commit()
