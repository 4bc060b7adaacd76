"""
Retry sweep over failed provider syncs
"""
from datetime import timedelta
from unittest.mock import patch

from conftest import (
    ProviderStub,
    age,
    make_business,
    make_integration,
    make_order,
    make_user,
    service_headers,
    auth_headers,
    use_transport,
)
from ordersync.models import Order, OrderEvent
from ordersync.services.retry_scheduler import RetryScheduler
from ordersync.tasks.scheduled_tasks import retry_provider_sync
from ordersync.utils.timeutils import utcnow


def _business(db):
    owner = make_user(db)
    business = make_business(db, owner)
    make_integration(db, business)
    return owner, business


def _failed(db, business, external_order_id, **fields):
    values = {
        "status": "cancelled",
        "sync_state": "error",
        "retry_count": 1,
        "last_sync_error": "Uber Eats unreachable",
    }
    values.update(fields)
    return make_order(db, business, external_order_id=external_order_id, **values)


def test_retry_success_resets_state(db):
    """A successful retry resets retry_count and marks the order ok"""
    _, business = _business(db)
    order = _failed(db, business, "O1", retry_count=2)
    stub = ProviderStub()

    result = RetryScheduler(db, transport=stub.transport).run()

    assert result == {"processed": 1, "results": [{"id": order.id, "status": "synced"}]}
    db.expire_all()
    order = db.get(Order, order.id)
    assert order.sync_state == "ok"
    assert order.retry_count == 0
    assert order.last_sync_error is None
    assert order.last_synced_at is not None
    assert order.sync_lease_until is None

    retry = db.query(OrderEvent).filter(OrderEvent.event_type == "provider_status_sync_retry").one()
    assert retry.payload["attempt"] == 3
    assert retry.order_id == order.id


def test_retry_failure_increments_count(db):
    """A failed retry increments retry_count and keeps the error state"""
    _, business = _business(db)
    order = _failed(db, business, "O1")
    stub = ProviderStub(fail_with=500)

    result = RetryScheduler(db, transport=stub.transport).run()

    assert result["results"] == [{"id": order.id, "status": "failed"}]
    db.expire_all()
    order = db.get(Order, order.id)
    assert order.sync_state == "error"
    assert order.retry_count == 2
    assert "HTTP 500" in order.last_sync_error


def test_exhausted_budget_is_excluded(db):
    """retry_count=3 is never picked up again, even in error state"""
    _, business = _business(db)
    _failed(db, business, "O1", retry_count=3)
    stub = ProviderStub()

    result = RetryScheduler(db, transport=stub.transport).run()

    assert result == {"processed": 0, "results": []}
    assert stub.requests == []


def test_budget_runs_out_after_three_failures(db):
    """Three failed attempts in a row end automatic retries"""
    _, business = _business(db)
    order = _failed(db, business, "O1", retry_count=0)
    stub = ProviderStub(fail_with=502)
    scheduler = RetryScheduler(db, transport=stub.transport)

    processed = [scheduler.run()["processed"] for _ in range(4)]

    assert processed == [1, 1, 1, 0]
    db.expire_all()
    order = db.get(Order, order.id)
    assert order.retry_count == 3
    assert order.sync_state == "error"


def test_orders_outside_window_are_excluded(db):
    """Failures older than the trailing window stay in error"""
    _, business = _business(db)
    old = _failed(db, business, "O-old")
    recent = _failed(db, business, "O-new")
    age(db, old, hours=3)
    age(db, recent, hours=1)

    result = RetryScheduler(db, transport=ProviderStub().transport).run()

    assert [r["id"] for r in result["results"]] == [recent.id]
    db.expire_all()
    assert db.get(Order, old.id).sync_state == "error"


def test_only_external_error_orders(db):
    """Manual orders and orders not in error are left alone"""
    _, business = _business(db)
    _failed(db, business, "M1", source="manual")
    _failed(db, business, "P1", sync_state="pending")
    _failed(db, business, "K1", sync_state="ok")
    legacy = _failed(db, business, "L1", source="uber_eats")

    result = RetryScheduler(db, transport=ProviderStub().transport).run()

    assert [r["id"] for r in result["results"]] == [legacy.id]


def test_leased_orders_are_not_claimed_twice(db):
    """An order leased by a running sweep is skipped by an overlapping one"""
    _, business = _business(db)
    order = _failed(db, business, "O1")

    first = RetryScheduler(db, transport=ProviderStub().transport)
    assert first.claim() == [order.id]

    db.expire_all()
    leased = db.get(Order, order.id)
    assert leased.sync_lease_until is not None

    second = RetryScheduler(db, transport=ProviderStub().transport)
    assert second.claim() == []


def test_expired_lease_is_reclaimed(db):
    """A lease left behind by a crashed sweep expires"""
    _, business = _business(db)
    order = _failed(db, business, "O1", sync_lease_until=utcnow() - timedelta(minutes=1))

    assert RetryScheduler(db).claim() == [order.id]


def test_claim_keeps_retry_window(db):
    """Taking a lease does not move updated_at"""
    _, business = _business(db)
    order = _failed(db, business, "O1")
    age(db, order, hours=1)
    db.expire_all()
    before = db.get(Order, order.id).updated_at

    RetryScheduler(db).claim()

    db.expire_all()
    assert db.get(Order, order.id).updated_at == before


def test_retry_endpoint_requires_service_token(client, db):
    """Only the scheduler's service token may trigger a sweep"""
    owner, _ = _business(db)

    assert client.post("/api/retry-provider-sync").status_code == 401
    assert client.post("/api/retry-provider-sync", headers=auth_headers(owner)).status_code == 403


def test_retry_endpoint(client, db):
    """The endpoint reports processed orders and their outcome"""
    _, business = _business(db)
    ok = _failed(db, business, "O1")
    use_transport(ProviderStub())

    response = client.post("/api/retry-provider-sync", headers=service_headers())

    assert response.status_code == 200
    assert response.json() == {"processed": 1, "results": [{"id": ok.id, "status": "synced"}]}


def test_unexpected_error_does_not_stop_sweep(db):
    """Every claimed order is attempted and released even when calls blow up"""
    _, business = _business(db)
    first = _failed(db, business, "O1")
    second = _failed(db, business, "O2")
    stub = ProviderStub(fail_with=RuntimeError("boom"))

    result = RetryScheduler(db, transport=stub.transport).run()

    assert result["processed"] == 2
    assert {r["status"] for r in result["results"]} == {"failed"}
    db.expire_all()
    for order_id in (first.id, second.id):
        order = db.get(Order, order_id)
        assert order.sync_state == "error"
        assert order.retry_count == 2
        assert order.sync_lease_until is None


def test_scheduled_task_runs_sweep(db):
    """The beat task sweeps with its own session"""
    _, business = _business(db)
    order = _failed(db, business, "O1")
    stub = ProviderStub()

    with patch("ordersync.tasks.scheduled_tasks.get_provider_transport", return_value=stub.transport):
        result = retry_provider_sync()

    assert result == {"processed": 1, "results": [{"id": order.id, "status": "synced"}]}
    db.expire_all()
    assert db.get(Order, order.id).sync_state == "ok"
