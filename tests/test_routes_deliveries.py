"""Delivery and pending queue route tests."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import FakeTransport, down, ok
from delivery_sync.bulk_sync import BulkSyncEngine
from delivery_sync.exceptions import register_exception_handlers
from delivery_sync.guard import SyncGuard
from delivery_sync.history import HistoryDetailLoader, HistoryFeed
from delivery_sync.router import create_delivery_router
from delivery_sync.submission import SYNC_IN_PROGRESS, SubmissionEngine
from delivery_sync.types import NetworkSuccess, SyncFailure

FORM = {
    "item": "Phone 1",
    "serial_number": "SN-0001",
    "sim": "SIM-1",
    "merchant": "Acme Telecom",
    "shop": "Main Street",
    "receiver": "Receiver 1",
    "delivery_agent": "Agent Smith",
}


class _BusyBulkSync:
    syncing = True

    async def sync_all(self):
        return SyncFailure(SYNC_IN_PROGRESS)


def _create_client(store, transport, config, *, bulk_sync=None):
    guard = SyncGuard()
    app = FastAPI()
    register_exception_handlers(app)
    router_ = create_delivery_router(
        config=config,
        submission=SubmissionEngine(
            transport, store, guard=guard, config=config
        ),
        bulk_sync=bulk_sync
        or BulkSyncEngine(transport, store, guard=guard, config=config),
        pending_store=store,
        history=HistoryFeed(transport, config=config),
        detail_loader=HistoryDetailLoader(transport),
    )
    app.include_router(router_)
    return TestClient(app)


def test_submit_sent(pending_store, config) -> None:
    with _create_client(pending_store, FakeTransport(ok()), config) as client:
        resp = client.post("/deliveries", json=FORM)

    assert resp.status_code == 200
    assert resp.json() == {"result": "sent", "id": None, "message": None}
    assert pending_store.items == {}


def test_submit_offline_queues(pending_store, config) -> None:
    with _create_client(
        pending_store, FakeTransport(down()), config
    ) as client:
        resp = client.post("/deliveries", json=FORM)
        count = client.get("/deliveries/pending/count")
        listing = client.get("/deliveries/pending")

    body = resp.json()
    assert body["result"] == "queued"
    assert body["id"] == 1
    assert count.json() == {"count": 1}
    assert [p["serial_number"] for p in listing.json()] == ["SN-0001"]
    assert listing.json()[0]["status"] == "PENDING"


def test_submit_validates_body(pending_store, config) -> None:
    with _create_client(pending_store, FakeTransport(), config) as client:
        resp = client.post("/deliveries", json={"item": "Phone"})

    assert resp.status_code == 422


def test_get_pending_not_found(pending_store, config) -> None:
    with _create_client(pending_store, FakeTransport(), config) as client:
        resp = client.get("/deliveries/pending/42")

    assert resp.status_code == 404
    assert resp.json() == {
        "detail": "Pending delivery 42 not found",
        "code": "pending_delivery_not_found",
    }


def test_sync_nothing_to_sync(pending_store, config) -> None:
    transport = FakeTransport()
    with _create_client(pending_store, transport, config) as client:
        resp = client.post("/deliveries/pending/sync")

    assert resp.json()["result"] == "nothing_to_sync"
    assert transport.calls == []


def test_sync_success_empties_queue(pending_store, config) -> None:
    transport = FakeTransport(down(), down(), ok([]))
    with _create_client(pending_store, transport, config) as client:
        client.post("/deliveries", json=FORM)
        client.post("/deliveries", json=FORM)
        resp = client.post("/deliveries/pending/sync")
        count = client.get("/deliveries/pending/count")

    assert resp.json()["result"] == "success"
    assert resp.json()["count"] == 2
    assert count.json() == {"count": 0}


def test_sync_failure_is_classified(pending_store, config) -> None:
    transport = FakeTransport(
        down(), down("Unable to resolve host deliveries.example.com")
    )
    with _create_client(pending_store, transport, config) as client:
        client.post("/deliveries", json=FORM)
        resp = client.post("/deliveries/pending/sync")
        pending = client.get("/deliveries/pending/1")

    assert resp.json() == {
        "result": "failure",
        "count": 0,
        "message": "No connection",
        "category": "connectivity",
    }
    assert pending.json()["retry_count"] == 1


def test_sync_in_progress_is_conflict(pending_store, config) -> None:
    with _create_client(
        pending_store,
        FakeTransport(),
        config,
        bulk_sync=_BusyBulkSync(),
    ) as client:
        resp = client.post("/deliveries/pending/sync")

    assert resp.status_code == 409
    assert resp.json()["code"] == "sync_in_progress"


def test_sync_single_not_found(pending_store, config) -> None:
    with _create_client(pending_store, FakeTransport(), config) as client:
        resp = client.post("/deliveries/pending/7/sync")

    assert resp.status_code == 404


def test_sync_single_sent(pending_store, config) -> None:
    transport = FakeTransport(down(), ok())
    with _create_client(pending_store, transport, config) as client:
        queued = client.post("/deliveries", json=FORM).json()
        resp = client.post(f"/deliveries/pending/{queued['id']}/sync")

    assert resp.json()["result"] == "sent"
    assert pending_store.items == {}


def test_sync_single_failure_keeps_row(pending_store, config) -> None:
    transport = FakeTransport(down(), NetworkSuccess(status_code=500))
    with _create_client(pending_store, transport, config) as client:
        queued = client.post("/deliveries", json=FORM).json()
        resp = client.post(f"/deliveries/pending/{queued['id']}/sync")

    assert resp.json() == {
        "result": "queued",
        "id": queued["id"],
        "message": "Server error (code 500)",
    }
    assert pending_store.items[queued["id"]].retry_count == 1
