"""Shared fixtures for delivery-sync tests."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

import httpx
import pytest
from fastapi import FastAPI, Request, Response

from delivery_sync.config import DeliverySyncConfig
from delivery_sync.notifier import ChangeNotifier
from delivery_sync.types import (
    DeliveryRecord,
    NetworkFailure,
    NetworkResult,
    NetworkSuccess,
    PendingDelivery,
    PendingStatus,
)

BASE_URL = "https://deliveries.example.com"


def make_record(n: int = 1, proof: str | None = None) -> DeliveryRecord:
    return DeliveryRecord(
        item=f"Phone {n}",
        serial_number=f"SN-{n:04d}",
        sim=f"SIM-{n}",
        merchant="Acme Telecom",
        shop="Main Street",
        receiver=f"Receiver {n}",
        delivery_agent="Agent Smith",
        proof_file_ref=proof,
    )


def history_items(start: int, count: int) -> list[dict[str, Any]]:
    return [
        {
            "id": f"h-{n}",
            "item": f"Phone {n}",
            "serialNumber": f"SN-{n:04d}",
            "sim": f"SIM-{n}",
            "merchant": "Acme Telecom",
            "shop": "Main Street",
            "receiver": f"Receiver {n}",
            "deliveryAgent": "Agent Smith",
            "code": f"C{n}",
            "receiverProofPath": f"https://cdn/{n}.jpg",
            "createdAt": "2025-12-22T11:22:01+00:00",
        }
        for n in range(start, start + count)
    ]


class InMemoryPendingStore:
    def __init__(self) -> None:
        self.items: dict[int, PendingDelivery] = {}
        self.notifier = ChangeNotifier()
        self._counter = 0

    async def insert_pending(self, record: DeliveryRecord) -> int:
        self._counter += 1
        self.items[self._counter] = PendingDelivery(
            id=self._counter,
            item=record.item,
            serial_number=record.serial_number,
            sim=record.sim,
            merchant=record.merchant,
            shop=record.shop,
            receiver=record.receiver,
            delivery_agent=record.delivery_agent,
            proof_file_ref=record.proof_file_ref,
            created_at=datetime.now(tz=UTC),
            server_code=record.server_code,
        )
        self.notifier.notify()
        return self._counter

    async def get_pending(self, pending_id: int) -> PendingDelivery | None:
        return self.items.get(pending_id)

    async def list_pending(self) -> list[PendingDelivery]:
        return list(self.items.values())

    async def list_pending_page(
        self, offset: int = 0, limit: int = 20
    ) -> list[PendingDelivery]:
        return list(self.items.values())[offset : offset + limit]

    async def count_pending(self) -> int:
        return len(self.items)

    async def delete_by_ids(self, ids: Sequence[int]) -> int:
        removed = 0
        for pending_id in ids:
            if self.items.pop(pending_id, None) is not None:
                removed += 1
        self.notifier.notify()
        return removed

    async def update_retry_count(
        self,
        pending_id: int,
        retry_count: int,
        *,
        next_retry_at: datetime | None = None,
        error: str | None = None,
        status: PendingStatus | None = None,
    ) -> int:
        pending = self.items.get(pending_id)
        if pending is None:
            return 0
        self.items[pending_id] = replace(
            pending,
            retry_count=retry_count,
            next_retry_at=next_retry_at,
            last_error=error if error is not None else pending.last_error,
            status=status or pending.status,
        )
        self.notifier.notify()
        return 1

    async def mark_status(
        self, pending_id: int, status: PendingStatus
    ) -> int:
        pending = self.items.get(pending_id)
        if pending is None:
            return 0
        self.items[pending_id] = replace(pending, status=status)
        self.notifier.notify()
        return 1

    async def observe_pending_count(self):
        async with self.notifier.subscribe() as changes:
            yield len(self.items)
            while True:
                await changes.get()
                yield len(self.items)


class FakeTransport:
    """Scripted transport recording every call."""

    def __init__(self, *results: NetworkResult) -> None:
        self.results = list(results)
        self.calls: list[tuple[str, Any]] = []

    def _next(self) -> NetworkResult:
        if not self.results:
            return NetworkSuccess(status_code=200, body="{}")
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def post_delivery(self, payload: dict[str, Any]) -> NetworkResult:
        self.calls.append(("post_delivery", payload))
        return self._next()

    async def post_deliveries_bulk(
        self, payloads: Sequence[dict[str, Any]]
    ) -> NetworkResult:
        self.calls.append(("post_deliveries_bulk", list(payloads)))
        return self._next()

    async def get_history(
        self,
        page: int = 1,
        limit: int = 20,
        keyword: str | None = None,
    ) -> NetworkResult:
        self.calls.append(
            ("get_history", {"page": page, "limit": limit, "keyword": keyword})
        )
        return self._next()

    async def get_history_detail(self, code: str) -> NetworkResult:
        self.calls.append(("get_history_detail", code))
        return self._next()


def ok(body: Any = None, status_code: int = 200) -> NetworkSuccess:
    text = body if isinstance(body, str) or body is None else json.dumps(body)
    return NetworkSuccess(status_code=status_code, body=text)


def down(message: str = "Unable to resolve host") -> NetworkFailure:
    return NetworkFailure(message)


class FakeDeliveriesApi:
    """In-process stand-in for the remote deliveries API."""

    def __init__(self, history: list[dict[str, Any]] | None = None) -> None:
        self.history = history or []
        self.received: list[dict[str, Any]] = []
        self.bulk_received: list[list[dict[str, Any]]] = []
        self.history_requests: list[dict[str, str]] = []
        self.fail_status: int | None = None
        self.app = self._build_app()

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        @app.post("/api/rest/v1/deliveries")
        async def create(request: Request) -> Response:
            if self.fail_status is not None:
                return Response(status_code=self.fail_status)
            self.received.append(await request.json())
            return Response(status_code=201, content="{}")

        @app.post("/api/rest/v1/deliveries/bulk")
        async def bulk(request: Request) -> Response:
            if self.fail_status is not None:
                return Response(status_code=self.fail_status)
            self.bulk_received.append(await request.json())
            return Response(status_code=200, content="[]")

        @app.get("/api/rest/v1/deliveries/history")
        async def history(request: Request) -> Response:
            params = dict(request.query_params)
            self.history_requests.append(params)
            if self.fail_status is not None:
                return Response(status_code=self.fail_status)
            page = int(params.get("page", "1"))
            limit = int(params.get("limit", "20"))
            keyword = params.get("keyword")
            items = [
                h
                for h in self.history
                if keyword is None or keyword in h["item"]
            ]
            window = items[(page - 1) * limit : page * limit]
            return Response(
                content=json.dumps(window), media_type="application/json"
            )

        @app.get("/api/rest/v1/deliveries/history/{code}")
        async def detail(code: str) -> Response:
            for h in self.history:
                if h["code"] == code:
                    body = dict(h)
                    body["receiverProof"] = "aGVsbG8="
                    return Response(
                        content=json.dumps(body),
                        media_type="application/json",
                    )
            return Response(status_code=404)

        return app

    def transport(self) -> httpx.ASGITransport:
        return httpx.ASGITransport(app=self.app)


@pytest.fixture()
def config() -> DeliverySyncConfig:
    return DeliverySyncConfig(
        base_url=BASE_URL,
        keyword_debounce_seconds=0.01,
        retry_max_attempts=3,
        retry_backoff_seconds=60,
    )


@pytest.fixture()
def pending_store() -> InMemoryPendingStore:
    return InMemoryPendingStore()


@pytest.fixture()
def fake_api() -> FakeDeliveriesApi:
    return FakeDeliveriesApi(history=history_items(1, 45))


@pytest.fixture()
def proof_file(tmp_path):
    path = tmp_path / "proof.jpg"
    path.write_bytes(b"\xff\xd8jpeg-bytes")
    return path


@pytest.fixture()
async def async_engine():
    """Create an in-memory aiosqlite async engine."""
    from sqlalchemy.ext.asyncio import create_async_engine

    from delivery_sync.contrib.sqlalchemy.models import Base

    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture()
async def async_session_factory(async_engine):
    """Create an async session factory bound to the in-memory engine."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    factory = async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )
    yield factory


@pytest.fixture()
def sqlalchemy_repository(async_session_factory):
    """Create an SQLAlchemyPendingRepository."""
    from delivery_sync.contrib.sqlalchemy.repository import (
        SQLAlchemyPendingRepository,
    )

    return SQLAlchemyPendingRepository(async_session_factory)


@pytest.fixture()
def sqlalchemy_history_store(async_session_factory):
    """Create an SQLAlchemyHistoryStore."""
    from delivery_sync.contrib.sqlalchemy.history_store import (
        SQLAlchemyHistoryStore,
    )

    return SQLAlchemyHistoryStore(async_session_factory)
