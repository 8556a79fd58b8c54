"""Router tests."""

from fastapi import APIRouter, FastAPI

from conftest import FakeTransport
from delivery_sync.bulk_sync import BulkSyncEngine
from delivery_sync.exceptions import PendingDeliveryNotFoundError
from delivery_sync.history import HistoryDetailLoader, HistoryFeed
from delivery_sync.router import create_delivery_router
from delivery_sync.submission import SubmissionEngine


def _router(pending_store, config) -> APIRouter:
    transport = FakeTransport()
    return create_delivery_router(
        config=config,
        submission=SubmissionEngine(transport, pending_store),
        bulk_sync=BulkSyncEngine(transport, pending_store),
        pending_store=pending_store,
        history=HistoryFeed(transport, config=config),
        detail_loader=HistoryDetailLoader(transport),
    )


def test_create_delivery_router_returns_apirouter(
    pending_store, config
) -> None:
    assert isinstance(_router(pending_store, config), APIRouter)


def test_router_exposes_routes(pending_store, config) -> None:
    app = FastAPI()
    app.include_router(_router(pending_store, config))
    paths = set(app.openapi()["paths"])
    assert {
        "/deliveries",
        "/deliveries/pending",
        "/deliveries/pending/count",
        "/deliveries/pending/{pending_id}",
        "/deliveries/pending/sync",
        "/deliveries/pending/{pending_id}/sync",
        "/history",
        "/history/{code}",
    } <= paths


async def test_lifespan_populates_state_and_handlers(
    pending_store, config
) -> None:
    app = FastAPI()
    app.include_router(_router(pending_store, config))

    async with app.router.lifespan_context(app) as _:
        assert app.state.delivery_sync_config is config
        assert app.state.delivery_sync_pending_store is pending_store
        assert isinstance(
            app.state.delivery_sync_submission, SubmissionEngine
        )
        assert PendingDeliveryNotFoundError in app.exception_handlers
