"""Router factory exposing the delivery engines to a local UI."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI

from delivery_sync.bulk_sync import BulkSyncEngine
from delivery_sync.config import DeliverySyncConfig
from delivery_sync.exceptions import register_exception_handlers
from delivery_sync.history import HistoryDetailLoader, HistoryFeed
from delivery_sync.protocols import PendingStore
from delivery_sync.routes.deliveries import router as deliveries_router
from delivery_sync.routes.history import router as history_router
from delivery_sync.submission import SubmissionEngine


def create_delivery_router(
    *,
    config: DeliverySyncConfig,
    submission: SubmissionEngine,
    bulk_sync: BulkSyncEngine,
    pending_store: PendingStore,
    history: HistoryFeed,
    detail_loader: HistoryDetailLoader,
) -> APIRouter:
    """Create a configured API router."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
        app.state.delivery_sync_config = config
        app.state.delivery_sync_submission = submission
        app.state.delivery_sync_bulk_sync = bulk_sync
        app.state.delivery_sync_pending_store = pending_store
        app.state.delivery_sync_history = history
        app.state.delivery_sync_detail_loader = detail_loader
        register_exception_handlers(app)
        yield
        await history.close()

    router = APIRouter(lifespan=lifespan)
    router.include_router(deliveries_router)
    router.include_router(history_router)
    return router
