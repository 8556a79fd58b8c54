"""Process-wide wiring of the transport, stores and engines."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx
from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from delivery_sync.bulk_sync import BulkSyncEngine
from delivery_sync.config import DeliverySyncConfig
from delivery_sync.contrib.sqlalchemy.history_store import (
    SQLAlchemyHistoryStore,
)
from delivery_sync.contrib.sqlalchemy.models import create_tables
from delivery_sync.contrib.sqlalchemy.repository import (
    SQLAlchemyPendingRepository,
)
from delivery_sync.exceptions import register_exception_handlers
from delivery_sync.guard import SyncGuard
from delivery_sync.history import HistoryDetailLoader, HistoryFeed
from delivery_sync.router import create_delivery_router
from delivery_sync.submission import SubmissionEngine
from delivery_sync.transport import DeliveryApiClient

logger = logging.getLogger(__name__)


@dataclass
class DeliveryServices:
    """Everything the app needs, built once and passed by reference."""

    config: DeliverySyncConfig
    client: DeliveryApiClient
    engine: AsyncEngine
    pending_store: SQLAlchemyPendingRepository
    history_store: SQLAlchemyHistoryStore | None
    guard: SyncGuard
    submission: SubmissionEngine
    bulk_sync: BulkSyncEngine
    history: HistoryFeed
    detail_loader: HistoryDetailLoader

    async def aclose(self) -> None:
        await self.history.close()
        await self.client.close()
        await self.engine.dispose()


async def create_services(
    config: DeliverySyncConfig | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    engine: AsyncEngine | None = None,
    cache_history: bool = True,
) -> DeliveryServices:
    """Build the shared services.

    With ``cache_history=False`` the history feed runs network-only and
    never touches the history tables.
    """
    config = config or DeliverySyncConfig()
    engine = engine or create_async_engine(config.database_url)
    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    try:
        await create_tables(engine)
    except SQLAlchemyError as exc:
        logger.error("Local store unavailable: %s", exc)
        await engine.dispose()
        raise
    history_store = (
        SQLAlchemyHistoryStore(session_factory) if cache_history else None
    )

    client = DeliveryApiClient(config, transport=transport)
    pending_store = SQLAlchemyPendingRepository(session_factory)
    guard = SyncGuard()
    return DeliveryServices(
        config=config,
        client=client,
        engine=engine,
        pending_store=pending_store,
        history_store=history_store,
        guard=guard,
        submission=SubmissionEngine(
            client, pending_store, guard=guard, config=config
        ),
        bulk_sync=BulkSyncEngine(
            client, pending_store, guard=guard, config=config
        ),
        history=HistoryFeed(client, history_store, config=config),
        detail_loader=HistoryDetailLoader(client),
    )


def create_app(services: DeliveryServices) -> FastAPI:
    """FastAPI app serving the delivery router for a local UI."""
    router = create_delivery_router(
        config=services.config,
        submission=services.submission,
        bulk_sync=services.bulk_sync,
        pending_store=services.pending_store,
        history=services.history,
        detail_loader=services.detail_loader,
    )
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(router)
    return app
