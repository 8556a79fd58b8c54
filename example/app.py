"""FastAPI example app demonstrating delivery-sync.

The remote deliveries API is simulated in-process, so the demo runs
without network access. Toggle ``POST /delivery-sim/outage`` to watch
submissions queue up and drain again.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from delivery_sim import create_sim_app, sim_router
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from delivery_sync import (
    BulkSyncEngine,
    DeliveryApiClient,
    DeliverySyncConfig,
    HistoryFeed,
    SubmissionEngine,
    create_delivery_router,
)
from delivery_sync.contrib.sqlalchemy.history_store import (
    SQLAlchemyHistoryStore,
)
from delivery_sync.contrib.sqlalchemy.models import create_tables
from delivery_sync.contrib.sqlalchemy.repository import (
    SQLAlchemyPendingRepository,
)
from delivery_sync.exceptions import register_exception_handlers
from delivery_sync.guard import SyncGuard
from delivery_sync.history import HistoryDetailLoader
from delivery_sync.retry import process_due_retries

logger = logging.getLogger(__name__)

RETRY_INTERVAL_SECONDS = 30.0

# --- Database setup ---

# DELIVERY_SYNC_DATABASE_URL selects the local store.
config = DeliverySyncConfig(base_url="http://delivery-sim")
engine = create_async_engine(config.database_url, echo=False)
async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

# --- Library integration ---

client = DeliveryApiClient(
    config, transport=httpx.ASGITransport(app=create_sim_app())
)
pending_store = SQLAlchemyPendingRepository(async_session)
history_store = SQLAlchemyHistoryStore(async_session)
guard = SyncGuard()
submission = SubmissionEngine(
    client, pending_store, guard=guard, config=config
)
bulk_sync = BulkSyncEngine(client, pending_store, guard=guard, config=config)
history = HistoryFeed(client, history_store, config=config)

delivery_router = create_delivery_router(
    config=config,
    submission=submission,
    bulk_sync=bulk_sync,
    pending_store=pending_store,
    history=history,
    detail_loader=HistoryDetailLoader(client),
)


async def retry_loop(interval: float) -> None:
    """Retry due queued deliveries until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            processed = await process_due_retries(
                engine=submission, store=pending_store, config=config
            )
        except Exception:
            logger.exception("Background retry pass failed")
            continue
        if processed:
            logger.info("Background retry processed %d deliveries", processed)


# --- FastAPI app ---


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    await create_tables(engine)
    task = asyncio.create_task(retry_loop(RETRY_INTERVAL_SECONDS))
    yield
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    await client.close()
    await engine.dispose()


app = FastAPI(
    title="delivery-sync demo",
    lifespan=lifespan,
)
register_exception_handlers(app)
app.include_router(delivery_router, prefix="/api/local")
app.include_router(sim_router)
