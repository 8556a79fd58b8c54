"""Delivery sync exceptions and their FastAPI handlers.

Expected outcomes (sent, queued, failed sync) are result values, not
exceptions. These exceptions cover lookups and conditions the router
has to turn into HTTP errors.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class DeliverySyncError(Exception):
    """Base exception for delivery sync errors."""


class PendingDeliveryNotFoundError(DeliverySyncError):
    def __init__(self, pending_id: int) -> None:
        super().__init__(f"Pending delivery {pending_id} not found")
        self.pending_id = pending_id


class SyncInProgressError(DeliverySyncError):
    """Another queue sync is already running."""


class HistoryLoadError(DeliverySyncError):
    """A history page or detail could not be loaded."""


def register_exception_handlers(app: FastAPI) -> None:
    """Register delivery sync exception handlers on a FastAPI app.

    More specific handlers must be registered first so FastAPI
    matches them before the generic DeliverySyncError handler.

    Handler order (most specific first):
    1. PendingDeliveryNotFoundError → 404
    2. SyncInProgressError → 409
    3. HistoryLoadError → 502
    4. DeliverySyncError → 400 (catch-all)
    """

    @app.exception_handler(PendingDeliveryNotFoundError)
    async def _not_found(
        request: Request,
        exc: PendingDeliveryNotFoundError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={
                "detail": str(exc),
                "code": "pending_delivery_not_found",
            },
        )

    @app.exception_handler(SyncInProgressError)
    async def _sync_in_progress(
        request: Request,
        exc: SyncInProgressError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={
                "detail": str(exc),
                "code": "sync_in_progress",
            },
        )

    @app.exception_handler(HistoryLoadError)
    async def _history_load(
        request: Request,
        exc: HistoryLoadError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=502,
            content={
                "detail": str(exc),
                "code": "history_load_error",
            },
        )

    @app.exception_handler(DeliverySyncError)
    async def _delivery_sync_error(
        request: Request,
        exc: DeliverySyncError,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "detail": str(exc),
                "code": "delivery_sync_error",
            },
        )
