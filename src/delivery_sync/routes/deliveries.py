"""Submission and pending queue endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from delivery_sync.bulk_sync import BulkSyncEngine
from delivery_sync.classifier import classify
from delivery_sync.dependencies import (
    get_bulk_sync,
    get_pending_store,
    get_submission,
)
from delivery_sync.exceptions import (
    PendingDeliveryNotFoundError,
    SyncInProgressError,
)
from delivery_sync.protocols import PendingStore
from delivery_sync.schemas import (
    PendingCountResponse,
    PendingDeliveryResponse,
    SubmitDeliveryRequest,
    SubmitResponse,
    SyncResponse,
)
from delivery_sync.submission import (
    NOT_FOUND,
    SYNC_IN_PROGRESS,
    SubmissionEngine,
)
from delivery_sync.types import (
    NothingToSync,
    Queued,
    Sent,
    SubmitResult,
    SyncFailure,
    SyncSuccess,
)

router = APIRouter()


def _submit_response(result: SubmitResult) -> SubmitResponse:
    if isinstance(result, Sent):
        return SubmitResponse(result="sent")
    if isinstance(result, Queued):
        return SubmitResponse(
            result="queued",
            id=result.local_id,
            message="Delivery saved and will be sent later",
        )
    return SubmitResponse(
        result="failure", message=classify(result.error).message
    )


@router.post("/deliveries", response_model=SubmitResponse)
async def submit_delivery(
    body: SubmitDeliveryRequest,
    submission: SubmissionEngine = Depends(get_submission),
) -> SubmitResponse:
    """Send a delivery now, or queue it for later."""
    return _submit_response(await submission.submit(body.to_record()))


@router.get(
    "/deliveries/pending",
    response_model=list[PendingDeliveryResponse],
)
async def list_pending(
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=200),
    store: PendingStore = Depends(get_pending_store),
) -> list[PendingDeliveryResponse]:
    """List queued deliveries, oldest first."""
    pending = await store.list_pending_page(offset=offset, limit=limit)
    return [PendingDeliveryResponse.from_pending(p) for p in pending]


@router.get(
    "/deliveries/pending/count",
    response_model=PendingCountResponse,
)
async def pending_count(
    store: PendingStore = Depends(get_pending_store),
) -> PendingCountResponse:
    return PendingCountResponse(count=await store.count_pending())


@router.get(
    "/deliveries/pending/{pending_id}",
    response_model=PendingDeliveryResponse,
)
async def get_pending(
    pending_id: int,
    store: PendingStore = Depends(get_pending_store),
) -> PendingDeliveryResponse:
    pending = await store.get_pending(pending_id)
    if pending is None:
        raise PendingDeliveryNotFoundError(pending_id)
    return PendingDeliveryResponse.from_pending(pending)


@router.post("/deliveries/pending/sync", response_model=SyncResponse)
async def sync_pending(
    bulk_sync: BulkSyncEngine = Depends(get_bulk_sync),
) -> SyncResponse:
    """Send every queued delivery in one bulk request."""
    result = await bulk_sync.sync_all()
    if isinstance(result, SyncSuccess):
        return SyncResponse(
            result="success",
            count=result.count,
            message=f"{result.count} deliveries synced",
        )
    if isinstance(result, NothingToSync):
        return SyncResponse(
            result="nothing_to_sync", message="Nothing to sync"
        )
    if isinstance(result, SyncFailure) and result.error == SYNC_IN_PROGRESS:
        raise SyncInProgressError(SYNC_IN_PROGRESS)
    classification = classify(result.error)
    return SyncResponse(
        result="failure",
        message=classification.message,
        category=str(classification.category),
    )


@router.post(
    "/deliveries/pending/{pending_id}/sync",
    response_model=SubmitResponse,
)
async def sync_single_pending(
    pending_id: int,
    submission: SubmissionEngine = Depends(get_submission),
) -> SubmitResponse:
    """Retry one queued delivery."""
    result = await submission.sync_single(pending_id)
    if not isinstance(result, Sent | Queued):
        if result.error == NOT_FOUND:
            raise PendingDeliveryNotFoundError(pending_id)
        if result.error == SYNC_IN_PROGRESS:
            raise SyncInProgressError(SYNC_IN_PROGRESS)
    if isinstance(result, Queued):
        pending = await submission.store.get_pending(pending_id)
        reason = pending.last_error if pending is not None else None
        return SubmitResponse(
            result="queued",
            id=result.local_id,
            message=classify(reason).message,
        )
    return _submit_response(result)
