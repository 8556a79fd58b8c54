"""History endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from delivery_sync.classifier import classify
from delivery_sync.dependencies import get_detail_loader, get_history_feed
from delivery_sync.exceptions import HistoryLoadError
from delivery_sync.history import (
    DetailFailure,
    HistoryDetailLoader,
    HistoryFeed,
    normalize_keyword,
)
from delivery_sync.schemas import (
    HistoryDetailResponse,
    HistoryItemResponse,
    HistoryPageResponse,
)
from delivery_sync.types import MediatorError

router = APIRouter()


@router.get("/history", response_model=HistoryPageResponse)
async def history_window(
    keyword: str | None = None,
    page_size: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=200),
    feed: HistoryFeed = Depends(get_history_feed),
) -> HistoryPageResponse:
    """Read a window of cached history, fetching pages as needed.

    A changed keyword waits out the feed's debounce window before the
    first page is fetched.
    """
    if page_size is not None and page_size != feed.page_size:
        feed.set_page_size(page_size)
    if normalize_keyword(keyword) != feed.keyword:
        feed.set_keyword(keyword)
    await feed.wait_idle()

    records, failure = await feed.pager.window(offset, limit)
    error = None
    if isinstance(failure, MediatorError):
        error = classify(failure.error).message
    return HistoryPageResponse(
        items=[HistoryItemResponse.from_record(r) for r in records],
        end_reached=feed.pager.end_reached,
        error=error,
    )


@router.get("/history/{code}", response_model=HistoryDetailResponse)
async def history_detail(
    code: str,
    loader: HistoryDetailLoader = Depends(get_detail_loader),
) -> HistoryDetailResponse:
    result = await loader.load(code)
    if isinstance(result, DetailFailure):
        raise HistoryLoadError(classify(result.error).message)
    return HistoryDetailResponse(**result.detail.model_dump())
