"""Collaborator protocols consumed by the engines."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from delivery_sync.types import (
    DeliveryRecord,
    HistoryRecord,
    NetworkResult,
    PagingCursor,
    PendingDelivery,
    PendingStatus,
)


@runtime_checkable
class DeliveryTransport(Protocol):
    """Outbound calls to the remote deliveries API."""

    async def post_delivery(
        self, payload: dict[str, Any]
    ) -> NetworkResult: ...

    async def post_deliveries_bulk(
        self, payloads: Sequence[dict[str, Any]]
    ) -> NetworkResult: ...

    async def get_history(
        self,
        page: int = 1,
        limit: int = 20,
        keyword: str | None = None,
    ) -> NetworkResult: ...

    async def get_history_detail(self, code: str) -> NetworkResult: ...


@runtime_checkable
class PendingStore(Protocol):
    """Storage for the pending delivery queue."""

    async def insert_pending(self, record: DeliveryRecord) -> int: ...

    async def get_pending(self, pending_id: int) -> PendingDelivery | None: ...

    async def list_pending(self) -> list[PendingDelivery]: ...

    async def list_pending_page(
        self, offset: int = 0, limit: int = 20
    ) -> list[PendingDelivery]: ...

    async def count_pending(self) -> int: ...

    async def delete_by_ids(self, ids: Sequence[int]) -> int: ...

    async def update_retry_count(
        self,
        pending_id: int,
        retry_count: int,
        *,
        next_retry_at: datetime | None = None,
        error: str | None = None,
        status: PendingStatus | None = None,
    ) -> int: ...

    async def mark_status(
        self, pending_id: int, status: PendingStatus
    ) -> int: ...

    def observe_pending_count(self) -> AsyncIterator[int]: ...


@runtime_checkable
class HistoryStore(Protocol):
    """Storage for the history cache and its paging cursors."""

    async def remote_keys(self, repo_id: str) -> PagingCursor | None: ...

    async def write_page(
        self,
        repo_id: str,
        records: Sequence[HistoryRecord],
        *,
        prev_key: int | None,
        next_key: int | None,
        refresh: bool,
    ) -> None: ...

    async def list_history(
        self, query_key: str, offset: int = 0, limit: int | None = None
    ) -> list[HistoryRecord]: ...

    async def count_history(self, query_key: str) -> int: ...
