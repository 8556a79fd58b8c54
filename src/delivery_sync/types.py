"""Domain records and tagged result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum


class PendingStatus(StrEnum):
    """Local marker on a queued delivery."""

    PENDING = "PENDING"
    FAILED = "FAILED"
    SENT = "SENT"


@dataclass(frozen=True)
class DeliveryRecord:
    """A filled delivery form, as handed over by the UI."""

    item: str
    serial_number: str
    sim: str
    merchant: str
    shop: str
    receiver: str
    delivery_agent: str
    proof_file_ref: str | None = None
    server_code: str | None = None


@dataclass(frozen=True)
class PendingDelivery:
    """Snapshot of one row of the pending queue."""

    id: int
    item: str
    serial_number: str
    sim: str
    merchant: str
    shop: str
    receiver: str
    delivery_agent: str
    proof_file_ref: str | None
    created_at: datetime
    retry_count: int = 0
    status: PendingStatus = PendingStatus.PENDING
    server_code: str | None = None
    next_retry_at: datetime | None = None
    last_error: str | None = None


@dataclass(frozen=True)
class HistoryRecord:
    """One cached row of remote delivery history."""

    id: str
    item: str
    serial_number: str
    sim: str
    merchant: str
    shop: str
    receiver: str
    delivery_agent: str
    code: str
    proof_file_ref: str | None
    created_at: str | None
    row_order: int


@dataclass(frozen=True)
class PagingCursor:
    """Persisted page keys for one query context."""

    repo_id: str
    prev_key: int | None
    next_key: int | None


def is_success_status(status_code: int) -> bool:
    return 200 <= status_code <= 299


# --- Transport results ---


@dataclass(frozen=True)
class NetworkSuccess:
    """The server answered; any status code."""

    status_code: int
    body: str | None = None

    @property
    def ok(self) -> bool:
        return is_success_status(self.status_code)


@dataclass(frozen=True)
class NetworkFailure:
    """The request never produced a response."""

    error: str


NetworkResult = NetworkSuccess | NetworkFailure


# --- Submission results ---


@dataclass(frozen=True)
class Sent:
    """The remote endpoint acknowledged the delivery."""


@dataclass(frozen=True)
class Queued:
    """The delivery sits in the pending queue under ``local_id``."""

    local_id: int


@dataclass(frozen=True)
class SubmitFailure:
    error: str


SubmitResult = Sent | Queued | SubmitFailure


# --- Bulk sync results ---


@dataclass(frozen=True)
class SyncSuccess:
    count: int


@dataclass(frozen=True)
class NothingToSync:
    """The queue was empty; no request was made."""


@dataclass(frozen=True)
class SyncFailure:
    error: str


SyncResult = SyncSuccess | NothingToSync | SyncFailure


# --- History results ---


@dataclass(frozen=True)
class MediatorSuccess:
    end_of_pagination: bool


@dataclass(frozen=True)
class MediatorError:
    error: str


@dataclass(frozen=True)
class Discarded:
    """A newer request context started while this load was in flight."""


MediatorResult = MediatorSuccess | MediatorError | Discarded


@dataclass(frozen=True)
class LoadPage:
    """One page from the network-only paging source."""

    items: list[HistoryRecord] = field(default_factory=list)
    prev_key: int | None = None
    next_key: int | None = None


@dataclass(frozen=True)
class LoadError:
    error: str


LoadResult = LoadPage | LoadError


def failure_reason(result: NetworkResult) -> str:
    """Describe why a transport result does not count as delivered."""
    if isinstance(result, NetworkSuccess):
        return f"Server returned code {result.status_code}"
    return result.error
