"""Background retry of queued deliveries with exponential backoff."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from delivery_sync.config import DeliverySyncConfig
from delivery_sync.types import PendingDelivery, PendingStatus, Sent

if TYPE_CHECKING:
    from delivery_sync.protocols import PendingStore
    from delivery_sync.submission import SubmissionEngine

logger = logging.getLogger(__name__)


def compute_next_retry_at(
    attempt: int,
    backoff_seconds: int,
    *,
    now: datetime | None = None,
) -> datetime:
    """Compute the next retry time with exponential backoff.

    delay = backoff_seconds * 2^(attempt - 1)
    """
    delay = backoff_seconds * (2 ** (max(attempt, 1) - 1))
    return (now or datetime.now(tz=UTC)) + timedelta(seconds=delay)


def is_exhausted(retry_count: int, max_attempts: int) -> bool:
    return retry_count >= max_attempts


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def is_due(pending: PendingDelivery, now: datetime) -> bool:
    if pending.next_retry_at is None:
        return True
    return _as_utc(pending.next_retry_at) <= now


async def process_due_retries(
    *,
    engine: SubmissionEngine,
    store: PendingStore,
    config: DeliverySyncConfig,
    now: datetime | None = None,
) -> int:
    """Retry every queued delivery whose backoff has elapsed.

    Rows at the retry ceiling are flagged ``FAILED`` and left in the
    queue for a manual sync. Returns the number of rows processed.
    """
    current = now or datetime.now(tz=UTC)
    processed = 0

    for pending in await store.list_pending():
        if is_exhausted(pending.retry_count, config.retry_max_attempts):
            if pending.status != PendingStatus.FAILED:
                logger.warning(
                    "Retry exhausted for delivery %s after %d attempts",
                    pending.id,
                    pending.retry_count,
                )
                await store.mark_status(pending.id, PendingStatus.FAILED)
                processed += 1
            continue

        if not is_due(pending, current):
            continue

        result = await engine.sync_single(pending.id)
        if isinstance(result, Sent):
            logger.info("Retry of delivery %s succeeded", pending.id)
        else:
            logger.info(
                "Retry of delivery %s (attempt %d) failed: %s",
                pending.id,
                pending.retry_count + 1,
                result,
            )
        processed += 1

    return processed


async def bump_retry(
    store: PendingStore,
    pending: PendingDelivery,
    *,
    error: str,
    config: DeliverySyncConfig,
) -> int:
    """Record one more failed send attempt on a queued row, in place."""
    retry_count = pending.retry_count + 1
    status = (
        PendingStatus.FAILED
        if is_exhausted(retry_count, config.retry_max_attempts)
        else PendingStatus.PENDING
    )
    await store.update_retry_count(
        pending.id,
        retry_count,
        next_retry_at=compute_next_retry_at(
            retry_count, config.retry_backoff_seconds
        ),
        error=error,
        status=status,
    )
    return retry_count
