"""Send-now-or-queue submission of single deliveries."""

from __future__ import annotations

import logging

from delivery_sync.config import DeliverySyncConfig
from delivery_sync.guard import SyncGuard
from delivery_sync.proof import delete_proof, encode_proof
from delivery_sync.protocols import DeliveryTransport, PendingStore
from delivery_sync.retry import bump_retry
from delivery_sync.schemas import DeliveryPayload
from delivery_sync.types import (
    DeliveryRecord,
    NetworkFailure,
    NetworkResult,
    NetworkSuccess,
    PendingDelivery,
    Queued,
    Sent,
    SubmitFailure,
    SubmitResult,
    failure_reason,
)

logger = logging.getLogger(__name__)

NOT_FOUND = "not found"
SYNC_IN_PROGRESS = "sync in progress"


class SubmissionEngine:
    """Decide between sending a delivery now and queueing it.

    The network outcome always comes first; the queue is only written
    as a consequence of it.
    """

    def __init__(
        self,
        transport: DeliveryTransport,
        store: PendingStore,
        *,
        guard: SyncGuard | None = None,
        config: DeliverySyncConfig | None = None,
    ) -> None:
        self.transport = transport
        self.store = store
        self.guard = guard or SyncGuard()
        self.config = config or DeliverySyncConfig()

    async def _send(
        self, record: DeliveryRecord | PendingDelivery
    ) -> NetworkResult:
        try:
            proof = await encode_proof(record.proof_file_ref)
            payload = DeliveryPayload.from_record(record, proof)
            return await self.transport.post_delivery(payload.to_wire())
        except Exception as exc:
            logger.exception("Delivery send raised unexpectedly")
            return NetworkFailure(str(exc) or type(exc).__name__)

    async def submit(self, record: DeliveryRecord) -> SubmitResult:
        """Send ``record`` now, or queue it exactly once on any failure."""
        result = await self._send(record)
        if isinstance(result, NetworkSuccess) and result.ok:
            await delete_proof(record.proof_file_ref)
            logger.info("Delivery %s sent", record.serial_number)
            return Sent()

        reason = failure_reason(result)
        try:
            local_id = await self.store.insert_pending(record)
        except Exception as exc:
            logger.error("Could not queue delivery: %s", exc)
            return SubmitFailure(str(exc) or type(exc).__name__)
        logger.warning("Delivery queued as %s: %s", local_id, reason)
        return Queued(local_id)

    async def sync_single(self, local_id: int) -> SubmitResult:
        """Retry one queued delivery; the row is kept on failure."""
        async with self.guard.try_acquire(local_id) as acquired:
            if not acquired:
                return SubmitFailure(SYNC_IN_PROGRESS)

            pending = await self.store.get_pending(local_id)
            if pending is None:
                return SubmitFailure(NOT_FOUND)

            result = await self._send(pending)
            if isinstance(result, NetworkSuccess) and result.ok:
                await delete_proof(pending.proof_file_ref)
                await self.store.delete_by_ids([pending.id])
                logger.info("Queued delivery %s sent", pending.id)
                return Sent()

            reason = failure_reason(result)
            retry_count = await bump_retry(
                self.store, pending, error=reason, config=self.config
            )
            logger.warning(
                "Queued delivery %s failed again (retry %d): %s",
                pending.id,
                retry_count,
                reason,
            )
            return Queued(pending.id)
