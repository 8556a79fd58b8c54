"""Drain the whole pending queue in one bulk request."""

from __future__ import annotations

import logging

from delivery_sync.config import DeliverySyncConfig
from delivery_sync.guard import SyncGuard
from delivery_sync.proof import delete_proof, encode_proof
from delivery_sync.protocols import DeliveryTransport, PendingStore
from delivery_sync.retry import bump_retry
from delivery_sync.schemas import DeliveryPayload
from delivery_sync.submission import SYNC_IN_PROGRESS
from delivery_sync.types import (
    NetworkFailure,
    NetworkResult,
    NetworkSuccess,
    NothingToSync,
    PendingDelivery,
    SyncFailure,
    SyncResult,
    SyncSuccess,
    failure_reason,
)

logger = logging.getLogger(__name__)


class BulkSyncEngine:
    """Send every queued delivery at once.

    Only the snapshot read at the start is touched: rows queued while
    the request is in flight wait for the next sync.
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

    @property
    def syncing(self) -> bool:
        return self.guard.syncing

    async def _build_payloads(
        self, snapshot: list[PendingDelivery]
    ) -> list[dict[str, str]]:
        payloads = []
        for pending in snapshot:
            proof = await encode_proof(pending.proof_file_ref)
            payloads.append(
                DeliveryPayload.from_record(pending, proof).to_wire()
            )
        return payloads

    async def _post(self, snapshot: list[PendingDelivery]) -> NetworkResult:
        try:
            payloads = await self._build_payloads(snapshot)
            return await self.transport.post_deliveries_bulk(payloads)
        except Exception as exc:
            logger.exception("Bulk send raised unexpectedly")
            return NetworkFailure(str(exc) or type(exc).__name__)

    async def sync_all(self) -> SyncResult:
        async with self.guard.try_acquire() as acquired:
            if not acquired:
                return SyncFailure(SYNC_IN_PROGRESS)

            snapshot = await self.store.list_pending()
            if not snapshot:
                return NothingToSync()

            result = await self._post(snapshot)
            if isinstance(result, NetworkSuccess) and result.ok:
                for pending in snapshot:
                    await delete_proof(pending.proof_file_ref)
                ids = [pending.id for pending in snapshot]
                await self.store.delete_by_ids(ids)
                logger.info("Bulk sync sent %d deliveries", len(ids))
                return SyncSuccess(len(ids))

            reason = failure_reason(result)
            for pending in snapshot:
                await bump_retry(
                    self.store, pending, error=reason, config=self.config
                )
            logger.warning(
                "Bulk sync of %d deliveries failed: %s",
                len(snapshot),
                reason,
            )
            return SyncFailure(reason)
