"""SQLAlchemy pending queue repository."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from delivery_sync.contrib.sqlalchemy.models import PendingDeliveryModel
from delivery_sync.notifier import ChangeNotifier
from delivery_sync.types import DeliveryRecord, PendingDelivery, PendingStatus


def _to_pending(model: PendingDeliveryModel) -> PendingDelivery:
    return PendingDelivery(
        id=model.id,
        item=model.item,
        serial_number=model.serial_number,
        sim=model.sim,
        merchant=model.merchant,
        shop=model.shop,
        receiver=model.receiver,
        delivery_agent=model.delivery_agent,
        proof_file_ref=model.proof_file_ref,
        created_at=model.created_at,
        retry_count=model.retry_count,
        status=PendingStatus(model.status),
        server_code=model.server_code,
        next_retry_at=model.next_retry_at,
        last_error=model.last_error,
    )


class SQLAlchemyPendingRepository:
    """Pending delivery queue backed by SQLAlchemy async sessions.

    Every committed insert, delete or update wakes the observers.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: ChangeNotifier | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.notifier = notifier or ChangeNotifier()

    def _ordered(self):
        return select(PendingDeliveryModel).order_by(
            PendingDeliveryModel.created_at, PendingDeliveryModel.id
        )

    async def insert_pending(self, record: DeliveryRecord) -> int:
        pending = PendingDeliveryModel(
            item=record.item,
            serial_number=record.serial_number,
            sim=record.sim,
            merchant=record.merchant,
            shop=record.shop,
            receiver=record.receiver,
            delivery_agent=record.delivery_agent,
            proof_file_ref=record.proof_file_ref,
            server_code=record.server_code,
            retry_count=0,
            status=PendingStatus.PENDING.value,
        )
        async with self.session_factory() as session:
            session.add(pending)
            await session.flush()
            pending_id = pending.id
            await session.commit()
        self.notifier.notify()
        return pending_id

    async def save(self, pending: PendingDelivery) -> PendingDelivery:
        """Insert or replace a full row, keeping its id."""
        async with self.session_factory() as session:
            merged = await session.merge(
                PendingDeliveryModel(
                    id=pending.id,
                    item=pending.item,
                    serial_number=pending.serial_number,
                    sim=pending.sim,
                    merchant=pending.merchant,
                    shop=pending.shop,
                    receiver=pending.receiver,
                    delivery_agent=pending.delivery_agent,
                    proof_file_ref=pending.proof_file_ref,
                    created_at=pending.created_at,
                    retry_count=pending.retry_count,
                    status=pending.status.value,
                    server_code=pending.server_code,
                    next_retry_at=pending.next_retry_at,
                    last_error=pending.last_error,
                )
            )
            await session.commit()
            await session.refresh(merged)
            saved = _to_pending(merged)
        self.notifier.notify()
        return saved

    async def get_pending(self, pending_id: int) -> PendingDelivery | None:
        async with self.session_factory() as session:
            pending = await session.get(PendingDeliveryModel, pending_id)
            return _to_pending(pending) if pending is not None else None

    async def list_pending(self) -> list[PendingDelivery]:
        """Point-in-time snapshot of the queue, oldest first."""
        async with self.session_factory() as session:
            result = await session.execute(self._ordered())
            return [_to_pending(row) for row in result.scalars().all()]

    async def list_pending_page(
        self, offset: int = 0, limit: int = 20
    ) -> list[PendingDelivery]:
        async with self.session_factory() as session:
            result = await session.execute(
                self._ordered().offset(offset).limit(limit)
            )
            return [_to_pending(row) for row in result.scalars().all()]

    async def count_pending(self) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(PendingDeliveryModel)
            )
            return int(result.scalar_one())

    async def delete_by_ids(self, ids: Sequence[int]) -> int:
        """Delete the given rows in one statement; returns rows removed."""
        if not ids:
            return 0
        async with self.session_factory() as session:
            result = await session.execute(
                delete(PendingDeliveryModel).where(
                    PendingDeliveryModel.id.in_(list(ids))
                )
            )
            await session.commit()
        self.notifier.notify()
        return result.rowcount or 0

    async def update_retry_count(
        self,
        pending_id: int,
        retry_count: int,
        *,
        next_retry_at: datetime | None = None,
        error: str | None = None,
        status: PendingStatus | None = None,
    ) -> int:
        values: dict[str, object] = {
            "retry_count": retry_count,
            "next_retry_at": next_retry_at,
        }
        if error is not None:
            values["last_error"] = error
        if status is not None:
            values["status"] = status.value
        async with self.session_factory() as session:
            result = await session.execute(
                update(PendingDeliveryModel)
                .where(PendingDeliveryModel.id == pending_id)
                .values(**values)
            )
            await session.commit()
        self.notifier.notify()
        return result.rowcount or 0

    async def mark_status(
        self, pending_id: int, status: PendingStatus
    ) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                update(PendingDeliveryModel)
                .where(PendingDeliveryModel.id == pending_id)
                .values(status=status.value)
            )
            await session.commit()
        self.notifier.notify()
        return result.rowcount or 0

    async def observe_pending_count(self) -> AsyncIterator[int]:
        """Yield the queue size now and again after every change."""
        async with self.notifier.subscribe() as changes:
            yield await self.count_pending()
            while True:
                await changes.get()
                yield await self.count_pending()

    async def observe_pending(self) -> AsyncIterator[list[PendingDelivery]]:
        """Yield the queue now and again after every change."""
        async with self.notifier.subscribe() as changes:
            yield await self.list_pending()
            while True:
                await changes.get()
                yield await self.list_pending()
