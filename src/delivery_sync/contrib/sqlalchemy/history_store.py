"""SQLAlchemy history cache and paging key store."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from delivery_sync.contrib.sqlalchemy.models import (
    HistoryModel,
    RemoteKeysModel,
)
from delivery_sync.types import HistoryRecord, PagingCursor


def _to_record(model: HistoryModel) -> HistoryRecord:
    return HistoryRecord(
        id=model.id,
        item=model.item,
        serial_number=model.serial_number,
        sim=model.sim,
        merchant=model.merchant,
        shop=model.shop,
        receiver=model.receiver,
        delivery_agent=model.delivery_agent,
        code=model.code,
        proof_file_ref=model.proof_file_ref,
        created_at=model.created_at,
        row_order=model.row_order,
    )


class SQLAlchemyHistoryStore:
    """Read-through cache of remote history plus its page keys."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self.session_factory = session_factory

    async def remote_keys(self, repo_id: str) -> PagingCursor | None:
        async with self.session_factory() as session:
            keys = await session.get(RemoteKeysModel, repo_id)
            if keys is None:
                return None
            return PagingCursor(
                repo_id=keys.repo_id,
                prev_key=keys.prev_key,
                next_key=keys.next_key,
            )

    async def write_page(
        self,
        repo_id: str,
        records: Sequence[HistoryRecord],
        *,
        prev_key: int | None,
        next_key: int | None,
        refresh: bool,
    ) -> None:
        """Store one fetched page and its cursor in a single transaction.

        On refresh the whole cache and every cursor are cleared first.
        """
        async with self.session_factory() as session, session.begin():
            if refresh:
                await session.execute(delete(HistoryModel))
                await session.execute(delete(RemoteKeysModel))
            for record in records:
                await session.merge(
                    HistoryModel(
                        id=record.id,
                        query_key=repo_id,
                        item=record.item,
                        serial_number=record.serial_number,
                        sim=record.sim,
                        merchant=record.merchant,
                        shop=record.shop,
                        receiver=record.receiver,
                        delivery_agent=record.delivery_agent,
                        code=record.code,
                        proof_file_ref=record.proof_file_ref,
                        created_at=record.created_at,
                        row_order=record.row_order,
                    )
                )
            await session.merge(
                RemoteKeysModel(
                    repo_id=repo_id, prev_key=prev_key, next_key=next_key
                )
            )

    async def list_history(
        self, query_key: str, offset: int = 0, limit: int | None = None
    ) -> list[HistoryRecord]:
        stmt = (
            select(HistoryModel)
            .where(HistoryModel.query_key == query_key)
            .order_by(HistoryModel.row_order)
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return [_to_record(row) for row in result.scalars().all()]

    async def count_history(self, query_key: str) -> int:
        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(HistoryModel)
                .where(HistoryModel.query_key == query_key)
            )
            return int(result.scalar_one())

    async def clear(self) -> None:
        async with self.session_factory() as session, session.begin():
            await session.execute(delete(HistoryModel))
            await session.execute(delete(RemoteKeysModel))
