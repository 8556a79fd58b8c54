"""SQLAlchemy pending queue, history cache and paging key models."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import BigInteger, DateTime, Integer, String, Text
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from delivery_sync.types import PendingStatus


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""


class PendingDeliveryModel(Base):
    """Delivery not yet acknowledged by the remote endpoint."""

    __tablename__ = "pending_deliveries"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    item: Mapped[str] = mapped_column(String(255))
    serial_number: Mapped[str] = mapped_column(String(128))
    sim: Mapped[str] = mapped_column(String(128))
    merchant: Mapped[str] = mapped_column(String(255))
    shop: Mapped[str] = mapped_column(String(255))
    receiver: Mapped[str] = mapped_column(String(255))
    delivery_agent: Mapped[str] = mapped_column(String(255))
    proof_file_ref: Mapped[str | None] = mapped_column(
        String(1024), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, index=True
    )
    retry_count: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(
        String(16), default=PendingStatus.PENDING.value
    )
    server_code: Mapped[str | None] = mapped_column(
        String(128), nullable=True
    )
    next_retry_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)


class HistoryModel(Base):
    """Cached history row; ``row_order`` preserves server order."""

    __tablename__ = "history_deliveries"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    query_key: Mapped[str] = mapped_column(String(255), index=True)
    item: Mapped[str] = mapped_column(String(255), default="")
    serial_number: Mapped[str] = mapped_column(String(128), default="")
    sim: Mapped[str] = mapped_column(String(128), default="")
    merchant: Mapped[str] = mapped_column(String(255), default="")
    shop: Mapped[str] = mapped_column(String(255), default="")
    receiver: Mapped[str] = mapped_column(String(255), default="")
    delivery_agent: Mapped[str] = mapped_column(String(255), default="")
    code: Mapped[str] = mapped_column(String(255), default="")
    proof_file_ref: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[str | None] = mapped_column(String(64), nullable=True)
    row_order: Mapped[int] = mapped_column(BigInteger, index=True)


class RemoteKeysModel(Base):
    """Page keys for one history query context."""

    __tablename__ = "remote_keys"

    repo_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    prev_key: Mapped[int | None] = mapped_column(Integer, nullable=True)
    next_key: Mapped[int | None] = mapped_column(Integer, nullable=True)


async def create_tables(engine: AsyncEngine) -> None:
    """Create every table of the local store if missing."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
