"""SQLAlchemy pending repository tests."""

import asyncio
from dataclasses import replace
from datetime import UTC, datetime, timedelta

from conftest import make_record
from delivery_sync.types import PendingStatus


async def _next(iterator):
    return await asyncio.wait_for(anext(iterator), timeout=1)


async def test_insert_and_get(sqlalchemy_repository) -> None:
    pending_id = await sqlalchemy_repository.insert_pending(
        make_record(1, proof="/photos/1.jpg")
    )

    pending = await sqlalchemy_repository.get_pending(pending_id)

    assert pending.id == pending_id
    assert pending.serial_number == "SN-0001"
    assert pending.proof_file_ref == "/photos/1.jpg"
    assert pending.retry_count == 0
    assert pending.status is PendingStatus.PENDING


async def test_get_missing_is_none(sqlalchemy_repository) -> None:
    assert await sqlalchemy_repository.get_pending(404) is None


async def test_list_is_oldest_first(sqlalchemy_repository) -> None:
    for n in range(1, 4):
        await sqlalchemy_repository.insert_pending(make_record(n))

    pending = await sqlalchemy_repository.list_pending()

    assert [p.serial_number for p in pending] == [
        "SN-0001",
        "SN-0002",
        "SN-0003",
    ]


async def test_list_page(sqlalchemy_repository) -> None:
    for n in range(1, 6):
        await sqlalchemy_repository.insert_pending(make_record(n))

    page = await sqlalchemy_repository.list_pending_page(offset=1, limit=2)

    assert [p.serial_number for p in page] == ["SN-0002", "SN-0003"]
    assert await sqlalchemy_repository.count_pending() == 5


async def test_delete_by_ids(sqlalchemy_repository) -> None:
    ids = [
        await sqlalchemy_repository.insert_pending(make_record(n))
        for n in range(1, 4)
    ]

    removed = await sqlalchemy_repository.delete_by_ids(ids[:2])

    assert removed == 2
    remaining = await sqlalchemy_repository.list_pending()
    assert [p.id for p in remaining] == [ids[2]]


async def test_delete_nothing(sqlalchemy_repository) -> None:
    assert await sqlalchemy_repository.delete_by_ids([]) == 0


async def test_update_retry_count(sqlalchemy_repository) -> None:
    pending_id = await sqlalchemy_repository.insert_pending(make_record())
    next_retry_at = datetime.now(tz=UTC) + timedelta(minutes=2)

    updated = await sqlalchemy_repository.update_retry_count(
        pending_id,
        2,
        next_retry_at=next_retry_at,
        error="Connection refused",
        status=PendingStatus.FAILED,
    )

    pending = await sqlalchemy_repository.get_pending(pending_id)
    assert updated == 1
    assert pending.retry_count == 2
    assert pending.last_error == "Connection refused"
    assert pending.status is PendingStatus.FAILED
    assert pending.next_retry_at is not None


async def test_update_missing_row(sqlalchemy_repository) -> None:
    assert await sqlalchemy_repository.update_retry_count(9, 1) == 0


async def test_mark_status(sqlalchemy_repository) -> None:
    pending_id = await sqlalchemy_repository.insert_pending(make_record())

    await sqlalchemy_repository.mark_status(pending_id, PendingStatus.SENT)

    pending = await sqlalchemy_repository.get_pending(pending_id)
    assert pending.status is PendingStatus.SENT


async def test_save_replaces_row(sqlalchemy_repository) -> None:
    pending_id = await sqlalchemy_repository.insert_pending(make_record())
    pending = await sqlalchemy_repository.get_pending(pending_id)

    saved = await sqlalchemy_repository.save(
        replace(pending, receiver="Someone else", retry_count=4)
    )

    assert saved.id == pending_id
    assert saved.receiver == "Someone else"
    assert saved.retry_count == 4
    assert await sqlalchemy_repository.count_pending() == 1


async def test_observe_count_emits_on_change(sqlalchemy_repository) -> None:
    counts = sqlalchemy_repository.observe_pending_count()

    assert await _next(counts) == 0
    pending_id = await sqlalchemy_repository.insert_pending(make_record())
    assert await _next(counts) == 1
    await sqlalchemy_repository.delete_by_ids([pending_id])
    assert await _next(counts) == 0

    await counts.aclose()
    assert sqlalchemy_repository.notifier.subscriber_count == 0


async def test_observe_pending_emits_rows(sqlalchemy_repository) -> None:
    rows = sqlalchemy_repository.observe_pending()

    assert await _next(rows) == []
    await sqlalchemy_repository.insert_pending(make_record(5))
    emitted = await _next(rows)

    assert [p.serial_number for p in emitted] == ["SN-0005"]
    await rows.aclose()
