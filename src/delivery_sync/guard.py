"""Single-flight guard shared by single and bulk sync."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class SyncGuard:
    """Allow at most one queue sync in flight.

    ``try_acquire`` never waits: it yields ``False`` when another sync
    already holds the guard, so the caller can report "sync in progress".
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._single_syncing: int | None = None

    @property
    def syncing(self) -> bool:
        return self._lock.locked()

    @property
    def single_syncing(self) -> int | None:
        """Id of the queued delivery being retried alone, if any."""
        return self._single_syncing

    @asynccontextmanager
    async def try_acquire(
        self, pending_id: int | None = None
    ) -> AsyncIterator[bool]:
        if self._lock.locked():
            yield False
            return
        async with self._lock:
            self._single_syncing = pending_id
            try:
                yield True
            finally:
                self._single_syncing = None
