"""In-process change notification for store observers."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class ChangeNotifier:
    """Fan out "something changed" signals to any number of subscribers.

    Signals are coalesced: a subscriber that has not yet consumed the
    previous signal does not receive a second one.
    """

    def __init__(self) -> None:
        self._subscribers: set[asyncio.Queue[None]] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @asynccontextmanager
    async def subscribe(self) -> AsyncIterator[asyncio.Queue[None]]:
        queue: asyncio.Queue[None] = asyncio.Queue(maxsize=1)
        self._subscribers.add(queue)
        try:
            yield queue
        finally:
            self._subscribers.discard(queue)

    def notify(self) -> None:
        for queue in self._subscribers:
            if queue.empty():
                queue.put_nowait(None)
