"""History feed with keyword debouncing, and history detail loading."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass

from pydantic import ValidationError

from delivery_sync.config import DeliverySyncConfig
from delivery_sync.paging import HistoryPager
from delivery_sync.protocols import DeliveryTransport, HistoryStore
from delivery_sync.schemas import HistoryDetail, parse_history_detail
from delivery_sync.types import (
    Discarded,
    MediatorResult,
    NetworkFailure,
    failure_reason,
)

logger = logging.getLogger(__name__)


def normalize_keyword(keyword: str | None) -> str | None:
    if keyword is None:
        return None
    keyword = keyword.strip()
    return keyword or None


class HistoryFeed:
    """Current history query and its pager.

    Keyword changes are debounced; page size changes apply at once.
    A change of either starts a new pager with a fresh ``REFRESH``.
    Results of loads started for an older query are discarded.
    """

    def __init__(
        self,
        transport: DeliveryTransport,
        store: HistoryStore | None = None,
        *,
        config: DeliverySyncConfig | None = None,
        keyword: str | None = None,
        page_size: int | None = None,
    ) -> None:
        self.transport = transport
        self.store = store
        self.config = config or DeliverySyncConfig()
        self._keyword = normalize_keyword(keyword)
        self._pending_keyword = self._keyword
        self._page_size = page_size or self.config.history_page_size
        self._generation = 0
        self._pager: HistoryPager | None = None
        self._debounce_task: asyncio.Task[None] | None = None
        self._refresh_task: asyncio.Task[None] | None = None
        self.last_result: MediatorResult | None = None

    @property
    def keyword(self) -> str | None:
        return self._keyword

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pager(self) -> HistoryPager:
        if self._pager is None:
            self._pager = self._new_pager()
        return self._pager

    def _new_pager(self) -> HistoryPager:
        generation = self._generation
        return HistoryPager(
            self.transport,
            self.store,
            keyword=self._keyword,
            page_size=self._page_size,
            config=self.config,
            is_active=lambda: generation == self._generation,
        )

    def set_keyword(self, keyword: str | None) -> None:
        """Schedule a new query once typing pauses for the debounce window."""
        self._pending_keyword = normalize_keyword(keyword)
        if self._debounce_task is not None:
            self._debounce_task.cancel()
        self._debounce_task = asyncio.get_running_loop().create_task(
            self._debounced()
        )

    async def _debounced(self) -> None:
        await asyncio.sleep(self.config.keyword_debounce_seconds)
        self._debounce_task = None
        self._apply(self._pending_keyword, self._page_size)

    def set_page_size(self, page_size: int) -> None:
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        self._apply(self._keyword, page_size)

    def _apply(self, keyword: str | None, page_size: int) -> None:
        if self._pager is not None and (keyword, page_size) == (
            self._keyword,
            self._page_size,
        ):
            return
        self._keyword = keyword
        self._page_size = page_size
        self._generation += 1
        self._pager = self._new_pager()
        logger.debug(
            "History query changed: keyword=%r page_size=%d",
            keyword,
            page_size,
        )
        self._refresh_task = asyncio.get_running_loop().create_task(
            self._run(self._pager.refresh(), self._generation)
        )

    async def _run(
        self, load: Awaitable[MediatorResult], generation: int
    ) -> None:
        result = await load
        if generation != self._generation or isinstance(result, Discarded):
            return
        self.last_result = result

    async def refresh(self) -> MediatorResult:
        """Restart the current query from page 1."""
        generation = self._generation
        result = await self.pager.refresh()
        return self._settle(result, generation)

    async def load_more(self) -> MediatorResult:
        generation = self._generation
        result = await self.pager.load_more()
        return self._settle(result, generation)

    def _settle(
        self, result: MediatorResult, generation: int
    ) -> MediatorResult:
        if generation != self._generation:
            return Discarded()
        if not isinstance(result, Discarded):
            self.last_result = result
        return result

    async def wait_idle(self) -> None:
        """Wait for any debounce window and refresh to finish."""
        while True:
            if self._debounce_task is not None:
                task = self._debounce_task
                if task.done():
                    self._debounce_task = None
                    continue
            elif self._refresh_task is not None:
                task = self._refresh_task
                if task.done():
                    return
            else:
                return
            await asyncio.wait({task})

    async def close(self) -> None:
        for task in (self._debounce_task, self._refresh_task):
            if task is not None and not task.done():
                task.cancel()
        self._debounce_task = None
        self._refresh_task = None


@dataclass(frozen=True)
class DetailLoaded:
    detail: HistoryDetail


@dataclass(frozen=True)
class DetailFailure:
    error: str


DetailResult = DetailLoaded | DetailFailure


class HistoryDetailLoader:
    """Fetch one delivery's details by code, straight from the server."""

    def __init__(self, transport: DeliveryTransport) -> None:
        self.transport = transport

    async def load(self, code: str) -> DetailResult:
        try:
            result = await self.transport.get_history_detail(code)
        except Exception as exc:
            logger.exception("History detail fetch raised unexpectedly")
            return DetailFailure(str(exc) or type(exc).__name__)
        if isinstance(result, NetworkFailure):
            return DetailFailure(result.error)
        if not result.ok:
            return DetailFailure(failure_reason(result))
        try:
            return DetailLoaded(parse_history_detail(result.body))
        except ValidationError as exc:
            logger.warning("Malformed history detail %s: %s", code, exc)
            return DetailFailure(f"Malformed history detail {code}")
