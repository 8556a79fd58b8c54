"""Remote-backed history paging with a local cache.

Paging always starts with a ``REFRESH`` of page 1 and walks forward with
``APPEND`` using the stored ``next_key``. Backward paging is not
supported: ``PREPEND`` reports the end of pagination at once.

With a ``HistoryStore`` every fetched page is written to the cache
together with its cursor in one transaction, and consumers read from
the cache. Without one the pager falls back to a network-only source
and keeps pages in memory.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from enum import StrEnum

from pydantic import ValidationError

from delivery_sync.config import DeliverySyncConfig
from delivery_sync.exceptions import HistoryLoadError
from delivery_sync.protocols import DeliveryTransport, HistoryStore
from delivery_sync.schemas import HistoryItem, parse_history_page
from delivery_sync.types import (
    Discarded,
    HistoryRecord,
    LoadError,
    LoadPage,
    LoadResult,
    MediatorError,
    MediatorResult,
    MediatorSuccess,
    NetworkFailure,
    failure_reason,
)

logger = logging.getLogger(__name__)

HISTORY_REPO_KEY = "HISTORY"


class LoadType(StrEnum):
    REFRESH = "refresh"
    APPEND = "append"
    PREPEND = "prepend"


def history_query_key(keyword: str | None) -> str:
    """Cursor namespace for a keyword; the constant key when unfiltered."""
    if keyword is None or not keyword.strip():
        return HISTORY_REPO_KEY
    return f"{HISTORY_REPO_KEY}:{keyword.strip()}"


def to_records(
    items: list[HistoryItem], *, page: int, limit: int
) -> list[HistoryRecord]:
    """Assign ``row_order = (page - 1) * limit + index`` to each item."""
    base = (page - 1) * limit
    return [
        item.to_record(page=page, index=index, row_order=base + index)
        for index, item in enumerate(items)
    ]


async def fetch_page(
    transport: DeliveryTransport,
    *,
    page: int,
    limit: int,
    keyword: str | None,
) -> list[HistoryItem] | str:
    """Fetch and parse one page; a string return is the failure reason."""
    try:
        result = await transport.get_history(
            page=page, limit=limit, keyword=keyword
        )
    except Exception as exc:
        logger.exception("History fetch raised unexpectedly")
        return str(exc) or type(exc).__name__
    if isinstance(result, NetworkFailure):
        return result.error
    if not result.ok:
        return failure_reason(result)
    try:
        return parse_history_page(result.body)
    except ValidationError as exc:
        logger.warning("Malformed history page %d: %s", page, exc)
        return f"Malformed history page {page}"


class HistoryRemoteMediator:
    """Fetch history pages and mirror them into the local cache."""

    def __init__(
        self,
        transport: DeliveryTransport,
        store: HistoryStore,
        *,
        keyword: str | None = None,
        page_size: int,
        config: DeliverySyncConfig,
        is_active: Callable[[], bool] | None = None,
    ) -> None:
        self.transport = transport
        self.store = store
        self.keyword = keyword
        self.query_key = history_query_key(keyword)
        self.limit = min(page_size, config.history_max_page_size)
        self.is_active = is_active

    async def load(self, load_type: LoadType) -> MediatorResult:
        if load_type is LoadType.PREPEND:
            return MediatorSuccess(end_of_pagination=True)

        if load_type is LoadType.REFRESH:
            page = 1
        else:
            try:
                keys = await self.store.remote_keys(self.query_key)
            except Exception as exc:
                logger.error("Could not read history cursor: %s", exc)
                return MediatorError(str(exc) or type(exc).__name__)
            if keys is None or keys.next_key is None:
                return MediatorSuccess(end_of_pagination=True)
            page = keys.next_key

        fetched = await fetch_page(
            self.transport,
            page=page,
            limit=self.limit,
            keyword=self.keyword,
        )
        if isinstance(fetched, str):
            return MediatorError(fetched)
        if self.is_active is not None and not self.is_active():
            logger.debug("Discarding superseded history page %d", page)
            return Discarded()

        end_of_pagination = len(fetched) < self.limit
        try:
            await self.store.write_page(
                self.query_key,
                to_records(fetched, page=page, limit=self.limit),
                prev_key=None if page == 1 else page - 1,
                next_key=None if end_of_pagination else page + 1,
                refresh=load_type is LoadType.REFRESH,
            )
        except Exception as exc:
            logger.error("Could not cache history page %d: %s", page, exc)
            return MediatorError(str(exc) or type(exc).__name__)
        return MediatorSuccess(end_of_pagination=end_of_pagination)


class HistoryPagingSource:
    """Network-only history pages, used when no cache is available."""

    def __init__(
        self,
        transport: DeliveryTransport,
        *,
        keyword: str | None = None,
        config: DeliverySyncConfig,
    ) -> None:
        self.transport = transport
        self.keyword = keyword
        self.config = config

    async def load(self, key: int | None, load_size: int) -> LoadResult:
        page = key or 1
        limit = min(load_size, self.config.history_max_page_size)
        fetched = await fetch_page(
            self.transport, page=page, limit=limit, keyword=self.keyword
        )
        if isinstance(fetched, str):
            return LoadError(fetched)
        return LoadPage(
            items=to_records(fetched, page=page, limit=limit),
            prev_key=None if page == 1 else page - 1,
            next_key=None if len(fetched) < limit else page + 1,
        )


class HistoryPager:
    """Lazy, restartable sequence of history records for one query.

    ``refresh`` and ``load_more`` return a ``MediatorResult`` in both
    modes. Iterating the pager yields every record, fetching pages on
    demand, and raises ``HistoryLoadError`` if a page fails.
    """

    def __init__(
        self,
        transport: DeliveryTransport,
        store: HistoryStore | None = None,
        *,
        keyword: str | None = None,
        page_size: int | None = None,
        config: DeliverySyncConfig | None = None,
        is_active: Callable[[], bool] | None = None,
    ) -> None:
        self.config = config or DeliverySyncConfig()
        self.keyword = keyword
        self.page_size = page_size or self.config.history_page_size
        self.query_key = history_query_key(keyword)
        self.store = store
        self.is_active = is_active
        self.end_reached = False
        self.last_error: str | None = None
        self._loaded = False
        self._lock = asyncio.Lock()
        self._items: list[HistoryRecord] = []
        self._next_key: int | None = None
        self.mediator: HistoryRemoteMediator | None = None
        self.source: HistoryPagingSource | None = None
        if store is not None:
            self.mediator = HistoryRemoteMediator(
                transport,
                store,
                keyword=keyword,
                page_size=self.page_size,
                config=self.config,
                is_active=is_active,
            )
        else:
            self.source = HistoryPagingSource(
                transport, keyword=keyword, config=self.config
            )

    @property
    def cached(self) -> bool:
        return self.mediator is not None

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def refresh(self) -> MediatorResult:
        async with self._lock:
            return await self._load(LoadType.REFRESH)

    async def load_more(self) -> MediatorResult:
        async with self._lock:
            if not self._loaded:
                return await self._load(LoadType.REFRESH)
            if self.end_reached:
                return MediatorSuccess(end_of_pagination=True)
            return await self._load(LoadType.APPEND)

    async def _load(self, load_type: LoadType) -> MediatorResult:
        if self.mediator is not None:
            result = await self.mediator.load(load_type)
        else:
            result = await self._load_uncached(load_type)
        if isinstance(result, MediatorSuccess):
            self._loaded = True
            self.end_reached = result.end_of_pagination
            self.last_error = None
        elif isinstance(result, MediatorError):
            self.last_error = result.error
        return result

    async def _load_uncached(self, load_type: LoadType) -> MediatorResult:
        assert self.source is not None
        if load_type is LoadType.PREPEND:
            return MediatorSuccess(end_of_pagination=True)
        if load_type is LoadType.APPEND and self._next_key is None:
            return MediatorSuccess(end_of_pagination=True)
        key = 1 if load_type is LoadType.REFRESH else self._next_key
        result = await self.source.load(key, self.page_size)
        if isinstance(result, LoadError):
            return MediatorError(result.error)
        if self.is_active is not None and not self.is_active():
            return Discarded()
        if load_type is LoadType.REFRESH:
            self._items = []
        self._items.extend(result.items)
        self._next_key = result.next_key
        return MediatorSuccess(end_of_pagination=result.next_key is None)

    async def count(self) -> int:
        if self.store is not None:
            return await self.store.count_history(self.query_key)
        return len(self._items)

    async def snapshot(
        self, offset: int = 0, limit: int | None = None
    ) -> list[HistoryRecord]:
        """Records loaded so far, in server order."""
        if self.store is not None:
            return await self.store.list_history(
                self.query_key, offset=offset, limit=limit
            )
        end = None if limit is None else offset + limit
        return list(self._items[offset:end])

    async def window(
        self, offset: int, limit: int
    ) -> tuple[list[HistoryRecord], MediatorResult | None]:
        """Load pages until ``offset + limit`` records are available.

        Returns the records of the window and the failing result, if a
        load failed on the way.
        """
        failure: MediatorResult | None = None
        if not self._loaded:
            result = await self.refresh()
            if not isinstance(result, MediatorSuccess):
                return await self.snapshot(offset, limit), result
        while not self.end_reached and await self.count() < offset + limit:
            result = await self.load_more()
            if not isinstance(result, MediatorSuccess):
                failure = result
                break
        return await self.snapshot(offset, limit), failure

    async def __aiter__(self) -> AsyncIterator[HistoryRecord]:
        if not self._loaded:
            self._raise_for(await self.refresh())
        index = 0
        while True:
            batch = await self.snapshot(offset=index)
            for record in batch:
                yield record
            index += len(batch)
            if self.end_reached:
                return
            self._raise_for(await self.load_more())

    @staticmethod
    def _raise_for(result: MediatorResult) -> None:
        if isinstance(result, MediatorError):
            raise HistoryLoadError(result.error)
        if isinstance(result, Discarded):
            raise HistoryLoadError("history query was superseded")
