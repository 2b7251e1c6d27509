"""
PaginationMerger - accumulates offset-cursor pages into one ordered collection.

Two sources share the same merge semantics:
- browse: ``fetch_page(offset, page_size)`` over the full collection
- search: ``search_page(query, offset, page_size)`` when a query is set,
  letting the service filter instead of downloading everything

Changing the query or page size drops the accumulation and restarts from
offset 0. A fetch that was started before a reset never lands afterwards.
"""

import asyncio
from typing import Any, Awaitable, Callable, Generic, Hashable, TypeVar

from loguru import logger

from cemetery.registry.search import record_key

R = TypeVar("R")


PageFetcher = Callable[[int, int], Awaitable[Any]]
SearchFetcher = Callable[[str, int, int], Awaitable[Any]]


class PaginationMerger(Generic[R]):
    """
    Cursor-chained accumulation of pages.

    Usage:
        merger = PaginationMerger(service.get_paginated_graves, page_size=50)
        await merger.fetch_next()
        while merger.has_more:
            await merger.fetch_next()
        graves = merger.items
    """

    INITIAL_OFFSET = 0

    def __init__(
        self,
        fetch_page: PageFetcher,
        page_size: int,
        search_page: SearchFetcher | None = None,
        query: str = "",
        key: Callable[[R], Hashable] = record_key,
    ):
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        self._fetch_page = fetch_page
        self._search_page = search_page
        self._key = key
        self._page_size = page_size
        self._query = query.strip()

        self._pages: list[Any] = []
        self._items: list[R] = []
        self._seen: set[Hashable] = set()
        self._fetched_offsets: set[int] = set()
        self._next_offset: int | None = self.INITIAL_OFFSET
        self._in_flight: asyncio.Future[Any] | None = None
        self.generation = 0

    @property
    def query(self) -> str:
        return self._query

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def is_search(self) -> bool:
        return bool(self._query) and self._search_page is not None

    @property
    def items(self) -> list[R]:
        return list(self._items)

    @property
    def pages(self) -> list[Any]:
        return list(self._pages)

    @property
    def total(self) -> int | None:
        """Total count snapshot reported with the first page."""
        if not self._pages:
            return None
        return self._pages[0].total_graves

    @property
    def has_more(self) -> bool:
        """True until a fetched page comes back without a next offset."""
        if not self._pages:
            return True
        return self._next_offset is not None

    @property
    def is_fetching(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    async def fetch_next(self) -> list[R]:
        """
        Fetch the page after the last accumulated one.

        Concurrent callers share the same in-flight fetch. Returns the records
        the page added (empty when there is nothing more to fetch or the fetch
        was superseded by a reset).
        """
        if self._in_flight is not None and not self._in_flight.done():
            return await asyncio.shield(self._in_flight)

        if not self.has_more:
            return []

        offset = self._next_offset
        if offset is None:
            return []
        if offset in self._fetched_offsets:
            logger.warning(f"Offset {offset} already fetched, stopping cursor chain")
            self._next_offset = None
            return []

        self._in_flight = asyncio.ensure_future(self._load(offset, self.generation))
        return await asyncio.shield(self._in_flight)

    async def fetch_all(self) -> list[R]:
        """Follow the cursor chain to the end."""
        while self.has_more:
            await self.fetch_next()
        return self.items

    async def _load(self, offset: int, generation: int) -> list[R]:
        if self.is_search:
            page = await self._search_page(self._query, offset, self._page_size)
        else:
            page = await self._fetch_page(offset, self._page_size)

        if generation != self.generation:
            logger.debug(f"Dropping superseded page at offset {offset}")
            return []

        self._fetched_offsets.add(offset)
        self._pages.append(page)
        self._next_offset = page.next_offset

        added = []
        for record in page.graves:
            key = self._key(record)
            if key in self._seen:
                continue
            self._seen.add(key)
            added.append(record)
        self._items.extend(added)
        return added

    def set_query(self, query: str) -> bool:
        """Switch between browse and search; resets if the query changed."""
        query = query.strip()
        if query == self._query:
            return False
        self._query = query
        self.reset()
        return True

    def set_page_size(self, page_size: int) -> bool:
        if page_size <= 0:
            raise ValueError("page_size must be positive")
        if page_size == self._page_size:
            return False
        self._page_size = page_size
        self.reset()
        return True

    def reset(self) -> None:
        """Drop the accumulation; the next fetch starts at offset 0."""
        self.generation += 1
        self._pages = []
        self._items = []
        self._seen = set()
        self._fetched_offsets = set()
        self._next_offset = self.INITIAL_OFFSET
        self._in_flight = None
