"""Pagination engine running the three pagination strategies."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from math import ceil
from typing import Any, List, Optional, Tuple

from fastapi_getitems.errors import ConfigurationError
from fastapi_getitems.expressions import CompiledQuery
from fastapi_getitems.models import PaginatedData, PaginationStrategy
from fastapi_getitems.sources import DataSource

logger = logging.getLogger(__name__)


class PaginationEngine:
    """
    Engine for paginating compiled queries and building paginated results.

    - NONE fetches ``page_size`` rows.
    - CHEAP fetches one extra row to tell whether a next page exists.
    - EXPENSIVE fetches the page and counts the filtered set concurrently, on
      two independent instances of the data source.
    """

    def __init__(
        self,
        strategy: PaginationStrategy,
        page: int,
        page_size: int,
        skip: int = 0,
        total_count: Optional[int] = None,
    ):
        """
        Initialize PaginationEngine.

        Args:
            strategy: Pagination strategy
            page: 1-based page number
            page_size: Items per page
            skip: Extra offset applied after the page offset
            total_count: Precomputed total (spares the count in EXPENSIVE mode)
        """
        self.strategy = strategy
        self.page = page
        self.page_size = page_size
        self.skip = skip
        self.total_count = total_count

    @property
    def offset(self) -> int:
        page_offset = self.page_size * (self.page - 1) if self.page > 1 else 0
        return page_offset + self.skip

    @property
    def limit(self) -> int:
        if self.strategy == PaginationStrategy.CHEAP:
            return self.page_size + 1
        return self.page_size

    def check_source(self, source: DataSource) -> None:
        """
        Fail fast when the source cannot run the strategy.

        Raises:
            ConfigurationError: If EXPENSIVE is requested on a non-concurrent source
        """
        if self.strategy == PaginationStrategy.EXPENSIVE and not source.concurrent:
            raise ConfigurationError(
                f"EXPENSIVE pagination needs a data source that can run the page fetch "
                f"and the count concurrently, which {type(source).__name__} cannot. "
                f"Use a session factory source, or the CHEAP or NONE pagination strategy."
            )

    # --- Sync methods ---

    def paginate(self, source: DataSource, compiled: CompiledQuery) -> PaginatedData[Any]:
        """
        Execute pagination on a compiled query.

        Args:
            source: Data source to query
            compiled: Compiled predicate and ordering

        Returns:
            PaginatedData: Page of items with pagination metadata
        """
        self.check_source(source)
        logger.debug(
            "Paginating with %s: offset=%d limit=%d", self.strategy, self.offset, self.limit
        )
        if self.strategy == PaginationStrategy.EXPENSIVE:
            items, total = self.paginate_with_count(source, compiled)
            return self.build_response(items, total)
        return self.build_response(source.fetch(compiled, self.offset, self.limit))

    def paginate_with_count(
        self, source: DataSource, compiled: CompiledQuery
    ) -> Tuple[List[Any], int]:
        """
        Fetch the page and count the filtered set concurrently.

        Both operations are joined before returning. If either fails, the first
        failure (fetch before count) is raised.

        Returns:
            Tuple[List[Any], int]: (page_data, total_count)
        """
        if self.total_count is not None:
            return source.fork().fetch(compiled, self.offset, self.limit), self.total_count

        with ThreadPoolExecutor(max_workers=2) as pool:
            items_future = pool.submit(source.fork().fetch, compiled, self.offset, self.limit)
            count_future = pool.submit(source.fork().count, compiled)
        return items_future.result(), count_future.result()

    # --- Async methods ---

    async def paginate_async(
        self, source: DataSource, compiled: CompiledQuery
    ) -> PaginatedData[Any]:
        """
        Execute pagination on a compiled query asynchronously.

        Args:
            source: Data source to query
            compiled: Compiled predicate and ordering

        Returns:
            PaginatedData: Page of items with pagination metadata
        """
        self.check_source(source)
        logger.debug(
            "Paginating with %s: offset=%d limit=%d", self.strategy, self.offset, self.limit
        )
        if self.strategy == PaginationStrategy.EXPENSIVE:
            items, total = await self.paginate_with_count_async(source, compiled)
            return self.build_response(items, total)
        items = await source.fetch_async(compiled, self.offset, self.limit)
        return self.build_response(items)

    async def paginate_with_count_async(
        self, source: DataSource, compiled: CompiledQuery
    ) -> Tuple[List[Any], int]:
        """
        Async version of paginate_with_count.

        Returns:
            Tuple[List[Any], int]: (page_data, total_count)
        """
        if self.total_count is not None:
            items = await source.fork().fetch_async(compiled, self.offset, self.limit)
            return items, self.total_count

        items, total = await asyncio.gather(
            source.fork().fetch_async(compiled, self.offset, self.limit),
            source.fork().count_async(compiled),
            return_exceptions=True,
        )
        for outcome in (items, total):
            if isinstance(outcome, BaseException):
                raise outcome
        return items, total

    # --- Response building ---

    def build_response(
        self, items: List[Any], total_count: Optional[int] = None
    ) -> PaginatedData[Any]:
        """
        Build the paginated result.

        Args:
            items: Fetched rows (``page_size + 1`` at most in CHEAP mode)
            total_count: Total number of matching items (EXPENSIVE only)

        Returns:
            PaginatedData: Final result object
        """
        has_next_page = None
        if self.strategy == PaginationStrategy.CHEAP:
            has_next_page = len(items) > self.page_size
            items = items[: self.page_size]

        total_pages = None
        if total_count is not None:
            total_pages = ceil(total_count / self.page_size)

        return PaginatedData(
            items=list(items),
            page=self.page,
            page_size=self.page_size,
            total_count=total_count,
            total_pages=total_pages,
            has_next_page=has_next_page,
        )
