"""GetItems orchestration: compile a request and paginate it over a data source."""

import logging
from typing import Any, Optional

from fastapi_getitems.config import GetItemsOptions, get_default_options
from fastapi_getitems.errors import ConfigurationError
from fastapi_getitems.expressions import CompiledQuery, conjoin
from fastapi_getitems.fields import FieldMapper, PropertyPathResolver, id_accessor
from fastapi_getitems.filters import PredicateCompiler, id_set_predicate
from fastapi_getitems.models import GetItemsRequest, PaginatedData
from fastapi_getitems.pagination import PaginationEngine
from fastapi_getitems.sorting import SortCompiler
from fastapi_getitems.sources import DataSource

logger = logging.getLogger(__name__)


class GetItemsManager:
    """
    Main class for filtering, sorting and paginating entities.

    Composes the compilers and the pagination engine:
    - id inclusion/exclusion (``ids``, ``except_ids``)
    - PredicateCompiler: nested filter trees
    - SortCompiler: ordering with identifier tie-break
    - PaginationEngine: NONE, CHEAP or EXPENSIVE pagination

    Example:
        class BookField(StrEnum):
            TITLE = "title"
            AUTHOR = "author"

        manager = GetItemsManager(
            mapper=lambda key: {BookField.AUTHOR: ["author", "name"]}.get(key),
            id_field="id",
        )

        @app.post("/books/search")
        def search_books(request: GetItemsRequest[BookField, int]):
            return manager.get_items(SessionFactorySource(get_session, Book), request)
    """

    def __init__(
        self,
        mapper: Optional[FieldMapper] = None,
        id_field: Any = None,
        options: Optional[GetItemsOptions] = None,
    ):
        """
        Initialize GetItemsManager.

        Args:
            mapper: Maps field keys to attribute paths; None from the mapper means
                the key's own name, an empty path drops the key's own condition
            id_field: Identifier attribute (name or mapped attribute) used for
                ids/except_ids and as sort tie-break
            options: Options for this manager (default: the process-wide defaults,
                read on every call)
        """
        self.mapper = mapper
        self.id_field = id_field
        self._options = options

    @property
    def options(self) -> GetItemsOptions:
        return self._options if self._options is not None else get_default_options()

    def with_options(self, options: GetItemsOptions) -> "GetItemsManager":
        """
        Set options for this manager.

        Args:
            options: Options to use instead of the process-wide defaults

        Returns:
            GetItemsManager: Self for chaining
        """
        self._options = options
        return self

    def compile(
        self,
        model: type,
        request: GetItemsRequest,
        options: Optional[GetItemsOptions] = None,
    ) -> CompiledQuery:
        """
        Compile a request against an entity class.

        Args:
            model: Entity class
            request: Filtering and sorting request
            options: Options to compile with (default: this manager's options)

        Returns:
            CompiledQuery: Predicate and ordering

        Raises:
            ConfigurationError: On an invalid setup, before any I/O
            FilterValueError: If a filter value cannot be parsed
        """
        options = options or self.options
        if (request.filters or request.sort) and self.mapper is None:
            raise ConfigurationError(
                "A field mapper must be provided when using filters or sort. "
                "Provide a function that maps field keys to attribute paths."
            )

        resolver = PropertyPathResolver(model, self.mapper, options.transforms)
        id_field = id_accessor(model, self.id_field)

        predicate = id_set_predicate(id_field, request.ids, request.except_ids)
        predicate = conjoin(
            predicate, PredicateCompiler(resolver, options.matcher).compile(request.filters)
        )
        ordering = SortCompiler(resolver, id_field).compile(request.sort)

        compiled = CompiledQuery(predicate=predicate, ordering=ordering)
        logger.debug("Compiled query for %s: %s", model.__name__, compiled)
        return compiled

    def _engine(self, request: GetItemsRequest, options: GetItemsOptions) -> PaginationEngine:
        return PaginationEngine(
            strategy=options.pagination,
            page=request.page,
            page_size=request.page_size,
            skip=request.skip,
            total_count=request.total_count,
        )

    def _with_debug_view(
        self,
        result: PaginatedData[Any],
        source: DataSource,
        compiled: CompiledQuery,
        options: GetItemsOptions,
    ) -> PaginatedData[Any]:
        if not options.debug:
            return result
        return result.model_copy(update={"debug_view": source.describe(compiled)})

    def get_items(
        self, source: DataSource, request: Optional[GetItemsRequest] = None
    ) -> PaginatedData[Any]:
        """
        Filter, sort and paginate a data source.

        Args:
            source: Data source to query
            request: Request (default: first page with default size)

        Returns:
            PaginatedData: Page of items with pagination metadata

        Raises:
            ConfigurationError: On an invalid setup, before any I/O
            FilterValueError: If a filter value cannot be parsed
        """
        request = request or GetItemsRequest()
        options = self.options
        engine = self._engine(request, options)
        engine.check_source(source)

        compiled = self.compile(source.model, request, options)
        result = engine.paginate(source, compiled)
        return self._with_debug_view(result, source, compiled, options)

    async def get_items_async(
        self, source: DataSource, request: Optional[GetItemsRequest] = None
    ) -> PaginatedData[Any]:
        """
        Filter, sort and paginate a data source asynchronously.

        Args:
            source: Data source to query
            request: Request (default: first page with default size)

        Returns:
            PaginatedData: Page of items with pagination metadata
        """
        request = request or GetItemsRequest()
        options = self.options
        engine = self._engine(request, options)
        engine.check_source(source)

        compiled = self.compile(source.model, request, options)
        result = await engine.paginate_async(source, compiled)
        return self._with_debug_view(result, source, compiled, options)


def get_items(
    source: DataSource,
    request: Optional[GetItemsRequest] = None,
    *,
    mapper: Optional[FieldMapper] = None,
    id_field: Any = None,
    options: Optional[GetItemsOptions] = None,
) -> PaginatedData[Any]:
    """
    Filter, sort and paginate a data source with a one-off manager.

    Args:
        source: Data source to query
        request: Request (default: first page with default size)
        mapper: Maps field keys to attribute paths
        id_field: Identifier attribute
        options: Options (default: the process-wide defaults)

    Returns:
        PaginatedData: Page of items with pagination metadata
    """
    return GetItemsManager(mapper, id_field, options).get_items(source, request)


async def get_items_async(
    source: DataSource,
    request: Optional[GetItemsRequest] = None,
    *,
    mapper: Optional[FieldMapper] = None,
    id_field: Any = None,
    options: Optional[GetItemsOptions] = None,
) -> PaginatedData[Any]:
    """Async version of get_items."""
    return await GetItemsManager(mapper, id_field, options).get_items_async(source, request)
