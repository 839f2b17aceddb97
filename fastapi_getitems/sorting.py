"""Sort compiler for building deterministic orderings."""

from typing import List, Optional, Tuple

from fastapi_getitems.errors import ConfigurationError
from fastapi_getitems.expressions import OrderKey
from fastapi_getitems.fields import FieldAccessor, PropertyPathResolver, ResolvedPath
from fastapi_getitems.models import GetItemsSorter, SortingOrder


class SortCompiler:
    """
    Compiler for sort keys.

    The first key is the primary order, each following key breaks ties of the
    previous ones. When an identifier field is configured, an ascending sort on
    it is appended so that pages stay stable even with duplicate key values.
    """

    def __init__(self, resolver: PropertyPathResolver, id_field: Optional[FieldAccessor] = None):
        """
        Initialize SortCompiler.

        Args:
            resolver: Resolves sort keys to accessor paths
            id_field: Identifier accessor used as trailing tie-break
        """
        self.resolver = resolver
        self.id_field = id_field

    def compile(self, sort: Optional[List[GetItemsSorter]]) -> Tuple[OrderKey, ...]:
        """
        Compile sort keys into an ordering.

        Args:
            sort: Requested sort keys (may be None)

        Returns:
            Tuple[OrderKey, ...]: Ordering, empty when there is nothing to sort by

        Raises:
            ConfigurationError: If a sort path crosses a collection
        """
        ordering: List[OrderKey] = []
        for sorter in sort or ():
            path = self.resolver.resolve(sorter.field)
            if path is None:
                continue
            if path.collection_scope is not None:
                raise ConfigurationError(
                    f"Cannot sort by '{path}': the path crosses the collection "
                    f"'{path.collection_scope.accessor.name}'."
                )
            ordering.append(OrderKey(path, descending=sorter.order == SortingOrder.DESC))

        if self.id_field is not None:
            ordering.append(OrderKey(ResolvedPath(scopes=(), leaf=self.id_field)))
        return tuple(ordering)
