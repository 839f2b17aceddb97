"""Data sources executing compiled queries."""

from typing import Any, Callable, List, Sequence, Type, Union

from sqlalchemy import Select
from sqlmodel import Session, select
from sqlmodel.ext.asyncio.session import AsyncSession

from fastapi_getitems.errors import ConfigurationError
from fastapi_getitems.expressions import CompiledQuery
from fastapi_getitems.memory import apply, evaluate
from fastapi_getitems.sql import build_statement, count_statement

QueryLike = Union[Select, Type[Any]]


class DataSource:
    """
    Base class of data sources.

    A source knows its entity class, executes compiled queries and reports
    whether it can hand out independent instances (``fork``) for running the
    page fetch and the count concurrently.
    """

    concurrent = False

    model: type

    def fork(self) -> "DataSource":
        """Return an independent instance for concurrent use."""
        raise ConfigurationError(
            f"{type(self).__name__} cannot run queries concurrently. Use a session "
            f"factory source, or the CHEAP or NONE pagination strategy."
        )

    def fetch(self, compiled: CompiledQuery, offset: int, limit: int) -> List[Any]:
        raise NotImplementedError

    def count(self, compiled: CompiledQuery) -> int:
        raise NotImplementedError

    async def fetch_async(self, compiled: CompiledQuery, offset: int, limit: int) -> List[Any]:
        return self.fetch(compiled, offset, limit)

    async def count_async(self, compiled: CompiledQuery) -> int:
        return self.count(compiled)

    def describe(self, compiled: CompiledQuery) -> str:
        """Human-readable rendering of the composed query."""
        return str(compiled)


def _split_query(query: QueryLike):
    if isinstance(query, type):
        return query, select(query)
    descriptions = query.column_descriptions
    model = descriptions[0].get("entity") if descriptions else None
    if model is None:
        raise ConfigurationError("The query must select a mapped entity, e.g. select(Hero).")
    return model, query


class _SqlSource(DataSource):
    def __init__(self, query: QueryLike):
        self.model, self.query = _split_query(query)

    def statement(self, compiled: CompiledQuery) -> Select:
        return build_statement(self.query, self.model, compiled)

    def page_statement(self, compiled: CompiledQuery, offset: int, limit: int) -> Select:
        return self.statement(compiled).offset(offset).limit(limit)

    def describe(self, compiled: CompiledQuery) -> str:
        return str(self.statement(compiled))


class SessionSource(_SqlSource):
    """
    Queries through a single session.

    A session cannot serve two queries at once, so EXPENSIVE pagination is not
    available; use ``SessionFactorySource`` for it.
    """

    def __init__(self, session: Session, query: QueryLike):
        super().__init__(query)
        self.session = session

    def fetch(self, compiled: CompiledQuery, offset: int, limit: int) -> List[Any]:
        return list(self.session.exec(self.page_statement(compiled, offset, limit)).all())

    def count(self, compiled: CompiledQuery) -> int:
        return self.session.exec(count_statement(self.statement(compiled))).one()


class SessionFactorySource(_SqlSource):
    """
    Queries through sessions opened from a factory, one session per operation.

    Example:
        source = SessionFactorySource(lambda: Session(engine), select(Hero))
    """

    concurrent = True

    def __init__(self, factory: Callable[[], Session], query: QueryLike):
        super().__init__(query)
        self.factory = factory

    def fork(self) -> "SessionFactorySource":
        return SessionFactorySource(self.factory, self.query)

    def fetch(self, compiled: CompiledQuery, offset: int, limit: int) -> List[Any]:
        with self.factory() as session:
            return list(session.exec(self.page_statement(compiled, offset, limit)).all())

    def count(self, compiled: CompiledQuery) -> int:
        with self.factory() as session:
            return session.exec(count_statement(self.statement(compiled))).one()


class _AsyncSqlSource(_SqlSource):
    def fetch(self, compiled: CompiledQuery, offset: int, limit: int) -> List[Any]:
        raise ConfigurationError(
            f"{type(self).__name__} is async-only; use get_items_async() with it."
        )

    def count(self, compiled: CompiledQuery) -> int:
        raise ConfigurationError(
            f"{type(self).__name__} is async-only; use get_items_async() with it."
        )


class AsyncSessionSource(_AsyncSqlSource):
    """Queries through a single async session (no EXPENSIVE pagination)."""

    def __init__(self, session: AsyncSession, query: QueryLike):
        super().__init__(query)
        self.session = session

    async def fetch_async(self, compiled: CompiledQuery, offset: int, limit: int) -> List[Any]:
        result = await self.session.exec(self.page_statement(compiled, offset, limit))
        return list(result.all())

    async def count_async(self, compiled: CompiledQuery) -> int:
        result = await self.session.exec(count_statement(self.statement(compiled)))
        return result.one()


class AsyncSessionFactorySource(_AsyncSqlSource):
    """
    Queries through async sessions opened from a factory, one per operation.

    Example:
        source = AsyncSessionFactorySource(lambda: AsyncSession(engine), select(Hero))
    """

    concurrent = True

    def __init__(self, factory: Callable[[], AsyncSession], query: QueryLike):
        super().__init__(query)
        self.factory = factory

    def fork(self) -> "AsyncSessionFactorySource":
        return AsyncSessionFactorySource(self.factory, self.query)

    async def fetch_async(self, compiled: CompiledQuery, offset: int, limit: int) -> List[Any]:
        async with self.factory() as session:
            result = await session.exec(self.page_statement(compiled, offset, limit))
            return list(result.all())

    async def count_async(self, compiled: CompiledQuery) -> int:
        async with self.factory() as session:
            result = await session.exec(count_statement(self.statement(compiled)))
            return result.one()


class MemorySource(DataSource):
    """
    Evaluates queries over an in-memory sequence of objects.

    Args:
        items: Objects to query
        model: Their class (mapped, or registered with ``register_fields``)
    """

    concurrent = True

    def __init__(self, items: Sequence[Any], model: type):
        self.items = tuple(items)
        self.model = model

    def fork(self) -> "MemorySource":
        return MemorySource(self.items, self.model)

    def fetch(self, compiled: CompiledQuery, offset: int, limit: int) -> List[Any]:
        return apply(self.items, compiled)[offset : offset + limit]

    def count(self, compiled: CompiledQuery) -> int:
        return sum(1 for item in self.items if evaluate(compiled.predicate, item))
