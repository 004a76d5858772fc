"""Lazy, restartable read sequences over the panel tables."""

from typing import Any, AsyncIterator, Callable, Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from acdpanel.errors import storage_errors

T = TypeVar("T")


class QueryStream(Generic[T]):
    """
    Async iterable over the rows of a fixed SELECT.

    Nothing touches the database until iteration starts. Each ``async for``
    opens its own session and re-runs the query, so the sequence can be
    consumed any number of times and always reflects committed state.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        statement: Select,
        convert: Callable[[Any], T],
        operation: str,
    ):
        self._session_factory = session_factory
        self._statement = statement
        self._convert = convert
        self._operation = operation

    async def __aiter__(self) -> AsyncIterator[T]:
        async with storage_errors(self._operation):
            async with self._session_factory() as session:
                result = await session.execute(self._statement)
                for row in result.scalars():
                    yield self._convert(row)

    async def to_list(self) -> list[T]:
        """Drain the stream into a list."""
        return [item async for item in self]
