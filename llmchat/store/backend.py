"""Table-like persistence backend over SQLAlchemy Core.

Exposes the two collections the conversation store needs, ``conversations``
and ``messages``, through a small filter/order/limit/insert/update/delete
surface. Any SQLAlchemy failure is re-raised as ProviderUnavailable so the
store can apply its fail-soft policy without knowing the driver.
"""

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from llmchat.errors import ProviderUnavailable
from llmchat.store.config import StoreConfig, get_store_config

logger = logging.getLogger(__name__)

metadata = MetaData()

conversations = Table(
    "conversations",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("user_id", String(64), nullable=False),
    Column("title", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Index("ix_conversations_user_id", "user_id"),
    Index("ix_conversations_created_at", "created_at"),
)

messages = Table(
    "messages",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("conversation_id", String(36), ForeignKey("conversations.id"), nullable=False),
    Column("role", String(16), nullable=False),
    Column("content", Text, nullable=False),
    Column("tokens", Integer, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_messages_conversation_id", "conversation_id"),
    Index("ix_messages_created_at", "created_at"),
)


class PersistenceBackend(Protocol):
    """Minimal table API the conversation store is written against."""

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]: ...

    async def select(
        self,
        table: str,
        *,
        filters: Mapping[str, Any],
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    async def update(
        self, table: str, values: Mapping[str, Any], *, filters: Mapping[str, Any]
    ) -> int: ...

    async def delete(self, table: str, *, filters: Mapping[str, Any]) -> int: ...

    async def count(self, table: str, *, filters: Mapping[str, Any]) -> int: ...

    async def count_grouped(
        self, table: str, column: str, values: Iterable[Any]
    ) -> dict[Any, int]: ...


class SqlBackend:
    """PersistenceBackend implementation on an async SQLAlchemy engine."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @classmethod
    def from_config(cls, config: StoreConfig | None = None) -> "SqlBackend":
        """Build a backend from configuration.

        Creates the parent directory of a file-based SQLite database, and
        pins in-memory SQLite to a single connection so every session sees
        the same data.
        """
        config = config or get_store_config()
        url = make_url(config.database_url)
        kwargs: dict[str, Any] = {"echo": config.echo}

        if url.get_backend_name() == "sqlite":
            if url.database in (None, "", ":memory:"):
                kwargs["poolclass"] = StaticPool
                kwargs["connect_args"] = {"check_same_thread": False}
            else:
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Connecting conversation backend: {url.render_as_string(hide_password=True)}")
        return cls(create_async_engine(url, **kwargs))

    async def create_schema(self) -> None:
        """Create tables and indices if they do not exist."""
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
        except SQLAlchemyError as e:
            raise ProviderUnavailable(f"Schema creation failed: {e}") from e

    async def dispose(self) -> None:
        await self._engine.dispose()

    def _table(self, name: str) -> Table:
        try:
            return metadata.tables[name]
        except KeyError:
            raise ValueError(f"Unknown table: {name}") from None

    @staticmethod
    def _where(table: Table, filters: Mapping[str, Any]) -> list[Any]:
        return [table.c[column] == value for column, value in filters.items()]

    async def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        t = self._table(table)
        try:
            async with self._engine.begin() as conn:
                await conn.execute(insert(t).values(**row))
        except SQLAlchemyError as e:
            raise ProviderUnavailable(f"Insert into {table} failed: {e}") from e
        return dict(row)

    async def select(
        self,
        table: str,
        *,
        filters: Mapping[str, Any],
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        t = self._table(table)
        stmt = select(t).where(*self._where(t, filters))
        if order_by is not None:
            column = t.c[order_by]
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(stmt)
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            raise ProviderUnavailable(f"Select from {table} failed: {e}") from e

    async def update(
        self, table: str, values: Mapping[str, Any], *, filters: Mapping[str, Any]
    ) -> int:
        t = self._table(table)
        stmt = update(t).where(*self._where(t, filters)).values(**values)
        try:
            async with self._engine.begin() as conn:
                result = await conn.execute(stmt)
                return result.rowcount
        except SQLAlchemyError as e:
            raise ProviderUnavailable(f"Update of {table} failed: {e}") from e

    async def delete(self, table: str, *, filters: Mapping[str, Any]) -> int:
        t = self._table(table)
        stmt = delete(t).where(*self._where(t, filters))
        try:
            async with self._engine.begin() as conn:
                result = await conn.execute(stmt)
                return result.rowcount
        except SQLAlchemyError as e:
            raise ProviderUnavailable(f"Delete from {table} failed: {e}") from e

    async def count(self, table: str, *, filters: Mapping[str, Any]) -> int:
        t = self._table(table)
        stmt = select(func.count()).select_from(t).where(*self._where(t, filters))
        try:
            async with self._engine.connect() as conn:
                return (await conn.execute(stmt)).scalar_one()
        except SQLAlchemyError as e:
            raise ProviderUnavailable(f"Count of {table} failed: {e}") from e

    async def count_grouped(
        self, table: str, column: str, values: Iterable[Any]
    ) -> dict[Any, int]:
        """Count rows per value of ``column`` in one query.

        Values with no rows are absent from the result.
        """
        keys = list(values)
        if not keys:
            return {}
        t = self._table(table)
        stmt = (
            select(t.c[column], func.count())
            .where(t.c[column].in_(keys))
            .group_by(t.c[column])
        )
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(stmt)
                return {key: total for key, total in result.all()}
        except SQLAlchemyError as e:
            raise ProviderUnavailable(f"Grouped count of {table} failed: {e}") from e
