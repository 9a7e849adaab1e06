"""
SQLAlchemy Row Store.

Provides a row store for any database SQLAlchemy can reach directly.
Tables are reflected on first use; blocking calls run in a worker thread
so the event loop stays responsive, one call at a time.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import Table, MetaData, create_engine, delete, event, func, insert, or_, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import NoSuchTableError, SQLAlchemyError

from extsync.sync.connectors.base import (
    ConnectionStatus,
    RowStore,
    StoreConfig,
    StoreFactory,
)
from extsync.sync.exceptions import StoreError
from extsync.sync.models import ChangedSince, Row

logger = logging.getLogger(__name__)

UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def bind_timestamp(column, value: datetime) -> datetime:
    """
    Timestamp to compare against ``column``.

    Columns without time zone store UTC wall-clock values, and drivers such
    as SQLite drop the offset of an aware value, so those get naive UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    if getattr(column.type, "timezone", False):
        return value
    return value.replace(tzinfo=None)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class SQLAlchemyStore(RowStore):
    """
    Row store over a SQLAlchemy engine.

    ``config.url`` is a SQLAlchemy database URL. SQLite connections
    enforce foreign keys so ordering problems surface the same way they
    would on PostgreSQL.
    """

    def __init__(self, config: StoreConfig, engine: Optional[Engine] = None):
        super().__init__(config)
        self._engine = engine
        self._metadata = MetaData()
        self._tables: Dict[str, Table] = {}

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = self._create_engine()
        return self._engine

    def _create_engine(self) -> Engine:
        if not self.config.url:
            raise StoreError(f"No database URL configured for store '{self.name}'")

        is_sqlite = self.config.url.startswith("sqlite")
        if is_sqlite:
            engine = create_engine(
                self.config.url,
                connect_args={"check_same_thread": False}  # used from worker threads
            )
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        else:
            engine = create_engine(
                self.config.url,
                pool_pre_ping=True,
                connect_args=self.config.extra.get("connect_args", {}),
            )
        return engine

    async def _run(self, func_, *args):
        try:
            return await asyncio.to_thread(func_, *args)
        except SQLAlchemyError as e:
            error = StoreError(str(e).splitlines()[0])
            self._record_error(error)
            raise error from e

    def _table(self, name: str) -> Table:
        table = self._tables.get(name)
        if table is None:
            schema = None if self.engine.dialect.name == "sqlite" else self.config.schema_name
            try:
                table = Table(name, self._metadata, autoload_with=self.engine, schema=schema)
            except NoSuchTableError as e:
                raise StoreError(f"Table '{name}' does not exist in store '{self.name}'") from e
            self._tables[name] = table
        return table

    def _column(self, table: Table, column: str):
        if column not in table.c:
            raise StoreError(f"Column '{column}' does not exist in table '{table.name}'")
        return table.c[column]

    async def connect(self) -> bool:
        self._set_status(ConnectionStatus.CONNECTING)
        healthy = await self.health_check()
        self._set_status(ConnectionStatus.CONNECTED if healthy else ConnectionStatus.ERROR)
        if healthy:
            logger.info(f"SQLAlchemy store {self.name} connected ({self.engine.dialect.name})")
        return healthy

    async def disconnect(self) -> None:
        if self._engine is not None:
            await asyncio.to_thread(self._engine.dispose)
        self._set_status(ConnectionStatus.DISCONNECTED)

    def _ping(self) -> bool:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    async def health_check(self) -> bool:
        try:
            return await self._run(self._ping)
        except StoreError:
            return False

    def _fetch_page(
        self,
        table_name: str,
        order_by: str,
        offset: int,
        limit: int,
        changed_since: Optional[ChangedSince]
    ) -> List[Row]:
        table = self._table(table_name)
        stmt = select(table)
        if changed_since is not None:
            columns = [table.c[name] for name in changed_since.columns if name in table.c]
            if not columns:
                raise StoreError(
                    f"Table '{table_name}' has none of the columns {list(changed_since.columns)}"
                )
            stmt = stmt.where(or_(*[
                column >= bind_timestamp(column, changed_since.since) for column in columns
            ]))
        stmt = stmt.order_by(self._column(table, order_by).asc()).offset(offset).limit(limit)

        with self.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(stmt)]

    async def fetch_page(
        self,
        table: str,
        order_by: str,
        offset: int,
        limit: int,
        changed_since: Optional[ChangedSince] = None
    ) -> List[Row]:
        rows = await self._run(self._fetch_page, table, order_by, offset, limit, changed_since)
        self._record_read(len(rows))
        return rows

    def _delete_all(self, table_name: str, pk_column: str) -> None:
        table = self._table(table_name)
        with self.engine.begin() as conn:
            conn.execute(delete(table).where(self._column(table, pk_column).is_not(None)))

    async def delete_all(self, table: str, pk_column: str) -> None:
        await self._run(self._delete_all, table, pk_column)

    def _insert_rows(self, table_name: str, rows: List[Row]) -> None:
        table = self._table(table_name)
        with self.engine.begin() as conn:
            conn.execute(insert(table), rows)

    async def insert_rows(self, table: str, rows: List[Row]) -> None:
        if not rows:
            return
        await self._run(self._insert_rows, table, rows)
        self._record_write(len(rows))

    def _upsert_rows(self, table_name: str, rows: List[Row], pk_column: str) -> None:
        table = self._table(table_name)
        dialect = self.engine.dialect.name
        insert_factory = UPSERT_DIALECTS.get(dialect)
        if insert_factory is None:
            raise StoreError(f"Upsert is not supported for dialect '{dialect}'")

        pk = self._column(table, pk_column)
        stmt = insert_factory(table).values(rows)
        updates: Dict[str, Any] = {
            name: stmt.excluded[name]
            for name in rows[0].keys()
            if name != pk_column and name in table.c
        }
        if updates:
            stmt = stmt.on_conflict_do_update(index_elements=[pk], set_=updates)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=[pk])

        with self.engine.begin() as conn:
            conn.execute(stmt)

    async def upsert_rows(self, table: str, rows: List[Row], pk_column: str) -> None:
        if not rows:
            return
        await self._run(self._upsert_rows, table, rows, pk_column)
        self._record_write(len(rows))

    def _count_rows(self, table_name: str) -> int:
        table = self._table(table_name)
        with self.engine.connect() as conn:
            return int(conn.execute(select(func.count()).select_from(table)).scalar_one())

    async def count_rows(self, table: str) -> int:
        return await self._run(self._count_rows, table)


# Register store
StoreFactory.register("sqlalchemy", SQLAlchemyStore)
