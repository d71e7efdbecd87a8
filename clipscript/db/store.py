"""Local SQLite store: declared collections, index lookup and atomic transactions."""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

import sqlalchemy as sa
from pydantic import BaseModel
from sqlalchemy import event, exc
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import NullPool

from clipscript.errors import (
    DuplicateKey, StorageError, StorageUnavailable, UserNotFound, WriteConflict,
)
from .models import ActivityLog, ContentRecord, User


logger = logging.getLogger(__name__)

T = TypeVar("T")

SCHEMA_VERSION = 2


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC ISO string, so text order equals time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class Timestamp(sa.types.TypeDecorator):
    """Timezone-aware datetime stored as a sortable UTC string."""
    impl = sa.String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return format_timestamp(value) if value is not None else None

    def process_result_value(self, value, dialect):
        return datetime.fromisoformat(value) if value is not None else None


# ============= Schema =============

metadata = sa.MetaData()

users_table = sa.Table(
    "users", metadata,
    sa.Column("id", sa.String, primary_key=True),
    sa.Column("email", sa.String, nullable=False),
    sa.Column("name", sa.String, nullable=False),
    sa.Column("avatar", sa.String),
    sa.Column("profession", sa.String),
    sa.Column("country", sa.String),
    sa.Column("bio", sa.String),
    sa.Column("website", sa.String),
    sa.Column("referral", sa.String),
    sa.Column("device_info", sa.String),
    sa.Column("browser_info", sa.String),
    sa.Column("created_at", Timestamp, nullable=False),
    sa.Column("last_login_at", Timestamp, nullable=False),
    sa.Column("total_generations", sa.Integer, nullable=False, default=0),
    sa.Column("credits", sa.Integer, nullable=False, default=0),
    sa.Column("auth_provider", sa.String, nullable=False),
    sa.Column("password", sa.String),
    sa.CheckConstraint("total_generations >= 0", name="ck_users_total_generations"),
    sa.CheckConstraint("credits >= 0", name="ck_users_credits"),
    sa.CheckConstraint("auth_provider IN ('google', 'email')", name="ck_users_auth_provider"),
    sa.Index("idx_users_email", "email", unique=True),
)

content_table = sa.Table(
    "content", metadata,
    sa.Column("id", sa.String, primary_key=True),
    sa.Column("user_id", sa.String, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("title", sa.String, nullable=False),
    sa.Column("content", sa.Text, nullable=False),
    sa.Column("viral_titles", sa.JSON, nullable=False),
    sa.Column("hashtags", sa.JSON, nullable=False),
    sa.Column("timestamp", Timestamp, nullable=False),
    sa.Index("idx_content_user_id", "user_id"),
)

activity_table = sa.Table(
    "activity", metadata,
    sa.Column("id", sa.String, primary_key=True),
    sa.Column("user_id", sa.String, sa.ForeignKey("users.id"), nullable=False),
    sa.Column("action", sa.String, nullable=False),
    sa.Column("details", sa.Text, nullable=False),
    sa.Column("timestamp", Timestamp, nullable=False),
    sa.Column("metadata", sa.JSON(none_as_null=True)),
    sa.Index("idx_activity_user_id", "user_id"),
    sa.Index("idx_activity_action", "action"),
)


@dataclass(frozen=True)
class Lookup:
    """Secondary lookup index over one column."""
    name: str
    column: str
    unique: bool = False


@dataclass(frozen=True)
class Collection:
    """A named set of same-shaped records backed by one table."""
    name: str
    model: type
    table: sa.Table
    lookups: tuple = ()
    json_fields: tuple = ()

    def lookup(self, name: str) -> Lookup:
        for lookup in self.lookups:
            if lookup.name == name:
                return lookup
        raise KeyError(f"Unknown index {name!r} on {self.name}")


COLLECTIONS = {
    c.name: c for c in (
        Collection("users", User, users_table, (Lookup("email", "email", unique=True),)),
        Collection(
            "content", ContentRecord, content_table,
            (Lookup("user_id", "user_id"),),
            json_fields=("viral_titles", "hashtags"),
        ),
        Collection(
            "activity", ActivityLog, activity_table,
            (Lookup("user_id", "user_id"), Lookup("action", "action")),
            json_fields=("metadata",),
        ),
    )
}


def _encode(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _to_row(collection: Collection, record: BaseModel) -> dict:
    """Convert a record model to column values."""
    if not isinstance(record, collection.model):
        raise TypeError(f"{collection.name} stores {collection.model.__name__}, got {type(record).__name__}")
    row = {k: _encode(v) for k, v in record.model_dump(exclude=set(collection.json_fields)).items()}
    row.update(record.model_dump(mode="json", include=set(collection.json_fields)))
    return row


def _from_row(collection: Collection, row) -> BaseModel:
    return collection.model.model_validate(dict(row))


def _collection(name: str) -> Collection:
    try:
        return COLLECTIONS[name]
    except KeyError:
        raise KeyError(f"Unknown collection {name!r}") from None


def _integrity_error(collection: Collection, record: BaseModel, error: exc.IntegrityError) -> Exception:
    """Translate an engine constraint failure."""
    message = str(error.orig)
    if "FOREIGN KEY" in message:
        return UserNotFound(getattr(record, "user_id", None))
    if "UNIQUE" in message or "PRIMARY KEY" in message:
        return DuplicateKey(collection.name, getattr(record, "id", None), original_error=error)
    return StorageError(f"Record rejected by {collection.name}: {message}", original_error=error)


def is_lock_error(error: exc.DBAPIError) -> bool:
    """Whether the engine gave up waiting for another writer."""
    name = getattr(error.orig, "sqlite_errorname", None) or ""
    if name.startswith(("SQLITE_BUSY", "SQLITE_LOCKED")):
        return True
    message = str(error.orig)
    return "database is locked" in message or "database table is locked" in message


class Transaction:
    """Operations inside one open engine transaction."""

    def __init__(self, conn: AsyncConnection):
        self._conn = conn

    async def execute(self, statement, params: Optional[dict] = None):
        """Execute a SQLAlchemy statement (or raw SQL text)."""
        if isinstance(statement, str):
            statement = sa.text(statement)
        return await self._conn.execute(statement, params)

    async def get(self, collection: str, record_id: str):
        """Get a record by primary key, or None."""
        c = _collection(collection)
        result = await self._conn.execute(sa.select(c.table).where(c.table.c.id == record_id))
        row = result.mappings().first()
        return _from_row(c, row) if row else None

    async def get_by_index(self, collection: str, index: str, value: Any):
        """Look up by secondary index.

        Unique indexes return one record or None; non-unique indexes return
        a list in insertion order.
        """
        c = _collection(collection)
        lookup = c.lookup(index)
        result = await self._conn.execute(
            sa.select(c.table)
            .where(c.table.c[lookup.column] == _encode(value))
            .order_by(sa.literal_column("rowid"))
        )
        rows = result.mappings().all()
        if lookup.unique:
            return _from_row(c, rows[0]) if rows else None
        return [_from_row(c, row) for row in rows]

    async def put(self, collection: str, record: BaseModel) -> BaseModel:
        """Insert or replace by primary key."""
        c = _collection(collection)
        row = _to_row(c, record)
        stmt = sqlite_insert(c.table).values(**row)
        stmt = stmt.on_conflict_do_update(
            index_elements=[c.table.c.id],
            set_={col: stmt.excluded[col] for col in row if col != "id"},
        )
        try:
            await self._conn.execute(stmt)
        except exc.IntegrityError as e:
            raise _integrity_error(c, record, e) from e
        return record

    async def add(self, collection: str, record: BaseModel) -> BaseModel:
        """Insert only; DuplicateKey if the id or a unique value exists."""
        c = _collection(collection)
        try:
            await self._conn.execute(sa.insert(c.table).values(**_to_row(c, record)))
        except exc.IntegrityError as e:
            raise _integrity_error(c, record, e) from e
        return record


class Store:
    """Handle to the local database.

    Construct once at process start and pass it to every ledger, library
    and recorder call. Opens lazily on first use.
    """

    def __init__(self, path: str, timeout: float = 30.0):
        self.path = str(path)
        self.timeout = timeout
        self.engine: Optional[AsyncEngine] = None
        self._open_lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def _create_engine(self) -> AsyncEngine:
        engine = create_async_engine(
            f"sqlite+aiosqlite:///{self.path}",
            echo=False,
            poolclass=NullPool,
            connect_args={"check_same_thread": False, "timeout": self.timeout},
        )

        @event.listens_for(engine.sync_engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            # Transactions are begun explicitly below
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _on_begin(conn):
            # Writers queue on the file lock
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    async def open(self) -> None:
        """Create the schema if absent (idempotent)."""
        if self.engine is not None:
            return
        async with self._open_lock:
            if self.engine is not None:
                return
            engine = self._create_engine()
            try:
                async with engine.begin() as conn:
                    await self._migrate(conn)
            except exc.SQLAlchemyError as e:
                await engine.dispose()
                raise StorageUnavailable(original_error=e) from e
            except StorageUnavailable:
                await engine.dispose()
                raise
            self.engine = engine
            logger.info("Opened local store at %s (schema v%d)", self.path, SCHEMA_VERSION)

    @staticmethod
    async def _migrate(conn: AsyncConnection) -> None:
        version = (await conn.exec_driver_sql("PRAGMA user_version")).scalar()
        if version > SCHEMA_VERSION:
            raise StorageUnavailable(
                f"Database schema v{version} is newer than supported v{SCHEMA_VERSION}"
            )
        await conn.run_sync(metadata.create_all)
        if version < SCHEMA_VERSION:
            await conn.exec_driver_sql(f"PRAGMA user_version = {SCHEMA_VERSION}")
            logger.debug("Migrated local store from schema v%d to v%d", version, SCHEMA_VERSION)

    async def close(self) -> None:
        """Release the engine. The store reopens on next use."""
        if self.engine is not None:
            engine, self.engine = self.engine, None
            await engine.dispose()

    # ============= Transactions =============

    async def atomic(self, fn: Callable[..., Awaitable[T]], *args) -> T:
        """Run ``await fn(txn, *args)`` inside a single engine transaction.

        Everything ``fn`` writes commits together or not at all.
        """
        await self.open()
        try:
            async with self.engine.begin() as conn:
                return await fn(Transaction(conn), *args)
        except exc.DBAPIError as e:
            if is_lock_error(e):
                raise WriteConflict(original_error=e) from e
            raise StorageError(original_error=e) from e

    # ============= Single-record operations =============

    async def get(self, collection: str, record_id: str):
        return await self.atomic(Transaction.get, collection, record_id)

    async def get_by_index(self, collection: str, index: str, value: Any):
        return await self.atomic(Transaction.get_by_index, collection, index, value)

    async def put(self, collection: str, record: BaseModel):
        return await self.atomic(Transaction.put, collection, record)

    async def add(self, collection: str, record: BaseModel):
        return await self.atomic(Transaction.add, collection, record)
