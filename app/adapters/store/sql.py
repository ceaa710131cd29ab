"""SQLAlchemy-backed record store.

Both tables live in one database. Every call runs in its own short
transaction; there is no cross-call locking, so the limiter's count-then-insert
stays non-atomic exactly as with the in-process store.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import (
    Column,
    DateTime,
    Engine,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    func,
    insert,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from app.adapters.store.base import (
    EVENTS_TABLE,
    RATE_LIMITS_TABLE,
    AbstractRecordStore,
    Filter,
    Record,
    StoreError,
)


metadata = MetaData()

contact_events = Table(
    EVENTS_TABLE,
    metadata,
    # Surrogate key: breaks created_at ties in insertion order.
    Column("pk", Integer, primary_key=True, autoincrement=True),
    Column("id", String(64), nullable=False, unique=True),
    Column("title", Text, nullable=False),
    Column("target", String(64), nullable=False),
    Column("description", Text, nullable=False),
    Column("caller_address", String(255), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_contact_events_created_at", "created_at"),
    Index("ix_contact_events_target_created_at", "target", "created_at"),
)

rate_limits = Table(
    RATE_LIMITS_TABLE,
    metadata,
    Column("pk", Integer, primary_key=True, autoincrement=True),
    Column("caller_address", String(255), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_rate_limits_caller_created_at", "caller_address", "created_at"),
)

_TABLES: dict[str, Table] = {
    EVENTS_TABLE: contact_events,
    RATE_LIMITS_TABLE: rate_limits,
}


def build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        if database_url in {"sqlite://", "sqlite:///:memory:"}:
            # One shared connection, otherwise each checkout sees an empty db
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(
            database_url,
            pool_pre_ping=True,
            connect_args={"check_same_thread": False},
        )

    return create_engine(database_url, pool_pre_ping=True)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back; everything is stored as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLAlchemyRecordStore(AbstractRecordStore):
    """Record store on top of a SQLAlchemy engine."""

    def __init__(self, engine: Engine, *, create_tables: bool = True) -> None:
        self._engine = engine
        if create_tables:
            try:
                metadata.create_all(bind=engine)
            except SQLAlchemyError as exc:
                raise StoreError("failed to create tables") from exc

    @classmethod
    def from_url(cls, database_url: str) -> "SQLAlchemyRecordStore":
        return cls(build_engine(database_url))

    def dispose(self) -> None:
        self._engine.dispose()

    def _table(self, name: str) -> Table:
        try:
            return _TABLES[name]
        except KeyError:
            raise StoreError(f"unknown table: {name}") from None

    def _where(self, table: Table, filters: Sequence[Filter]) -> list:
        clauses = []
        for flt in filters:
            if flt.field not in table.c:
                raise StoreError(f"unknown column: {table.name}.{flt.field}")
            column = table.c[flt.field]
            if flt.op == "eq":
                clauses.append(column == flt.value)
            elif flt.op == "gte":
                clauses.append(column >= flt.value)
            else:
                raise StoreError(f"unsupported filter operator: {flt.op}")
        return clauses

    def _to_record(self, row) -> Record:
        record = dict(row._mapping)
        record.pop("pk", None)
        if isinstance(record.get("created_at"), datetime):
            record["created_at"] = _as_utc(record["created_at"])
        return record

    def insert_one(self, table: str, record: Record) -> Record:
        tbl = self._table(table)
        try:
            with self._engine.begin() as conn:
                conn.execute(insert(tbl).values(**record))
        except SQLAlchemyError as exc:
            raise StoreError(f"insert into {table} failed") from exc
        return dict(record)

    def count(self, table: str, filters: Sequence[Filter] = ()) -> int:
        tbl = self._table(table)
        stmt = select(func.count()).select_from(tbl).where(*self._where(tbl, filters))
        try:
            with self._engine.connect() as conn:
                return int(conn.execute(stmt).scalar_one())
        except SQLAlchemyError as exc:
            raise StoreError(f"count on {table} failed") from exc

    def select(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Record]:
        tbl = self._table(table)
        stmt = select(tbl).where(*self._where(tbl, filters))

        if order_by is not None:
            if order_by not in tbl.c:
                raise StoreError(f"unknown column: {table}.{order_by}")
            if descending:
                stmt = stmt.order_by(tbl.c[order_by].desc(), tbl.c.pk.desc())
            else:
                stmt = stmt.order_by(tbl.c[order_by].asc(), tbl.c.pk.asc())

        if limit is not None:
            stmt = stmt.limit(max(0, limit))

        try:
            with self._engine.connect() as conn:
                rows = conn.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise StoreError(f"select from {table} failed") from exc

        return [self._to_record(row) for row in rows]
