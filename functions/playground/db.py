"""
Table-oriented data access for the hosted platform, SQL databases and an
in-memory test implementation.
"""

from __future__ import annotations

import copy
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Protocol

import httpx
from postgrest.exceptions import APIError
from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError
from supabase import Client

logger = logging.getLogger(__name__)

KNOWN_TABLES = ("todos", "countries", "messages")

SINGLE_ROW_ERROR = "Cannot coerce the result to a single JSON object"

Record = Dict[str, Any]


class DataAccessError(Exception):
    """Failure reported by the data store; the message is passed through."""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint


class TableClient(Protocol):
    """Interface the dispatcher needs from the data store."""

    def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        ...

    def select(
        self, table: str, filters: Optional[Mapping[str, Any]] = None
    ) -> list[Record]:
        ...

    def update_by_id(
        self, table: str, record_id: Any, patch: Mapping[str, Any]
    ) -> Record:
        ...

    def delete_by_id(self, table: str, record_id: Any) -> Record:
        ...


def _single(rows: list[Record], matched: Optional[int] = None) -> Record:
    count = len(rows) if matched is None else matched
    if count != 1:
        raise DataAccessError(
            SINGLE_ROW_ERROR,
            code="PGRST116",
            details=f"The result contains {count} rows",
        )
    return rows[0]


def _as_text(value: Any) -> str:
    # The REST layer sends every filter value as text.
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _matches(value: Any, expected: Any) -> bool:
    return _as_text(value) == _as_text(expected)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


metadata = MetaData()

todos_table = Table(
    "todos",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String, nullable=True),
    Column("task", String, nullable=True),
    Column("is_complete", Boolean, nullable=False, default=False),
    Column("inserted_at", String, nullable=False, default=_now_iso),
)

countries_table = Table(
    "countries",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False),
)

messages_table = Table(
    "messages",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", String, nullable=True),
    Column("content", String, nullable=True),
    Column("inserted_at", String, nullable=False, default=_now_iso),
)

TABLE_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "todos": {"is_complete": False},
    "countries": {},
    "messages": {},
}


class InMemoryTableClient:
    """
    Simple in-memory data store for development and tests.

    Rows carry every column of the matching SQL table, unset ones as None,
    so filters and writes are checked against the same schema the SQL
    client uses.
    """

    def __init__(self, tables: tuple[str, ...] = KNOWN_TABLES):
        self.columns: Dict[str, tuple[str, ...]] = {
            name: tuple(metadata.tables[name].c.keys()) for name in tables
        }
        self.tables: Dict[str, list[Record]] = {name: [] for name in tables}
        self.next_ids: Dict[str, int] = {name: 1 for name in tables}
        self.calls: list[tuple[str, str]] = []

    def _rows(self, table: str) -> list[Record]:
        rows = self.tables.get(table)
        if rows is None:
            raise DataAccessError(
                f'relation "public.{table}" does not exist', code="42P01"
            )
        return rows

    def _check_columns(self, table: str, names) -> None:
        self._rows(table)
        for name in names:
            if name not in self.columns[table]:
                raise DataAccessError(
                    f"column {table}.{name} does not exist", code="42703"
                )

    def _check_not_null(self, table: str, row: Record) -> None:
        for column in metadata.tables[table].c:
            if not column.nullable and row.get(column.name) is None:
                raise DataAccessError(
                    f'null value in column "{column.name}" of relation "{table}" '
                    "violates not-null constraint",
                    code="23502",
                )

    def _find(self, table: str, record_id: Any) -> list[Record]:
        return [row for row in self._rows(table) if _matches(row.get("id"), record_id)]

    def _check_unique_id(self, table: str, record_id: Any, current=None) -> None:
        if any(row is not current for row in self._find(table, record_id)):
            raise DataAccessError(
                f'duplicate key value violates unique constraint "{table}_pkey"',
                code="23505",
                details=f"Key (id)=({record_id}) already exists.",
            )

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        for name in self.tables:
            self.tables[name] = []
            self.next_ids[name] = 1
        self.calls.clear()

    def seed(self, table: str, records: list[Mapping[str, Any]]) -> list[Record]:
        """Load fixture rows without recording them as calls."""
        created = [self._insert(table, record) for record in records]
        return copy.deepcopy(created)

    def _insert(self, table: str, record: Mapping[str, Any]) -> Record:
        rows = self._rows(table)
        self._check_columns(table, record)
        row: Record = dict.fromkeys(self.columns[table])
        row.update(TABLE_DEFAULTS.get(table, {}))
        row.update(copy.deepcopy(dict(record)))
        if row["id"] is None:
            row["id"] = self.next_ids[table]
        else:
            self._check_unique_id(table, row["id"])
        if "inserted_at" in row and row["inserted_at"] is None:
            row["inserted_at"] = _now_iso()
        self._check_not_null(table, row)
        if isinstance(row["id"], int):
            self.next_ids[table] = max(self.next_ids[table], row["id"] + 1)
        rows.append(row)
        return row

    def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        self.calls.append(("insert", table))
        return copy.deepcopy(self._insert(table, record))

    def select(
        self, table: str, filters: Optional[Mapping[str, Any]] = None
    ) -> list[Record]:
        self.calls.append(("select", table))
        rows = self._rows(table)
        filters = filters or {}
        self._check_columns(table, filters)
        matched = [
            row
            for row in rows
            if all(_matches(row[column], value) for column, value in filters.items())
        ]
        return copy.deepcopy(matched)

    def update_by_id(
        self, table: str, record_id: Any, patch: Mapping[str, Any]
    ) -> Record:
        self.calls.append(("update", table))
        self._check_columns(table, patch)
        row = _single(self._find(table, record_id))
        if "id" in patch:
            self._check_unique_id(table, patch["id"], current=row)
        updated = {**row, **copy.deepcopy(dict(patch))}
        self._check_not_null(table, updated)
        row.update(updated)
        if isinstance(row["id"], int):
            self.next_ids[table] = max(self.next_ids[table], row["id"] + 1)
        return copy.deepcopy(row)

    def delete_by_id(self, table: str, record_id: Any) -> Record:
        self.calls.append(("delete", table))
        row = _single(self._find(table, record_id))
        self._rows(table).remove(row)
        return row


class SqlTableClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlTableClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        metadata.create_all(self.engine)

    def _table(self, name: str) -> Table:
        table = metadata.tables.get(name)
        if table is None:
            raise DataAccessError(
                f'relation "public.{name}" does not exist', code="42P01"
            )
        return table

    def _column(self, table: Table, name: str):
        if name not in table.c:
            raise DataAccessError(
                f"column {table.name}.{name} does not exist", code="42703"
            )
        return table.c[name]

    def _check_columns(self, table: Table, values: Mapping[str, Any]) -> None:
        for name in values:
            self._column(table, name)

    def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        target = self._table(table)
        self._check_columns(target, record)
        try:
            with self.engine.begin() as conn:
                row = conn.execute(
                    insert(target).values(**record).returning(*target.c)
                ).mappings().one()
                return dict(row)
        except SQLAlchemyError as exc:
            raise _wrap_sql_error(exc) from exc

    def select(
        self, table: str, filters: Optional[Mapping[str, Any]] = None
    ) -> list[Record]:
        target = self._table(table)
        stmt = select(target)
        for name, value in (filters or {}).items():
            stmt = stmt.where(self._column(target, name) == value)
        stmt = stmt.order_by(target.c.id.asc())
        try:
            with self.engine.connect() as conn:
                return [dict(row) for row in conn.execute(stmt).mappings().all()]
        except SQLAlchemyError as exc:
            raise _wrap_sql_error(exc) from exc

    def update_by_id(
        self, table: str, record_id: Any, patch: Mapping[str, Any]
    ) -> Record:
        target = self._table(table)
        self._check_columns(target, patch)
        stmt = (
            update(target)
            .where(target.c.id == record_id)
            .values(**patch)
            .returning(*target.c)
        )
        return self._mutate_single(stmt)

    def delete_by_id(self, table: str, record_id: Any) -> Record:
        target = self._table(table)
        stmt = delete(target).where(target.c.id == record_id).returning(*target.c)
        return self._mutate_single(stmt)

    def _mutate_single(self, stmt) -> Record:
        # Raising inside begin() rolls back a statement that touched several rows.
        try:
            with self.engine.begin() as conn:
                rows = [dict(row) for row in conn.execute(stmt).mappings().all()]
                return _single(rows)
        except SQLAlchemyError as exc:
            raise _wrap_sql_error(exc) from exc


def _wrap_sql_error(exc: SQLAlchemyError) -> DataAccessError:
    orig = getattr(exc, "orig", None)
    message = str(orig) if orig is not None else str(exc)
    logger.warning("SQL error: %s", message)
    return DataAccessError(message)


class SupabaseTableClient:
    """
    Hosted-platform implementation over a per-request `supabase.Client`.

    The client carries the caller's Authorization header, so row level
    security applies to every call.
    """

    def __init__(self, client: Client):
        self._client = client

    def _execute(self, query) -> list[Record]:
        try:
            response = query.execute()
        except APIError as exc:
            raise DataAccessError(
                exc.message or str(exc),
                code=exc.code,
                details=exc.details,
                hint=exc.hint,
            ) from exc
        except httpx.HTTPError as exc:
            raise DataAccessError(str(exc)) from exc
        data = response.data
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        return list(data)

    def insert(self, table: str, record: Mapping[str, Any]) -> Record:
        rows = self._execute(self._client.table(table).insert(dict(record)))
        return _single(rows)

    def select(
        self, table: str, filters: Optional[Mapping[str, Any]] = None
    ) -> list[Record]:
        query = self._client.table(table).select("*")
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        return self._execute(query)

    def update_by_id(
        self, table: str, record_id: Any, patch: Mapping[str, Any]
    ) -> Record:
        rows = self._execute(
            self._client.table(table).update(dict(patch)).eq("id", record_id)
        )
        return _single(rows)

    def delete_by_id(self, table: str, record_id: Any) -> Record:
        # TODO: the REST layer deletes every matching row before the
        # single-row check runs; use an RPC with a uniqueness guard instead.
        rows = self._execute(self._client.table(table).delete().eq("id", record_id))
        return _single(rows)
