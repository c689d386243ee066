"""SQLAlchemy-backed document client.

Documents are stored as JSON payloads keyed by ``id`` in one SQL table per
logical table (see :mod:`lyceum_db.db.schema`). Write calls report counts the
way a document database does instead of raising for per-document problems:
a duplicate key on insert shows up as ``errors=1`` and a missing key on
update as ``skipped=1``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager, contextmanager, nullcontext
from typing import Any
from uuid import uuid4

from sqlalchemy import Select, inspect, insert, select, text
from sqlalchemy import delete as sa_delete
from sqlalchemy import exc as sa_exc
from sqlalchemy import update as sa_update
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from lyceum_db.client.base import ResultCursor, Row, WriteResult
from lyceum_db.db.engine import create_session_factory
from lyceum_db.db.schema import (
    TABLE_SEPARATOR,
    DbDatabase,
    create_catalog,
    document_table,
)
from lyceum_db.errors import (
    DatabaseConnectionError,
    QueryError,
    QueryTimeoutError,
)
from lyceum_db.models.table import TableReference, validate_name

_QUERY_CANCELED = "57014"


class SqlAlchemyDocumentClient:
    """Document client over a SQLAlchemy engine (SQLite or PostgreSQL).

    Engines on a ``StaticPool`` (in-memory SQLite) hand every thread the same
    DBAPI connection, so the client runs one statement sequence at a time on
    them and reads cursors eagerly.
    """

    def __init__(self, engine: Engine, *, logger: logging.Logger | None = None):
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._logger = logger or logging.getLogger(__name__)
        self._serial_lock = threading.Lock() if isinstance(engine.pool, StaticPool) else None

    @classmethod
    def from_engine(
        cls, engine: Engine, *, logger: logging.Logger | None = None
    ) -> SqlAlchemyDocumentClient:
        """Build a client and make sure the database catalog exists."""
        client = cls(engine, logger=logger)
        client._logger.debug("ensuring database catalog on %s", engine.url.render_as_string())
        try:
            create_catalog(engine)
        except sa_exc.DBAPIError as exc:
            raise DatabaseConnectionError(f"Unable to prepare the database catalog: {exc.orig}") from exc
        return client

    @property
    def engine(self) -> Engine:
        return self._engine

    # ---------------------------------------------------------------- Catalog
    def list_databases(self, *, timeout: float | None = None) -> list[str]:
        with self._session(timeout, action="list databases") as session:
            return list(session.scalars(select(DbDatabase.name).order_by(DbDatabase.name)))

    def create_database(self, name: str, *, timeout: float | None = None) -> ResultCursor:
        validate_name(name, "database name")
        with self._session(timeout, action=f"create database {name!r}", database=name) as session:
            session.add(DbDatabase(name=name))
            try:
                session.commit()
            except sa_exc.IntegrityError as exc:
                raise QueryError(f"Database {name!r} already exists.", database=name) from exc
        return ResultCursor([{"databases_created": 1, "name": name}])

    def list_tables(self, database: str, *, timeout: float | None = None) -> list[str]:
        with self._session(timeout, action=f"list tables in {database!r}", database=database) as session:
            self._require_database(session, database)
            prefix = f"{database}{TABLE_SEPARATOR}"
            names = inspect(session.connection()).get_table_names()
            return sorted(name[len(prefix):] for name in names if name.startswith(prefix))

    def create_table(self, database: str, name: str, *, timeout: float | None = None) -> ResultCursor:
        validate_name(name, "table name")
        action = f"create table {name!r} in database {database!r}"
        with self._session(timeout, action=action, database=database, table=name) as session:
            self._require_database(session, database)
            document_table(database, name).create(bind=session.connection(), checkfirst=False)
            session.commit()
        return ResultCursor([{"tables_created": 1, "database": database, "name": name}])

    # -------------------------------------------------------------- Documents
    def insert(
        self, table: TableReference, document: Row, *, timeout: float | None = None
    ) -> WriteResult:
        payload = dict(document)
        generated: tuple[str, ...] = ()
        if payload.get("id") is None:
            payload["id"] = str(uuid4())
            generated = (payload["id"],)
        key = str(payload["id"])

        sql_table = document_table(table.database, table.table)
        with self._session(timeout, action=f"insert into {table}", **_context(table)) as session:
            try:
                inserted = session.execute(
                    insert(sql_table).values(id=key, document=payload)
                ).rowcount
                session.commit()
            except sa_exc.IntegrityError:
                session.rollback()
                return WriteResult(errors=1, first_error=f"Duplicate primary key `id`: {key!r}")
        return WriteResult(inserted=inserted, generated_keys=generated)

    def get(self, table: TableReference, key: str, *, timeout: float | None = None) -> ResultCursor:
        sql_table = document_table(table.database, table.table)
        stmt = select(sql_table.c.document).where(sql_table.c.id == str(key))
        return self._cursor(stmt, timeout, action=f"get {key!r} from {table}", table=table)

    def scan(self, table: TableReference, *, timeout: float | None = None) -> ResultCursor:
        sql_table = document_table(table.database, table.table)
        stmt = select(sql_table.c.document)
        return self._cursor(stmt, timeout, action=f"scan {table}", table=table)

    def update(
        self, table: TableReference, key: str, document: Row, *, timeout: float | None = None
    ) -> WriteResult:
        sql_table = document_table(table.database, table.table)
        changes = dict(document)
        with self._session(timeout, action=f"update {key!r} in {table}", **_context(table)) as session:
            current = session.execute(
                select(sql_table.c.document)
                .where(sql_table.c.id == str(key))
                .with_for_update()
            ).scalar_one_or_none()
            if current is None:
                return WriteResult(skipped=1)
            if "id" in changes and changes["id"] != current.get("id"):
                return WriteResult(errors=1, first_error="Primary key `id` cannot be changed.")

            merged = merge_documents(current, changes)
            if merged == current:
                return WriteResult(unchanged=1)

            replaced = session.execute(
                sa_update(sql_table).where(sql_table.c.id == str(key)).values(document=merged)
            ).rowcount
            session.commit()
        return WriteResult(replaced=replaced)

    def delete(self, table: TableReference, key: str, *, timeout: float | None = None) -> ResultCursor:
        sql_table = document_table(table.database, table.table)
        with self._session(timeout, action=f"delete {key!r} from {table}", **_context(table)) as session:
            deleted = session.execute(sa_delete(sql_table).where(sql_table.c.id == str(key))).rowcount
            session.commit()
        return ResultCursor([{"deleted": deleted, "skipped": 0 if deleted else 1}])

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        self._engine.dispose()

    # ---------------------------------------------------------------- Helpers
    def _connect(self, timeout: float | None) -> Session:
        session = self._session_factory()
        try:
            connection = session.connection()
            if timeout is not None and connection.dialect.name == "postgresql":
                millis = max(int(timeout * 1000), 1)
                session.execute(text(f"SET LOCAL statement_timeout = {millis}"))
        except sa_exc.TimeoutError as exc:
            session.close()
            raise QueryTimeoutError("Timed out waiting for a database connection.") from exc
        except sa_exc.DBAPIError as exc:
            session.close()
            raise DatabaseConnectionError(f"Unable to connect to the database: {exc.orig}") from exc
        return session

    @contextmanager
    def _session(
        self,
        timeout: float | None,
        *,
        action: str,
        database: str | None = None,
        table: str | None = None,
    ) -> Iterator[Session]:
        with self._serialized():
            session = self._connect(timeout)
            try:
                with _translate_errors(action, database=database, table=table):
                    yield session
            finally:
                session.close()

    def _serialized(self) -> AbstractContextManager[Any]:
        return self._serial_lock if self._serial_lock is not None else nullcontext()

    def _cursor(
        self, stmt: Select, timeout: float | None, *, action: str, table: TableReference
    ) -> ResultCursor:
        if self._serial_lock is not None:
            # The shared connection cannot stay checked out while other threads run.
            with self._session(timeout, action=action, **_context(table)) as session:
                rows = list(session.execute(stmt).scalars())
            return ResultCursor(rows)

        session = self._connect(timeout)
        try:
            with _translate_errors(action, **_context(table)):
                result = session.execute(stmt)
        except Exception:
            session.close()
            raise

        def release() -> None:
            result.close()
            session.close()

        return ResultCursor(result.scalars(), release=release)

    @staticmethod
    def _require_database(session: Session, database: str) -> None:
        if session.get(DbDatabase, database) is None:
            raise QueryError(f"Database {database!r} does not exist.", database=database)


def merge_documents(current: Mapping[str, Any], changes: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``changes`` into ``current``, recursing into nested objects."""
    merged = dict(current)
    for field, value in changes.items():
        existing = merged.get(field)
        if isinstance(existing, Mapping) and isinstance(value, Mapping):
            merged[field] = merge_documents(existing, value)
        else:
            merged[field] = value
    return merged


def _context(table: TableReference) -> dict[str, str]:
    return {"database": table.database, "table": table.table}


@contextmanager
def _translate_errors(
    action: str, *, database: str | None = None, table: str | None = None
) -> Iterator[None]:
    """Re-raise SQLAlchemy driver errors as adapter errors."""
    try:
        yield
    except sa_exc.TimeoutError as exc:
        raise QueryTimeoutError(
            f"Timed out while trying to {action}.", database=database, table=table
        ) from exc
    except sa_exc.DBAPIError as exc:
        if exc.connection_invalidated:
            raise DatabaseConnectionError(
                f"Lost the database connection while trying to {action}: {exc.orig}"
            ) from exc
        if _is_statement_timeout(exc):
            raise QueryTimeoutError(
                f"Statement timed out while trying to {action}.", database=database, table=table
            ) from exc
        raise QueryError(f"Unable to {action}: {exc.orig}", database=database, table=table) from exc
    except sa_exc.StatementError as exc:
        # Raised before the driver sees the statement, e.g. a value the JSON column cannot serialise.
        raise QueryError(f"Unable to {action}: {exc.orig}", database=database, table=table) from exc


def _is_statement_timeout(exc: sa_exc.DBAPIError) -> bool:
    code = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
    return code == _QUERY_CANCELED


__all__ = ["SqlAlchemyDocumentClient", "merge_documents"]
