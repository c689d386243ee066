from __future__ import annotations

import os
import threading
from collections import Counter
from collections.abc import Iterator
from typing import Any
from uuid import uuid4

import pytest
from sqlalchemy import MetaData
from sqlalchemy.engine import Engine

from lyceum_db.client.base import ResultCursor, Row, WriteResult
from lyceum_db.client.sqlalchemy_client import SqlAlchemyDocumentClient, merge_documents
from lyceum_db.db.engine import create_engine
from lyceum_db.db.schema import TABLE_SEPARATOR, DbDatabase
from lyceum_db.errors import QueryError
from lyceum_db.models import TableReference
from lyceum_db.provisioning import ProvisioningService
from lyceum_db.store import DocumentStore, create_document_store


@pytest.fixture(scope="session")
def postgres_url() -> str | None:
    """Return the Postgres test URL if provided via env."""
    return os.getenv("POSTGRES_TEST_URL") or os.getenv("DATABASE_URL")


@pytest.fixture
def engine(postgres_url: str | None) -> Iterator[Engine]:
    """Yield an engine targeting Postgres when configured; otherwise SQLite in-memory."""
    engine = create_engine(postgres_url) if postgres_url else create_engine()
    try:
        yield engine
    finally:
        _drop_store_tables(engine)
        engine.dispose()


@pytest.fixture
def client(engine: Engine) -> SqlAlchemyDocumentClient:
    return SqlAlchemyDocumentClient.from_engine(engine)


@pytest.fixture
def items(client: SqlAlchemyDocumentClient) -> TableReference:
    """An ``item`` table provisioned in the ``lyceum`` database."""
    ProvisioningService(client).initialize("lyceum", ["item"])
    return TableReference("lyceum", "item")


@pytest.fixture
def document_store(client: SqlAlchemyDocumentClient) -> DocumentStore:
    return create_document_store(client)


@pytest.fixture
def fake_client() -> RecordingClient:
    return RecordingClient()


@pytest.fixture
def fake_items(fake_client: RecordingClient) -> TableReference:
    fake_client.databases["lyceum"] = {"item": {}}
    return TableReference("lyceum", "item")


@pytest.fixture
def fake_store(fake_client: RecordingClient) -> DocumentStore:
    return create_document_store(fake_client)


class RecordingClient:
    """In-memory document client that records calls and cursors.

    Knobs:
    - ``inserted_count`` / ``replaced_count`` override the reported counts.
    - ``empty_confirmations`` makes create commands return no rows.
    - ``failures`` maps a method name to an exception it raises.
    - ``list_barrier`` makes ``list_databases`` wait for other callers.
    """

    def __init__(self) -> None:
        self.databases: dict[str, dict[str, dict[str, dict[str, Any]]]] = {}
        self.calls: Counter[str] = Counter()
        self.timeouts: list[float | None] = []
        self.cursors: list[ResultCursor] = []
        self.inserted_count: int | None = None
        self.replaced_count: int | None = None
        self.empty_confirmations = False
        self.failures: dict[str, Exception] = {}
        self.list_barrier: threading.Barrier | None = None
        self._lock = threading.Lock()

    @property
    def creation_calls(self) -> int:
        return self.calls["create_database"] + self.calls["create_table"]

    @property
    def unreleased(self) -> list[ResultCursor]:
        return [cursor for cursor in self.cursors if not cursor.closed]

    def list_databases(self, *, timeout: float | None = None) -> list[str]:
        self._record("list_databases", timeout)
        with self._lock:
            names = sorted(self.databases)
        if self.list_barrier is not None:
            self.list_barrier.wait(timeout=5)
        return names

    def create_database(self, name: str, *, timeout: float | None = None) -> ResultCursor:
        self._record("create_database", timeout)
        with self._lock:
            if name in self.databases:
                raise QueryError(f"Database {name!r} already exists.", database=name)
            self.databases[name] = {}
        return self._confirmation({"databases_created": 1})

    def list_tables(self, database: str, *, timeout: float | None = None) -> list[str]:
        self._record("list_tables", timeout)
        with self._lock:
            return sorted(self._database(database))

    def create_table(self, database: str, name: str, *, timeout: float | None = None) -> ResultCursor:
        self._record("create_table", timeout)
        with self._lock:
            tables = self._database(database)
            if name in tables:
                raise QueryError(f"Table {name!r} already exists.", database=database, table=name)
            tables[name] = {}
        return self._confirmation({"tables_created": 1})

    def insert(self, table: TableReference, document: Row, *, timeout: float | None = None) -> WriteResult:
        self._record("insert", timeout)
        rows = self._rows(table)
        payload = dict(document)
        generated: tuple[str, ...] = ()
        if payload.get("id") is None:
            payload["id"] = str(uuid4())
            generated = (payload["id"],)
        if payload["id"] in rows:
            return WriteResult(errors=1, first_error="Duplicate primary key `id`")
        rows[payload["id"]] = payload
        inserted = 1 if self.inserted_count is None else self.inserted_count
        return WriteResult(inserted=inserted, generated_keys=generated)

    def get(self, table: TableReference, key: str, *, timeout: float | None = None) -> ResultCursor:
        self._record("get", timeout)
        row = self._rows(table).get(key)
        return self._cursor([] if row is None else [row])

    def update(
        self, table: TableReference, key: str, document: Row, *, timeout: float | None = None
    ) -> WriteResult:
        self._record("update", timeout)
        rows = self._rows(table)
        current = rows.get(key)
        if current is None:
            return WriteResult(skipped=1)
        merged = merge_documents(current, document)
        rows[key] = merged
        if self.replaced_count is not None:
            return WriteResult(replaced=self.replaced_count)
        if merged == current:
            return WriteResult(unchanged=1)
        return WriteResult(replaced=1)

    def delete(self, table: TableReference, key: str, *, timeout: float | None = None) -> ResultCursor:
        self._record("delete", timeout)
        removed = self._rows(table).pop(key, None)
        return self._cursor([{"deleted": 0 if removed is None else 1}])

    def scan(self, table: TableReference, *, timeout: float | None = None) -> ResultCursor:
        self._record("scan", timeout)
        return self._cursor(list(self._rows(table).values()))

    def close(self) -> None:
        self.calls["close"] += 1

    def _record(self, name: str, timeout: float | None) -> None:
        with self._lock:
            self.calls[name] += 1
            self.timeouts.append(timeout)
        failure = self.failures.get(name)
        if failure is not None:
            raise failure

    def _confirmation(self, row: dict[str, Any]) -> ResultCursor:
        return self._cursor([] if self.empty_confirmations else [row])

    def _cursor(self, rows: list[Any]) -> ResultCursor:
        cursor = ResultCursor(rows)
        self.cursors.append(cursor)
        return cursor

    def _database(self, database: str) -> dict[str, dict[str, dict[str, Any]]]:
        try:
            return self.databases[database]
        except KeyError:
            raise QueryError(f"Database {database!r} does not exist.", database=database) from None

    def _rows(self, table: TableReference) -> dict[str, dict[str, Any]]:
        tables = self._database(table.database)
        try:
            return tables[table.table]
        except KeyError:
            raise QueryError(
                f"Table {table} does not exist.", database=table.database, table=table.table
            ) from None


def _drop_store_tables(engine: Engine) -> None:
    metadata = MetaData()
    metadata.reflect(bind=engine)
    owned = [
        table
        for name, table in metadata.tables.items()
        if name == DbDatabase.__tablename__ or TABLE_SEPARATOR in name
    ]
    metadata.drop_all(bind=engine, tables=owned)
