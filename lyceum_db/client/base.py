"""Client protocol the provisioning and store layers are written against.

Any object satisfying :class:`DocumentClient` can back the adapter. The
production implementation lives in :mod:`lyceum_db.client.sqlalchemy_client`;
tests use a recording fake.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from lyceum_db.errors import EmptyResultError
from lyceum_db.models.table import TableReference

Row = Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class WriteResult:
    """Summary returned by insert and update calls."""

    inserted: int = 0
    replaced: int = 0
    unchanged: int = 0
    skipped: int = 0
    deleted: int = 0
    errors: int = 0
    generated_keys: tuple[str, ...] = field(default_factory=tuple)
    first_error: str | None = None


@runtime_checkable
class Cursor(Protocol):
    """Handle over a query response. Must be closed once consumed."""

    def one(self) -> Any: ...

    def all(self) -> list[Any]: ...

    def close(self) -> None: ...

    def __enter__(self) -> Cursor: ...

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None: ...


class ResultCursor:
    """Cursor over an iterable of rows with an optional release callback.

    ``release`` runs exactly once, on the first call to :meth:`close`.
    """

    def __init__(self, rows: Iterable[Any], *, release: Callable[[], None] | None = None):
        self._rows: Iterator[Any] = iter(rows)
        self._release = release
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def one(self) -> Any:
        try:
            return next(self._rows)
        except StopIteration:
            raise EmptyResultError("The result contains no rows.") from None

    def all(self) -> list[Any]:
        return list(self._rows)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._release is not None:
            self._release()

    def __enter__(self) -> ResultCursor:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


@runtime_checkable
class DocumentClient(Protocol):
    """Capabilities the adapter needs from a document database client."""

    def list_databases(self, *, timeout: float | None = None) -> list[str]: ...

    def create_database(self, name: str, *, timeout: float | None = None) -> Cursor: ...

    def list_tables(self, database: str, *, timeout: float | None = None) -> list[str]: ...

    def create_table(self, database: str, name: str, *, timeout: float | None = None) -> Cursor: ...

    def insert(
        self, table: TableReference, document: Row, *, timeout: float | None = None
    ) -> WriteResult: ...

    def get(self, table: TableReference, key: str, *, timeout: float | None = None) -> Cursor: ...

    def update(
        self, table: TableReference, key: str, document: Row, *, timeout: float | None = None
    ) -> WriteResult: ...

    def delete(self, table: TableReference, key: str, *, timeout: float | None = None) -> Cursor: ...

    def scan(self, table: TableReference, *, timeout: float | None = None) -> Cursor: ...

    def close(self) -> None: ...


__all__ = ["Cursor", "DocumentClient", "ResultCursor", "Row", "WriteResult"]
