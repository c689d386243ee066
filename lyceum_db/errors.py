"""Error hierarchy shared by the client, provisioning and store layers."""

from __future__ import annotations

from typing import Any


class StoreError(RuntimeError):
    """Base class for every error raised by the adapter."""


class DatabaseConnectionError(StoreError):
    """Raised when a connection to the database cannot be established or used."""


class QueryError(StoreError):
    """Raised when the database rejects or fails to run a statement."""

    def __init__(self, message: str, *, database: str | None = None, table: str | None = None):
        super().__init__(message)
        self.database = database
        self.table = table


class QueryTimeoutError(QueryError):
    """Raised when a statement is cancelled by its deadline."""


class EmptyResultError(StoreError):
    """Raised when a cursor expected to yield one row yields none."""


class DocumentNotFoundError(EmptyResultError):
    """Raised when a point lookup finds no document for the key."""

    def __init__(self, table: str, key: Any):
        super().__init__(f"Document {key!r} does not exist in table {table!r}.")
        self.table = table
        self.key = key


class EmptyConfirmationError(EmptyResultError):
    """Raised when a create command returns no confirmation row."""

    def __init__(self, database: str, table: str | None = None):
        target = f"table {table!r} in database {database!r}" if table else f"database {database!r}"
        super().__init__(f"No confirmation returned while creating {target}.")
        self.database = database
        self.table = table


class CountMismatchError(StoreError):
    """Raised when a write touches a number of documents other than expected."""

    def __init__(self, operation: str, expected: int, actual: int, detail: str | None = None):
        noun = "inserted" if operation == "insert" else "replaced"
        message = f"Unexpected document {noun} count for {operation}: expected {expected}, got {actual}."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)
        self.operation = operation
        self.expected = expected
        self.actual = actual


class DecodeError(StoreError):
    """Raised when a result payload cannot be decoded into the requested type."""


__all__ = [
    "CountMismatchError",
    "DatabaseConnectionError",
    "DecodeError",
    "DocumentNotFoundError",
    "EmptyConfirmationError",
    "EmptyResultError",
    "QueryError",
    "QueryTimeoutError",
    "StoreError",
]
