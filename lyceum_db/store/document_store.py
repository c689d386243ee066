"""CRUD façade over a document client."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from functools import lru_cache
from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from lyceum_db.client.base import Cursor, DocumentClient
from lyceum_db.errors import (
    CountMismatchError,
    DecodeError,
    DocumentNotFoundError,
    EmptyResultError,
    StoreError,
)
from lyceum_db.models.table import TableReference

T = TypeVar("T")
R = TypeVar("R")

Document = Mapping[str, Any] | BaseModel


class DocumentStore:
    """Create, read, update and delete documents in provisioned tables.

    The store holds no state besides the client, so one instance can serve
    concurrent callers as long as the client's pool can.
    """

    def __init__(self, client: DocumentClient, *, logger: logging.Logger | None = None):
        """Internal constructor; prefer ``create_document_store`` for public use."""
        self._client = client
        self._logger = logger or logging.getLogger(__name__)

    # ----------------------------------------------------------------- Writes
    def create(
        self,
        table: TableReference,
        document: Document,
        model: type[T],
        *,
        timeout: float | None = None,
    ) -> T:
        """Insert ``document`` and return it as stored, decoded into ``model``.

        The stored copy is read back so server-assigned keys are visible.
        """
        payload = _to_payload(document)
        result = self._run("insert", table, self._client.insert, table, payload, timeout=timeout)
        if result.inserted != 1:
            raise CountMismatchError("insert", 1, result.inserted, result.first_error)

        key = result.generated_keys[0] if result.generated_keys else payload.get("id")
        if key is None:
            raise StoreError(f"Insert into {table} did not report a primary key.")
        return self.read(table, key, model, timeout=timeout)

    def update(
        self,
        table: TableReference,
        key: str,
        document: Document,
        model: type[T],
        *,
        timeout: float | None = None,
    ) -> T:
        """Merge ``document`` into the document at ``key`` and return the result."""
        payload = _to_payload(document, partial=True)
        result = self._run("update", table, self._client.update, table, key, payload, timeout=timeout)
        if result.replaced != 1:
            raise CountMismatchError("update", 1, result.replaced, result.first_error)
        return self.read(table, key, model, timeout=timeout)

    def delete(self, table: TableReference, key: str, *, timeout: float | None = None) -> None:
        """Delete the document at ``key``; a missing key is not an error."""
        cursor = self._run("delete", table, self._client.delete, table, key, timeout=timeout)
        cursor.close()

    # ------------------------------------------------------------------ Reads
    def read(
        self,
        table: TableReference,
        key: str,
        model: type[T],
        *,
        timeout: float | None = None,
    ) -> T:
        """Return the document at ``key`` decoded into ``model``."""
        cursor = self._run("get", table, self._client.get, table, key, timeout=timeout)
        with cursor:
            row = _first_row(cursor, table, key)
        return _decode(model, row)

    def read_all(
        self,
        table: TableReference,
        model: type[T],
        *,
        timeout: float | None = None,
    ) -> list[T]:
        """Return every document in ``table``, in whatever order the store yields."""
        cursor = self._run("scan", table, self._client.scan, table, timeout=timeout)
        with cursor:
            rows = cursor.all()
        return [_decode(model, row) for row in rows]

    # ---------------------------------------------------------------- Helpers
    def _run(
        self,
        action: str,
        table: TableReference,
        call: Callable[..., R],
        *args: Any,
        **kwargs: Any,
    ) -> R:
        try:
            return call(*args, **kwargs)
        except StoreError as exc:
            self._logger.error("unable to run %s on %s: %s", action, table, exc)
            raise


def _first_row(cursor: Cursor, table: TableReference, key: str) -> Any:
    try:
        row = cursor.one()
    except EmptyResultError as exc:
        raise DocumentNotFoundError(str(table), key) from exc
    # Some drivers answer a point lookup for a missing key with a single null.
    if row is None:
        raise DocumentNotFoundError(str(table), key)
    return row


def _to_payload(document: Document, *, partial: bool = False) -> dict[str, Any]:
    if isinstance(document, BaseModel):
        return document.model_dump(mode="json", exclude_unset=partial)
    if isinstance(document, Mapping):
        return dict(document)
    raise TypeError(f"Unsupported document payload: {type(document)!r}")


@lru_cache(maxsize=256)
def _adapter(model: Any) -> TypeAdapter[Any]:
    return TypeAdapter(model)


def _decode(model: type[T], row: Any) -> T:
    try:
        return _adapter(model).validate_python(row)
    except ValidationError as exc:
        raise DecodeError(f"Unable to decode document into {model!r}: {exc}") from exc


__all__ = ["Document", "DocumentStore"]
