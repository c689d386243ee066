"""Idempotent provisioning of a database and its tables."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from lyceum_db.client.base import Cursor, DocumentClient
from lyceum_db.errors import EmptyConfirmationError, EmptyResultError, StoreError
from lyceum_db.models.table import validate_name


class ProvisioningService:
    """Make sure a database and a fixed set of tables exist.

    Each step checks the catalog first and only issues a create command for
    what is missing, so ``initialize`` can run on every startup. The check and
    the create are separate round trips: two processes initializing an empty
    server at the same time may both try to create the same table, and the
    loser gets the client's "already exists" error. Call ``initialize`` once,
    before concurrent traffic starts.
    """

    def __init__(self, client: DocumentClient, *, logger: logging.Logger | None = None):
        self._client = client
        self._logger = logger or logging.getLogger(__name__)

    def initialize(
        self,
        database: str,
        tables: Sequence[str],
        *,
        timeout: float | None = None,
    ) -> None:
        """Create ``database`` and each of ``tables`` (in order) when missing.

        Names are validated before anything is listed or created. Errors
        propagate unchanged. Tables created before a failure are kept; a later
        call skips them.
        """
        validate_name(database, "database name")
        for table in tables:
            validate_name(table, "table name")

        self._logger.debug("initializing database %r...", database)
        self.create_database(database, timeout=timeout)
        for table in tables:
            self.create_table(database, table, timeout=timeout)
        self._logger.debug("initialized database %r", database)

    def database_exists(self, name: str, *, timeout: float | None = None) -> bool:
        try:
            databases = self._client.list_databases(timeout=timeout)
        except StoreError as exc:
            self._logger.error("unable to list databases: %s", exc)
            raise
        return name in databases

    def table_exists(self, database: str, name: str, *, timeout: float | None = None) -> bool:
        try:
            tables = self._client.list_tables(database, timeout=timeout)
        except StoreError as exc:
            self._logger.error("unable to list tables in %r: %s", database, exc)
            raise
        return name in tables

    def create_database(self, name: str, *, timeout: float | None = None) -> bool:
        """Create ``name`` unless it exists. Returns whether it was created."""
        if self.database_exists(name, timeout=timeout):
            return False

        self._logger.debug("creating database: %s", name)
        with self._client.create_database(name, timeout=timeout) as cursor:
            self._confirm(cursor, database=name)
        return True

    def create_table(self, database: str, name: str, *, timeout: float | None = None) -> bool:
        """Create table ``name`` in ``database`` unless it exists."""
        if self.table_exists(database, name, timeout=timeout):
            return False

        self._logger.debug("creating table %r in database %r", name, database)
        with self._client.create_table(database, name, timeout=timeout) as cursor:
            self._confirm(cursor, database=database, table=name)
        return True

    def _confirm(self, cursor: Cursor, *, database: str, table: str | None = None) -> None:
        try:
            cursor.one()
        except EmptyResultError as exc:
            self._logger.debug("no confirmation row for %s", table or database)
            raise EmptyConfirmationError(database, table) from exc


__all__ = ["ProvisioningService"]
