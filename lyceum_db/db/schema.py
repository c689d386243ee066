"""SQLAlchemy schema backing the document client.

A "database" is a row in the ``lyceum_databases`` catalog; each of its tables
is a physical SQL table named ``<database>__<table>`` holding one JSON
document per primary key.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, MetaData, String, Table, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql.sqltypes import JSON

JSON_TYPE = JSON().with_variant(JSONB, "postgresql")
TABLE_SEPARATOR = "__"


class Base(DeclarativeBase):
    """Base class for SQLAlchemy declarative mappings."""


class DbDatabase(Base):
    """Catalog entry for a logical database."""

    __tablename__ = "lyceum_databases"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


def physical_table_name(database: str, table: str) -> str:
    return f"{database}{TABLE_SEPARATOR}{table}"


def document_table(database: str, table: str, metadata: MetaData | None = None) -> Table:
    """Describe the SQL table holding documents for ``database.table``."""
    return Table(
        physical_table_name(database, table),
        metadata if metadata is not None else MetaData(),
        Column("id", String(255), primary_key=True),
        Column("document", JSON_TYPE, nullable=False),
    )


def create_catalog(engine: Engine) -> None:
    """Create the database catalog table if it is missing."""
    Base.metadata.create_all(engine, checkfirst=True)


__all__ = [
    "Base",
    "DbDatabase",
    "JSON_TYPE",
    "TABLE_SEPARATOR",
    "create_catalog",
    "document_table",
    "physical_table_name",
]
