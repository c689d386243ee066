"""Table reference value type."""

from __future__ import annotations

import re
from dataclasses import dataclass

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


def validate_name(name: str, kind: str = "name") -> str:
    """Return ``name`` if it is a legal database or table identifier."""
    if not name or not _NAME_PATTERN.match(name):
        raise ValueError(f"Invalid {kind} {name!r}: use letters, digits and underscores only.")
    if "__" in name:
        raise ValueError(f"Invalid {kind} {name!r}: double underscores are reserved.")
    return name


@dataclass(frozen=True, slots=True)
class TableReference:
    """Identifies one table inside one database."""

    database: str
    table: str

    def __post_init__(self) -> None:
        validate_name(self.database, "database name")
        validate_name(self.table, "table name")

    def __str__(self) -> str:
        return f"{self.database}.{self.table}"


__all__ = ["TableReference", "validate_name"]
