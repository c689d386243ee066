"""Value types shared across the adapter."""

from .table import TableReference, validate_name

__all__ = ["TableReference", "validate_name"]
