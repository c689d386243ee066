"""Database client protocol and implementations."""

from .base import Cursor, DocumentClient, ResultCursor, Row, WriteResult
from .sqlalchemy_client import SqlAlchemyDocumentClient

__all__ = [
    "Cursor",
    "DocumentClient",
    "ResultCursor",
    "Row",
    "SqlAlchemyDocumentClient",
    "WriteResult",
]
