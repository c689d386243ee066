"""Document store orchestration helpers."""

from .document_store import Document, DocumentStore
from .factory import create_document_store

__all__ = ["Document", "DocumentStore", "create_document_store"]
