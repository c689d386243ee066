"""Factory helpers for constructing the document store façade."""

from __future__ import annotations

import logging

from lyceum_db.client.base import DocumentClient

from .document_store import DocumentStore


def create_document_store(
    client: DocumentClient, *, logger: logging.Logger | None = None
) -> DocumentStore:
    """Build a DocumentStore over an already provisioned client."""
    return DocumentStore(client, logger=logger)


__all__ = ["create_document_store"]
