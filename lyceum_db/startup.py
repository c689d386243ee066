"""Startup helpers for connecting to and provisioning the database."""

from __future__ import annotations

import logging

from lyceum_db.client.sqlalchemy_client import SqlAlchemyDocumentClient
from lyceum_db.config import StoreSettings, get_settings
from lyceum_db.db.engine import engine_from_settings
from lyceum_db.provisioning import ProvisioningService


def connect(
    settings: StoreSettings | None = None,
    *,
    logger: logging.Logger | None = None,
) -> SqlAlchemyDocumentClient:
    """Connect to the configured database and provision its tables.

    - Settings default to ``get_settings()`` (environment and ``.env``).
    - The returned client owns the engine; call ``close()`` at shutdown.
    - If provisioning fails the engine is disposed and the error propagates.
    """
    settings = settings or get_settings()
    log = logger or logging.getLogger(__name__)

    log.debug("connecting to database...")
    engine = engine_from_settings(settings)
    try:
        client = SqlAlchemyDocumentClient.from_engine(engine, logger=log)
        log.debug("connected to database")
        ProvisioningService(client, logger=log).initialize(settings.database, settings.tables)
    except Exception:
        engine.dispose()
        raise
    return client


__all__ = ["connect"]
