"""Provision the lyceum database and tables from the command line.

Connects with the configured settings (``LYCEUM_*`` environment variables or
``.env``), creates whatever database/tables are missing and exits. Safe to
run repeatedly.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

CURRENT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = CURRENT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from pydantic import ValidationError

from lyceum_db.config import get_settings
from lyceum_db.errors import StoreError
from lyceum_db.startup import connect


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create the lyceum database and tables if missing")
    parser.add_argument(
        "--db-url",
        type=str,
        default=None,
        help="SQLAlchemy URL (defaults to LYCEUM_DB_URL).",
    )
    parser.add_argument(
        "--database",
        type=str,
        default=None,
        help="Database to provision (defaults to LYCEUM_DATABASE).",
    )
    parser.add_argument(
        "--table",
        dest="tables",
        action="append",
        default=None,
        help="Table to provision; repeat for several (defaults to LYCEUM_TABLES).",
    )
    parser.add_argument("--quiet", action="store_true", help="Only log warnings and errors.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = get_settings()
    except ValidationError as exc:
        logging.basicConfig(format="[%(levelname)s] %(message)s")
        logging.getLogger("provision").error("Invalid settings: %s", exc)
        return 1

    overrides = {
        key: value
        for key, value in {
            "db_url": args.db_url,
            "database": args.database,
            "tables": tuple(args.tables) if args.tables else None,
        }.items()
        if value is not None
    }
    if overrides:
        settings = settings.model_copy(update=overrides)

    logging.basicConfig(
        level=logging.WARNING if args.quiet else settings.log_level,
        format="[%(levelname)s] %(message)s",
    )
    logger = logging.getLogger("provision")

    try:
        client = connect(settings, logger=logger)
    except (StoreError, ValueError) as exc:
        logger.error("Provisioning failed: %s", exc)
        return 1

    client.close()
    logger.info("Provisioned database %r with tables %s", settings.database, ", ".join(settings.tables))
    return 0


if __name__ == "__main__":
    sys.exit(main())
