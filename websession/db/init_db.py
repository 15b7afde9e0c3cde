#!/usr/bin/env python3
"""Create or drop the session table outside of a running server.

    python -m websession.db.init_db prepare [--database ID] [--table NAME] [--checkfirst]
    python -m websession.db.init_db revert  [--database ID] [--table NAME]
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

from websession.core.config import settings
from websession.core.exceptions import SessionSchemaError
from websession.core.logging_config import setup_logging
from websession.db.models.session_record import SessionSchema
from websession.db.session import DatabaseID, DatabaseRegistry, registry_from_settings

logger = logging.getLogger("websession.database")


def prepare_database(
    registry: DatabaseRegistry,
    database_id: DatabaseID = None,
    table_name: Optional[str] = None,
    checkfirst: bool = False,
) -> SessionSchema:
    """Create the session table in the selected database"""
    schema = SessionSchema(table_name or settings.session_table_name)
    logger.info("Preparing session table", extra={
        "table": schema.name,
        "database_id": database_id or "default",
    })
    schema.prepare(registry.engine(database_id), checkfirst=checkfirst)
    return schema


def revert_database(
    registry: DatabaseRegistry,
    database_id: DatabaseID = None,
    table_name: Optional[str] = None,
) -> SessionSchema:
    """Drop the session table from the selected database"""
    schema = SessionSchema(table_name or settings.session_table_name)
    logger.info("Reverting session table", extra={
        "table": schema.name,
        "database_id": database_id or "default",
    })
    schema.revert(registry.engine(database_id))
    return schema


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="websession-db", description="Manage the session table"
    )
    parser.add_argument("command", choices=["prepare", "revert"])
    parser.add_argument("--database", default=None,
                        help="Database id from EXTRA_DATABASES (default database if omitted)")
    parser.add_argument("--table", default=None, help="Session table name")
    parser.add_argument("--checkfirst", action="store_true",
                        help="Accept an existing compatible table when preparing")
    return parser


def main(argv: Optional[Sequence[str]] = None, registry: Optional[DatabaseRegistry] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    try:
        registry = registry or registry_from_settings(settings)
        if args.command == "prepare":
            schema = prepare_database(registry, args.database, args.table, args.checkfirst)
        else:
            schema = revert_database(registry, args.database, args.table)
    except LookupError as e:
        logger.error(str(e))
        return 2
    except (SessionSchemaError, ValueError) as e:
        logger.error(f"Session table {args.command} failed: {e}", extra={
            "error_type": type(e).__name__,
        })
        return 1

    logger.info(f"Session table {schema.name} {args.command} complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
