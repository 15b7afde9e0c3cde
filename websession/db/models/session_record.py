"""Session table definition and its lifecycle.

The table keeps ``modified`` correct on its own: a row-level trigger bumps
the timestamp whenever an UPDATE actually changes the row, and leaves it
alone for no-op updates. Every write path gets this without setting the
column itself.
"""
import logging
import re
import uuid
from typing import Union

from sqlalchemy import DDL, JSON, Column, DateTime, String, Table, Uuid, event, inspect
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from websession.core.config import DEFAULT_TABLE_NAME
from websession.core.exceptions import SessionSchemaError
from websession.db.base import build_metadata, utcnow

logger = logging.getLogger(__name__)

# 63-byte PostgreSQL identifier limit minus the longest derived suffix,
# "_modified_timestamp_update"
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,36}$")

# JSONB on PostgreSQL: plain json has no equality operator, which the
# row comparison in the trigger needs
SessionPayload = JSON().with_variant(JSONB(), "postgresql")

Bind = Union[Engine, Connection]

_PG_TOUCH_FUNCTION = """
CREATE OR REPLACE FUNCTION %(function)s() RETURNS TRIGGER AS $$
BEGIN
    IF row(NEW.*) IS DISTINCT FROM row(OLD.*) THEN
        NEW.modified = now();
        RETURN NEW;
    ELSE
        RETURN OLD;
    END IF;
END;
$$ LANGUAGE plpgsql
"""

_PG_TRIGGER = """
CREATE TRIGGER %(trigger)s
BEFORE UPDATE ON %(fullname)s
FOR EACH ROW EXECUTE PROCEDURE %(function)s()
"""

_PG_DROP_FUNCTION = "DROP FUNCTION IF EXISTS %(function)s()"

# SQLite cannot rewrite NEW in a BEFORE trigger, so the timestamp is set by
# a follow-up UPDATE. recursive_triggers is off by default, so it does not
# fire the trigger again.
_SQLITE_TRIGGER = """
CREATE TRIGGER %(trigger)s
AFTER UPDATE ON %(fullname)s
FOR EACH ROW WHEN %(changed)s
BEGIN
    UPDATE %(fullname)s SET modified = strftime('%%Y-%%m-%%d %%H:%%M:%%f000', 'now')
    WHERE id = NEW.id;
END
"""


def _require_sql_bind(bind) -> None:
    if not isinstance(bind, (Engine, Connection)):
        raise SessionSchemaError(
            f"Session schema requires a SQLAlchemy Engine or Connection, got {type(bind).__name__}"
        )


class SessionSchema:
    """The session table under a configurable name.

    Args:
        name: Table name; must be a plain SQL identifier
    """

    def __init__(self, name: str = DEFAULT_TABLE_NAME) -> None:
        if not _IDENTIFIER_RE.match(name):
            raise ValueError(f"Invalid session table name: {name!r}")
        self.name = name
        self.metadata = build_metadata()
        self.table = Table(
            name,
            self.metadata,
            Column("id", Uuid, primary_key=True, default=uuid.uuid4,
                   comment="Unique key for the record."),
            Column("key", String(255), nullable=False, unique=True,
                   comment="Unique identifier to the users session."),
            Column("data", SessionPayload, nullable=False,
                   comment="Session specific data"),
            Column("clientip", String(64), nullable=True,
                   comment="Client's IP address"),
            Column("created", DateTime(timezone=True), nullable=False, server_default=utcnow(),
                   comment="When the session row was created"),
            Column("modified", DateTime(timezone=True), nullable=False, server_default=utcnow(),
                   comment="The last time the session row was updated"),
            comment="Active Web Session",
        )
        self._install_triggers()

    @property
    def function_name(self) -> str:
        return f"{self.name}_touch_modified"

    @property
    def trigger_name(self) -> str:
        return f"{self.name}_modified_timestamp_update"

    def _install_triggers(self) -> None:
        context = {"function": self.function_name, "trigger": self.trigger_name}
        changed = " OR ".join(
            f'NEW."{column.name}" IS NOT OLD."{column.name}"' for column in self.table.columns
        )

        event.listen(
            self.table,
            "after_create",
            DDL(_PG_TOUCH_FUNCTION, context=context).execute_if(dialect="postgresql"),
        )
        event.listen(
            self.table,
            "after_create",
            DDL(_PG_TRIGGER, context=context).execute_if(dialect="postgresql"),
        )
        event.listen(
            self.table,
            "after_drop",
            DDL(_PG_DROP_FUNCTION, context=context).execute_if(dialect="postgresql"),
        )
        event.listen(
            self.table,
            "after_create",
            DDL(_SQLITE_TRIGGER, context={**context, "changed": changed}).execute_if(dialect="sqlite"),
        )

    @property
    def column_names(self) -> set:
        return {column.name for column in self.table.columns}

    def exists(self, bind: Bind) -> bool:
        _require_sql_bind(bind)
        return inspect(bind).has_table(self.name)

    def prepare(self, bind: Bind, checkfirst: bool = False) -> None:
        """
        Create the session table, its unique key constraint and the
        change-detection trigger.

        Args:
            bind: Engine or Connection; with a Connection the caller owns the transaction
            checkfirst: Accept an existing table if it has every expected column

        Raises:
            SessionSchemaError: If the bind cannot run DDL or the database rejects it
        """
        _require_sql_bind(bind)
        try:
            if checkfirst and self.exists(bind):
                self._verify_existing(bind)
                logger.debug("Session table %s already present", self.name)
                return
            self.table.create(bind, checkfirst=False)
        except SQLAlchemyError as e:
            logger.error(f"Failed to create session table {self.name}: {e}", extra={
                "error_type": type(e).__name__,
                "table": self.name,
            })
            raise SessionSchemaError(f"Failed to create session table {self.name}: {e}") from e
        logger.info("Created session table %s", self.name)

    def revert(self, bind: Bind) -> None:
        """
        Drop the session table; the exact inverse of ``prepare``.

        Dropping a table that does not exist is a no-op.

        Raises:
            SessionSchemaError: If the bind cannot run DDL or the database rejects it
        """
        _require_sql_bind(bind)
        try:
            self.table.drop(bind, checkfirst=True)
        except SQLAlchemyError as e:
            logger.error(f"Failed to drop session table {self.name}: {e}", extra={
                "error_type": type(e).__name__,
                "table": self.name,
            })
            raise SessionSchemaError(f"Failed to drop session table {self.name}: {e}") from e
        logger.info("Dropped session table %s", self.name)

    def _verify_existing(self, bind: Bind) -> None:
        existing = {column["name"] for column in inspect(bind).get_columns(self.name)}
        missing = self.column_names - existing
        if missing:
            raise SessionSchemaError(
                f"Table {self.name} exists but is not a session table "
                f"(missing columns: {', '.join(sorted(missing))})"
            )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<SessionSchema(name={self.name!r})>"
