from sqlalchemy import DateTime, MetaData
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.expression import FunctionElement

# Define naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def build_metadata() -> MetaData:
    """Create a MetaData carrying the shared constraint naming convention.

    Each session table gets its own MetaData so that several tables with
    different names can be declared in one process without colliding.
    """
    return MetaData(naming_convention=convention)


class utcnow(FunctionElement):
    """Current timestamp as rendered by each dialect.

    SQLite's CURRENT_TIMESTAMP only has second resolution, which is too coarse
    to observe a modification right after an insert. The text carries six
    fractional digits, the same shape SQLAlchemy binds for DateTime
    parameters, so string comparisons against bound values are exact.
    """

    type = DateTime()
    inherit_cache = True


@compiles(utcnow)
def _default_utcnow(element, compiler, **kw):
    return "CURRENT_TIMESTAMP"


@compiles(utcnow, "postgresql")
def _pg_utcnow(element, compiler, **kw):
    return "now()"


@compiles(utcnow, "sqlite")
def _sqlite_utcnow(element, compiler, **kw):
    return "strftime('%Y-%m-%d %H:%M:%f000', 'now')"
