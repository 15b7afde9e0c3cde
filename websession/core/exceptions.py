"""Error types raised by the session store.

A missing session is not an error: reads return ``None`` and updates
return ``False``. Everything else that can go wrong surfaces as one of
the exceptions below, with the underlying driver error chained.
"""


class SessionStoreError(Exception):
    """Base class for session store failures"""

    retryable: bool = False


class SessionStorageError(SessionStoreError):
    """The database was unreachable or a statement failed"""

    retryable = True


class SessionKeyConflictError(SessionStoreError):
    """An insert collided with an existing session key"""


class SessionSchemaError(SessionStoreError):
    """Creating or dropping the session table failed"""


class SessionMisuseError(SessionStoreError):
    """An operation was invoked with an object that was never persisted"""
