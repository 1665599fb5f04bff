# dashboard_sync/db_sync/errors.py
from typing import Optional

from sqlalchemy.exc import DBAPIError, DisconnectionError

# Driver messages that mean the underlying connection is gone
CONNECTION_ERROR_SIGNATURES = (
    'connection is closed',
    'connectionerror',
    'connection error',
    'closed connection',
    'communication link failure',
    'server has gone away',
    'lost connection',
)


class SyncError(Exception):
    """Base error for the sync bridge"""
    pass


class ConnectionFailedError(SyncError):
    """Raised when a role could not be connected within the retry budget"""

    def __init__(self, role: str, attempts: int, last_error: Optional[BaseException] = None):
        self.role = role
        self.attempts = attempts
        self.last_error = last_error
        message = f"Could not connect to {role} database after {attempts} attempt(s)"
        if last_error is not None:
            message += f": {last_error}"
        super().__init__(message)


class UnsupportedDialectError(SyncError):
    """Raised when the destination dialect has no atomic upsert statement"""
    pass


def is_connection_error(exc: BaseException) -> bool:
    """Check whether an exception means the connection itself was lost"""
    if isinstance(exc, (ConnectionFailedError, DisconnectionError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    message = str(exc).lower()
    return any(signature in message for signature in CONNECTION_ERROR_SIGNATURES)
