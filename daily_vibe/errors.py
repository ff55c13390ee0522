"""Error kinds shared by the repository layer and the HTTP API.

Every failure that reaches the HTTP boundary is one of these kinds. The API
maps each to its status code and a ``{"success": false, "error": ...}`` body.
Messages are user-safe: they never carry SQL text or stack traces.
"""

from sqlalchemy import exc as sa_exc


class AppError(Exception):
    """Base class for classified application errors."""

    status_code: int = 500
    kind: str = "error"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    """Raised when a field is missing or invalid at the API boundary."""

    status_code = 400
    kind = "validation_error"
    default_message = "Invalid request"


class NotFoundError(AppError):
    """Raised when the target row does not exist."""

    status_code = 404
    kind = "not_found"
    default_message = "Not found"


class UnauthorizedError(AppError):
    """Raised when an auth-required endpoint lacks a valid token."""

    status_code = 401
    kind = "unauthorized"
    default_message = "Invalid or expired token"


class ConflictError(AppError):
    """Reserved for write conflicts; not produced by any current operation."""

    status_code = 409
    kind = "conflict"
    default_message = "Conflict"


class StorageUnavailableError(AppError):
    """Raised when a database connection cannot be established."""

    status_code = 503
    kind = "storage_unavailable"
    default_message = "Database unavailable"


class QueryError(AppError):
    """Raised when the database executed a statement and reported an error."""

    status_code = 500
    kind = "query_error"
    default_message = "Database query failed"

    def __init__(self, message: str | None = None, sqlstate: str | None = None) -> None:
        super().__init__(message)
        self.sqlstate = sqlstate


def _sqlstate(error: BaseException) -> str | None:
    orig = getattr(error, "orig", None)
    for attr in ("sqlstate", "pgcode", "sqlite_errorname"):
        value = getattr(orig, attr, None)
        if value:
            return str(value)
    return None


def classify_database_error(error: BaseException) -> AppError:
    """Map a SQLAlchemy/DBAPI exception onto an application error kind."""
    if isinstance(error, AppError):
        return error

    if isinstance(error, sa_exc.DBAPIError) and error.connection_invalidated:
        return StorageUnavailableError()
    if isinstance(error, (sa_exc.DisconnectionError, sa_exc.TimeoutError)):
        return StorageUnavailableError()

    sqlstate = _sqlstate(error)
    # SQLSTATE class 08 is "connection exception"
    if sqlstate and sqlstate.startswith("08"):
        return StorageUnavailableError()
    return QueryError(sqlstate=sqlstate)
