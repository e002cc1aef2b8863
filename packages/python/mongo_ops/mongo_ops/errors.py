"""Error taxonomy for mongo_ops.

Pre-I/O errors (``ConfigError``, ``InvalidOperationError``,
``ValidationError``) and store errors (``StoreError`` and subclasses) are
separate branches under ``MongoOpsError`` so callers can tell configuration
mistakes apart from failures reported by MongoDB.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from pymongo.errors import BulkWriteError, PyMongoError


class MongoOpsError(Exception):
    """Base class for every error raised by mongo_ops."""


class ConfigError(MongoOpsError):
    """Raised when a connection string or other identifying argument is missing."""


class InvalidOperationError(MongoOpsError):
    """Raised when a write or bulk-write kind is not recognised."""


class ValidationError(MongoOpsError):
    """Raised when a required argument combination is missing."""


class InvalidQueryError(ValidationError):
    """Raised when an aggregate request does not carry a pipeline."""


class StoreError(MongoOpsError):
    """Raised when the MongoDB driver reports a failure.

    ``message`` is the most specific text the driver offered, ``code`` the
    server error code when there is one, and ``result`` the partial bulk
    write result for failed bulk operations.
    """

    def __init__(
        self,
        message: str,
        *,
        code: Optional[int] = None,
        result: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.result = result


class ConnectError(StoreError):
    """Raised when a client cannot be opened for a connection string."""


class CloseError(StoreError):
    """Raised when closing a client handle fails."""


def store_error_from(exc: PyMongoError, error_cls: type[StoreError] = StoreError) -> StoreError:
    """Translate a driver exception into a ``StoreError``.

    Bulk failures keep the driver's partial result; everything else keeps
    the server ``errmsg`` when present and falls back to the exception text.
    """

    code = getattr(exc, "code", None)
    details = getattr(exc, "details", None)
    if isinstance(exc, BulkWriteError) and isinstance(details, Mapping):
        write_errors = details.get("writeErrors") or []
        message = write_errors[0].get("errmsg") if write_errors else None
        return error_cls(message or str(exc), code=code, result=dict(details))
    message = details.get("errmsg") if isinstance(details, Mapping) else None
    return error_cls(message or str(exc) or type(exc).__name__, code=code)
