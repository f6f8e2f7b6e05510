"""Error taxonomy shared by the discovery layer, accessors, and HTTP routes.

Each error carries the HTTP status it is reported with.  Nothing in this
package retries; an error that escapes the SQLite busy window is terminal
for its request.
"""

from __future__ import annotations


class FlarescopeError(RuntimeError):
    """Base class for every error reported to a caller."""

    status_code: int = 500

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class NotFoundError(FlarescopeError):
    """Unknown binding, namespace, bucket, key, object, or instance."""

    status_code = 404


class UnknownBindingError(NotFoundError):
    """A binding name that is not in the registry (or has another kind)."""


class BadRequestError(FlarescopeError):
    """A request is missing a required field or carries an invalid one."""

    status_code = 400


class StorageUnavailableError(FlarescopeError):
    """The host-side storage listener is not configured or not reachable."""

    status_code = 503

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(
            message,
            hint=hint or "Start the storage server (flarescope storage-server) "
            "or set FLARESCOPE_ACTOR_STORAGE_URL.",
        )


class QueryExecutionError(FlarescopeError):
    """The SQL engine rejected a statement; the message is the engine's text."""

    status_code = 500


class ConfigParseError(RuntimeError):
    """A service descriptor is missing or cannot be parsed."""
