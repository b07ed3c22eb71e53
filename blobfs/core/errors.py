"""
Store error taxonomy.

Every failure raised by the adapter is a StoreError carrying a human-readable
message, a numeric status class and a short machine-readable code, so callers
can branch on the failure kind without matching strings.
"""

from __future__ import annotations

from typing import Any


class StoreError(Exception):
    """Base class for store errors."""

    status: int = 500
    code: str = "E_STORE"

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        code: str | None = None,
        identifier: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        if status is not None:
            self.status = status
        if code is not None:
            self.code = code
        self.identifier = identifier
        self.data = data or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialisable payload for callers that forward errors."""
        payload: dict[str, Any] = {
            "name": type(self).__name__,
            "message": self.message,
            "status": self.status,
            "code": self.code,
        }
        if self.identifier is not None:
            payload["identifier"] = self.identifier
        if self.data:
            payload["data"] = dict(self.data)
        return payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status={self.status}, code={self.code!r})"


class ConfigError(StoreError):
    """Raised when root or collection is missing or malformed at setup."""

    status = 500
    code = "E_CONFIG"


class StoreConnectionError(StoreError):
    """Raised when the collection directory is missing or inaccessible at connect."""

    status = 503
    code = "E_CONNECTION"


class PathViolationError(StoreError):
    """Raised when an identifier resolves outside the collection directory."""

    status = 403
    code = "E_UNAUTHORIZED"

    def __init__(self, identifier: str | None) -> None:
        super().__init__(
            "You are trying to access an unauthorized path.",
            identifier=identifier,
        )


class NotFoundError(StoreError):
    """Raised when a read target does not exist."""

    status = 404
    code = "ERR_NOT_FOUND"

    def __init__(self, identifier: str | None, message: str = "File not found") -> None:
        super().__init__(message, identifier=identifier)


class WriteError(StoreError):
    """Raised when a directory cannot be created or a transfer fails mid-stream."""

    status = 500
    code = "ERR_WRITE_FILE"


class BadRequestError(StoreError):
    """Raised when the caller passes an unusable value (non-stream entity, bad filter)."""

    status = 400
    code = "E_BAD_REQUEST"


class AdapterStateError(StoreError):
    """Raised when an operation is called in the wrong lifecycle state."""

    status = 500
    code = "E_NOT_CONNECTED"
