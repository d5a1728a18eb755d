"""Custom exception hierarchy for pylocsync."""

from __future__ import annotations


class LocSyncError(Exception):
    """Base exception for all pylocsync errors."""


class LocSyncConfigError(LocSyncError):
    """Invalid or missing configuration."""


class ValidationError(LocSyncError):
    """Malformed local input (missing id, missing or invalid location).

    Raised before any request is issued; never reaches the network.
    """


class ConflictError(LocSyncError):
    """The id is already taken in the shared store/delivery namespace."""


class SessionClosedError(LocSyncError):
    """Operation attempted after the store or client was torn down."""


class RemoteError(LocSyncError):
    """Registry call failed (network error, timeout, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        operation: str = "",
    ) -> None:
        self.status = status
        self.operation = operation
        super().__init__(message)
