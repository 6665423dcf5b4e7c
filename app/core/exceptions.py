"""
Sync Error Taxonomy
Exceptions raised by the CRM sync engine

- AuthError: refresh-token exchange failed
- TransientFetchError: a search / association / batch-read call failed
- FetchExhausted: retries exhausted for one (account, object type) scan
- PersistenceError: an action batch could not be written
"""
from typing import Any, Dict, Optional


class SyncError(Exception):
    """Base class for every error raised by the sync engine."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AuthError(SyncError):
    """Token exchange with the CRM failed."""


class TransientFetchError(SyncError):
    """A CRM read failed; safe to retry."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        super().__init__(message, details)


class FetchExhausted(SyncError):
    """Every retry attempt failed. Fatal for one object type scan only."""

    def __init__(self, operation: str, attempts: int, last_error: Optional[BaseException] = None):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Failed to {operation} after {attempts} attempts: {last_error}",
            {"operation": operation, "attempts": attempts}
        )


class PersistenceError(SyncError):
    """Flushing a batch of actions to the store failed."""


class UnknownObjectTypeError(SyncError, ValueError):
    """An object type name outside the supported set was configured."""
