"""
Custom Exceptions for Tasador

Provides a hierarchy of exceptions for standardized error handling across all modules.

Exception Hierarchy:
    TasadorError (base)
    ├── ConfigurationError
    ├── ValidationError
    ├── QuotaExceededError
    ├── NotFoundError
    ├── ImportParseError
    └── DocumentStoreError
        ├── DatabaseError
        │   └── DatabaseConnectionError
        ├── NotConnectedError
        ├── RemoteWriteError
        └── TransactionError
"""

from typing import Iterable, Optional


class TasadorError(Exception):
    """Base exception for all Tasador errors."""

    def __init__(self, message: str, *args, **kwargs):
        self.message = message
        super().__init__(message, *args, **kwargs)


# Configuration Errors
class ConfigurationError(TasadorError):
    """Raised when there's a configuration problem."""

    pass


# Validation Errors
class ValidationError(TasadorError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: str = None, value=None):
        self.field = field
        self.value = value
        super().__init__(message)


class QuotaExceededError(TasadorError):
    """Raised when the agent already holds the maximum number of saved valuations."""

    def __init__(self, limit: int, current: int = None):
        self.limit = limit
        self.current = current
        super().__init__(f"Saved valuation limit reached ({limit})")


class NotFoundError(TasadorError):
    """Raised when a referenced document does not exist."""

    def __init__(self, message: str, path: str = None):
        self.path = path
        super().__init__(message)


# Import Errors
class ImportParseError(TasadorError):
    """Raised when a tabular payload cannot be fetched or parsed as a whole."""

    def __init__(self, message: str, source: str = None):
        self.source = source
        super().__init__(message)


# Document Store Errors
class DocumentStoreError(TasadorError):
    """Base exception for remote document store errors."""

    pass


class DatabaseError(DocumentStoreError):
    """Base exception for database-related errors."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when unable to connect to the database."""

    pass


class NotConnectedError(DocumentStoreError):
    """Raised when an operation needs a remote store and the session has none."""

    pass


class RemoteWriteError(DocumentStoreError):
    """Raised when a single-document write does not reach the store."""

    def __init__(self, message: str, path: str = None):
        self.path = path
        super().__init__(message)


class TransactionError(DocumentStoreError):
    """Raised when an atomic multi-document write fails. Nothing was applied.

    A retryable failure (the store rejected or lost the batch) carries a hint
    telling the agent that repeating the action is safe.
    """

    RETRY_HINT = "Nothing was changed, please try again."

    def __init__(
        self,
        message: str,
        paths: Optional[Iterable[str]] = None,
        retryable: bool = False,
    ):
        self.paths = list(paths or [])
        self.retryable = retryable
        if retryable:
            message = f"{message}. {self.RETRY_HINT}"
        super().__init__(message)
