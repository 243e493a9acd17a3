"""
Custom exceptions for kvapp.
"""


class KvAppError(Exception):
    """Base class for all kvapp errors."""


class StoreError(KvAppError):
    """
    Raised when the embedded engine fails an operation.

    Covers I/O failures, corruption and use of a closed handle. A missing
    key is never a StoreError.
    """

    def __init__(self, operation: str, cause: BaseException):
        """
        Initialize store error.

        Args:
            operation: Name of the store operation that failed.
            cause: The underlying engine or OS exception.
        """
        self.operation = operation
        self.cause = cause
        super().__init__(f"store {operation} failed: {cause}")


class ConfigError(KvAppError):
    """Raised when the configuration cannot be loaded or the store cannot be opened."""
