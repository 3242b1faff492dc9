"""
Error kinds raised inside the services.

Public service functions catch these at their boundary and turn them into
`{success: false, error}` results or empty pages with an error flag; the
`message` attribute is the short text shown to the user.
"""
from __future__ import annotations


class RecordsError(Exception):
    message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class DuplicateEmailError(RecordsError):
    message = "An employee with this email already exists"


class NotFoundError(RecordsError):
    message = "Record not found"


class TransactionFailure(RecordsError):
    message = "The change could not be saved. Please try again."


class QueryFailure(RecordsError):
    message = "Failed to fetch records"


class UnsupportedFilterError(RecordsError):
    """Raised for attribute/operation pairs outside the allow-list (strict mode only)."""

    def __init__(self, attribute: str, operation: str) -> None:
        super().__init__(f"Unsupported filter: {attribute} {operation}")
        self.attribute = attribute
        self.operation = operation
