"""Shared exceptions for service layer operations."""


class StorageUnavailableError(Exception):
    """
    Raised when the database behind the agreement store cannot be used.

    Typically the acceptance table is missing (migrations were not run) or the
    database is unreachable. Absence of a row or of the agreement page is not an
    error and never raises this.
    """

    def __init__(self, operation: str, message: str | None = None) -> None:
        self.operation = operation
        super().__init__(message or f"Agreement storage unavailable during {operation}")
