from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from domain.entities import FetchResult


class StatementError(Exception):
    """Base error for the statement core."""


class BankAPIError(StatementError):
    """Raised when the remote bank API call fails (HTTP, timeout, network or payload)."""


class StatementFetchError(BankAPIError):
    """
    Raised when the paginated fetch loop aborts on a remote failure.

    Carries whatever was accumulated before the failing call so the caller
    can decide whether to keep stale data or clear it.
    """

    def __init__(self, message: str, partial: Optional["FetchResult"] = None, calls: int = 0):
        super().__init__(message)
        self.partial = partial
        self.calls = calls


class InvalidFilterError(StatementError):
    """Raised when user supplied filter input is inconsistent (e.g. min > max)."""


class UnknownProviderError(StatementError):
    """Raised when a provider tag has no registered adapter."""
