import math
from dataclasses import dataclass, field
from typing import Any, Optional

from .transaction import Transaction


@dataclass(frozen=True)
class StatementMetrics:
    credit_count: int = 0
    credit_sum: float = 0.0
    debit_count: int = 0
    debit_sum: float = 0.0

    @property
    def net(self) -> float:
        return self.credit_sum - self.debit_sum

    @property
    def count(self) -> int:
        return self.credit_count + self.debit_count


@dataclass(frozen=True)
class PaginationInfo:
    total: int = 0
    limit: int = 0
    offset: int = 0
    has_more: bool = False
    # Remote offset the next "load more" call starts from
    next_offset: Optional[int] = None

    @property
    def current_page(self) -> int:
        if self.limit <= 0:
            return 1
        return self.offset // self.limit + 1

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 1
        return max(1, math.ceil(self.total / self.limit))


@dataclass(frozen=True)
class RawPage:
    """One page returned by a remote listing endpoint, still in provider shape."""

    records: list[dict[str, Any]]
    has_more: bool
    total: Optional[int] = None
    next_offset: Optional[int] = None


@dataclass
class FetchResult:
    transactions: list[Transaction] = field(default_factory=list)
    pagination: PaginationInfo = field(default_factory=PaginationInfo)
    calls: int = 0
    suppressed: int = 0
    guard_exhausted: bool = False


@dataclass(frozen=True)
class SyncResult:
    success: bool
    message: str = ""
    total_synced: Optional[int] = None
    dry_run: bool = False


@dataclass(frozen=True)
class VerificationResult:
    found: bool
    message: str
    allows_operation: bool = False
    status: Optional[str] = None
    transaction: Optional[dict[str, Any]] = None
