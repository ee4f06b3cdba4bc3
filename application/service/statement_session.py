import asyncio
import math
import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from domain.entities import (
    FetchResult,
    FilterCriteria,
    PaginationInfo,
    SortBy,
    SortOrder,
    StatementMetrics,
    Transaction,
)
from domain.services import Aggregation, Sorting, TransactionFilter, TransactionMerge

DEFAULT_VIEW_PAGE_SIZE = 50


@dataclass(frozen=True)
class StatementView:
    """What a statement screen renders: one page of rows, metrics over all filtered rows."""

    transactions: list[Transaction]
    metrics: StatementMetrics
    pagination: PaginationInfo
    remote_pagination: PaginationInfo
    filtered_count: int


@dataclass
class StatementSession:
    """
    Session-scoped statement state.

    Owns the canonical collection for one provider/account view. The criteria
    the collection was fetched with (`load_criteria`) are kept apart from the
    local view criteria and sort the user last applied. Every load bumps
    `generation`; a fetch that finishes after a newer one started must not be
    applied.
    """

    provider: str
    account_scope: Optional[str] = None
    transactions: list[Transaction] = field(default_factory=list)
    load_criteria: FilterCriteria = field(default_factory=FilterCriteria)
    criteria: FilterCriteria = field(default_factory=FilterCriteria)
    sort_by: SortBy = SortBy.DATE
    sort_order: SortOrder = SortOrder.DESC
    pagination: PaginationInfo = field(default_factory=PaginationInfo)
    generation: int = 0
    loaded_at: Optional[datetime] = None
    # Single writer for read-modify-write updates of the collection
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def begin_request(self) -> int:
        self.generation += 1
        return self.generation

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def replace(self, result: FetchResult, criteria: FilterCriteria) -> None:
        """Full reload: the fetched result becomes the canonical collection."""
        self.transactions = list(result.transactions)
        self.load_criteria = criteria
        self.criteria = criteria
        self.pagination = result.pagination
        self.loaded_at = datetime.now()

    def merge(self, batch: Iterable[Transaction]) -> int:
        """Incremental refresh. Returns how many records were new."""
        before = len(self.transactions)
        self.transactions = TransactionMerge.merge(self.transactions, batch)
        added = len(self.transactions) - before
        if added:
            next_offset = self.pagination.next_offset
            self.pagination = dataclasses.replace(
                self.pagination,
                total=self.pagination.total + added,
                # Newer records push the unread remainder down the remote listing
                next_offset=next_offset + added if next_offset is not None else None,
            )
        self.loaded_at = datetime.now()
        return added

    def append_page(self, result: FetchResult) -> int:
        """Fold a "load more" result into the collection. Returns how many records were new."""
        before = len(self.transactions)
        self.transactions = TransactionMerge.merge(self.transactions, result.transactions)
        added = len(self.transactions) - before
        self.pagination = dataclasses.replace(
            self.pagination,
            total=max(result.pagination.total, len(self.transactions)),
            has_more=result.pagination.has_more,
            next_offset=result.pagination.next_offset,
        )
        self.loaded_at = datetime.now()
        return added

    def set_view(
        self,
        criteria: Optional[FilterCriteria] = None,
        sort_by: Optional[SortBy] = None,
        sort_order: Optional[SortOrder] = None,
    ) -> None:
        """
        Remember local filter/sort settings.

        Invalid criteria raise InvalidFilterError and leave the session unchanged.
        """
        if criteria is not None:
            TransactionFilter.validate(criteria)
            self.criteria = criteria
        if sort_by is not None:
            self.sort_by = sort_by
        if sort_order is not None:
            self.sort_order = sort_order

    def view(self, page: int = 1, page_size: int = DEFAULT_VIEW_PAGE_SIZE) -> StatementView:
        filtered = Sorting.sort(
            TransactionFilter.filter(self.transactions, self.criteria),
            self.sort_by,
            self.sort_order,
        )
        metrics = Aggregation.compute(filtered)

        page_size = max(1, page_size)
        total_pages = max(1, math.ceil(len(filtered) / page_size))
        page = min(max(1, page), total_pages)
        offset = (page - 1) * page_size
        rows = filtered[offset:offset + page_size]

        return StatementView(
            transactions=rows,
            metrics=metrics,
            pagination=PaginationInfo(
                total=len(filtered),
                limit=page_size,
                offset=offset,
                has_more=offset + page_size < len(filtered) or self.pagination.has_more,
            ),
            remote_pagination=self.pagination,
            filtered_count=len(filtered),
        )
