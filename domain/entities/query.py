from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

from .filter_criteria import FilterCriteria, TypeFilter


@dataclass(frozen=True)
class TransactionQuery:
    """Parameters for one call to a remote transaction-listing endpoint."""

    limit: int = 100
    offset: int = 0
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    transaction_type: Optional[str] = None  # "C" | "D"
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    exact_amount: Optional[float] = None
    search: Optional[str] = None
    end_to_end: Optional[str] = None
    order: Optional[str] = "desc"
    account_id: Optional[str] = None

    @staticmethod
    def from_criteria(
        criteria: FilterCriteria,
        limit: int = 100,
        account_id: Optional[str] = None,
        order: Optional[str] = "desc",
    ) -> 'TransactionQuery':
        transaction_type = None
        if criteria.type_filter is TypeFilter.CREDIT:
            transaction_type = "C"
        elif criteria.type_filter is TypeFilter.DEBIT:
            transaction_type = "D"

        return TransactionQuery(
            limit=limit,
            offset=0,
            start_date=criteria.date_from,
            end_date=criteria.date_to,
            transaction_type=transaction_type,
            min_amount=criteria.min_amount,
            max_amount=criteria.max_amount,
            exact_amount=criteria.exact_amount,
            search=criteria.search,
            end_to_end=criteria.effective_end_to_end,
            order=order,
            account_id=account_id,
        )

    def page(self, limit: int, offset: int) -> 'TransactionQuery':
        return replace(self, limit=limit, offset=offset)
