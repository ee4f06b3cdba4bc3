# app/schemas/statement_schema.py
from typing import Optional, List, Literal
from datetime import date
from pydantic import BaseModel, Field

from domain.entities import (
    FilterCriteria,
    PaginationInfo,
    SortBy,
    SortOrder,
    StatementMetrics,
    Transaction,
    TypeFilter,
)


class FilterParams(BaseModel):
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    type: Literal["any", "debit", "credit"] = "any"
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    exact_amount: Optional[float] = None
    search: Optional[str] = None
    search_name: Optional[str] = None
    search_description: Optional[str] = None
    search_value: Optional[str] = None
    end_to_end: Optional[str] = None
    sort_by: Literal["none", "date", "value"] = "date"
    sort_order: Literal["none", "asc", "desc"] = "desc"

    def to_criteria(self) -> FilterCriteria:
        return FilterCriteria(
            date_from=self.date_from,
            date_to=self.date_to,
            type_filter=TypeFilter(self.type),
            min_amount=self.min_amount,
            max_amount=self.max_amount,
            exact_amount=self.exact_amount,
            search=self.search,
            search_name=self.search_name,
            search_description=self.search_description,
            search_value=self.search_value,
            end_to_end=self.end_to_end,
        )

    def sort(self) -> tuple[SortBy, SortOrder]:
        return SortBy(self.sort_by), SortOrder(self.sort_order)


class ViewParams(FilterParams):
    page: int = Field(1, ge=1)
    page_size: int = Field(50, ge=1, le=500)


class LoadRequest(FilterParams):
    limit: Optional[int] = Field(None, ge=1)
    # Tax document of the account to scope to; omitted means all accounts
    account_scope: Optional[str] = None
    account_id: Optional[str] = None
    page_size: int = Field(50, ge=1, le=500)


class RefreshRequest(BaseModel):
    account_id: Optional[str] = None
    page_size: int = Field(50, ge=1, le=500)


class LoadMoreRequest(RefreshRequest):
    limit: Optional[int] = Field(None, ge=1)


class TransactionResponse(BaseModel):
    id: str
    date_time: str
    value: float
    type: str
    counterparty_name: str
    counterparty_document: str
    end_to_end_code: str
    description: str
    status: str

    @staticmethod
    def from_entity(t: Transaction) -> 'TransactionResponse':
        return TransactionResponse(
            id=t.id,
            date_time=t.date_time,
            value=t.value,
            type=t.type.value,
            counterparty_name=t.counterparty_name,
            counterparty_document=t.counterparty_document,
            end_to_end_code=t.end_to_end_code,
            description=t.description,
            status=t.status.value,
        )


class MetricsResponse(BaseModel):
    credit_count: int
    credit_sum: float
    debit_count: int
    debit_sum: float
    net: float

    @staticmethod
    def from_entity(m: StatementMetrics) -> 'MetricsResponse':
        return MetricsResponse(
            credit_count=m.credit_count,
            credit_sum=m.credit_sum,
            debit_count=m.debit_count,
            debit_sum=m.debit_sum,
            net=round(m.net, 2),
        )


class PaginationResponse(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool
    next_offset: Optional[int] = None
    current_page: int
    total_pages: int

    @staticmethod
    def from_entity(p: PaginationInfo) -> 'PaginationResponse':
        return PaginationResponse(
            total=p.total,
            limit=p.limit,
            offset=p.offset,
            has_more=p.has_more,
            next_offset=p.next_offset,
            current_page=p.current_page,
            total_pages=p.total_pages,
        )


class StatementResponse(BaseModel):
    session_id: str
    provider: str
    provider_name: str
    transactions: List[TransactionResponse]
    metrics: MetricsResponse
    pagination: PaginationResponse
    remote_pagination: PaginationResponse
    filtered_count: int
    calls: Optional[int] = None
    suppressed: Optional[int] = None
    guard_exhausted: Optional[bool] = None
    added: Optional[int] = None
    applied: bool = True


class SyncRequest(BaseModel):
    tax_document: str
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    dry_run: bool = False


class SyncResponse(BaseModel):
    success: bool
    message: str
    total_synced: Optional[int] = None
    dry_run: bool


class VerifyRequest(BaseModel):
    tax_document: str
    end_to_end: str


class VerifyResponse(BaseModel):
    found: bool
    message: str
    allows_operation: bool
    status: Optional[str] = None
    transaction: Optional[dict] = None


class SessionDropResponse(BaseModel):
    session_id: str
    dropped: int
