# import
from .transaction import Transaction, TransactionType, TransactionStatus, UNIDENTIFIED, parse_timestamp
from .filter_criteria import FilterCriteria, TypeFilter, SortBy, SortOrder, looks_like_end_to_end
from .query import TransactionQuery
from .statement import StatementMetrics, PaginationInfo, RawPage, FetchResult, SyncResult, VerificationResult

__all__ = [
    "Transaction", "TransactionType", "TransactionStatus", "UNIDENTIFIED", "parse_timestamp",
    "FilterCriteria", "TypeFilter", "SortBy", "SortOrder", "looks_like_end_to_end",
    "TransactionQuery",
    "StatementMetrics", "PaginationInfo", "RawPage", "FetchResult", "SyncResult", "VerificationResult",
]
