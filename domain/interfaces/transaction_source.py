from datetime import date
from typing_extensions import Protocol
from domain.entities import TransactionQuery, RawPage, SyncResult, VerificationResult


class TransactionSource(Protocol):
    """Remote, provider-owned transaction listing and its companion endpoints."""

    async def list_transactions(self, query: TransactionQuery) -> RawPage: ...
    async def sync_statement(self, tax_document: str, start_date: date, end_date: date, dry_run: bool = False) -> SyncResult: ...
    async def verify_transaction(self, tax_document: str, end_to_end: str) -> VerificationResult: ...
