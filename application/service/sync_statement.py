import time
from datetime import date
from typing import Optional

from domain.entities import SyncResult
from domain.exceptions import BankAPIError, InvalidFilterError
from domain.interfaces import LoggingPort, MetricsPort, TransactionSource
from domain.services import ProviderAdapter, sanitize_document
from application.service.fetch_statement import bind_logger


class SyncStatementService:
    def __init__(
        self,
        source: TransactionSource,
        adapter: ProviderAdapter,
        metrics_port: Optional[MetricsPort] = None,
        logging_port: Optional[LoggingPort] = None,
    ):
        self.source = source
        self.adapter = adapter
        self.metrics_port = metrics_port
        self.logging_port = logging_port

    @staticmethod
    def validate(tax_document: str, start_date: Optional[date], end_date: Optional[date]) -> None:
        if not sanitize_document(tax_document):
            raise InvalidFilterError("A tax document is required to sync a statement")
        if start_date is None or end_date is None:
            raise InvalidFilterError("Both start and end dates are required to sync a statement")
        if start_date > end_date:
            raise InvalidFilterError("Start date must not be after end date")

    async def execute(
        self,
        tax_document: str,
        start_date: Optional[date],
        end_date: Optional[date],
        dry_run: bool = False,
        request_id: Optional[str] = None,
    ) -> SyncResult:
        """
        Ask the provider to re-ingest a date range (fire and acknowledge).

        Raises:
            InvalidFilterError: If the document or date range is missing or inverted
            BankAPIError: If the provider could not be reached
        """
        self.validate(tax_document, start_date, end_date)
        provider = self.adapter.tag
        log = bind_logger(self.logging_port, request_id=request_id or "unknown", provider=provider, step="statement_sync")
        log.info("statement_sync_started", start_date=start_date.isoformat(), end_date=end_date.isoformat(), dry_run=dry_run)

        start_time = time.time()
        try:
            result = await self.source.sync_statement(sanitize_document(tax_document), start_date, end_date, dry_run)
        except BankAPIError as e:
            if self.metrics_port:
                self.metrics_port.increment_sync_request(provider, "error")
            log.error("statement_sync_failed", exc_info=True, error=str(e), duration_ms=round((time.time() - start_time) * 1000, 2))
            raise

        if self.metrics_port:
            self.metrics_port.increment_sync_request(provider, "success" if result.success else "failed")
        log.info(
            "statement_sync_completed",
            success=result.success,
            total_synced=result.total_synced,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return result
