from typing import Optional

from domain.entities import VerificationResult
from domain.exceptions import BankAPIError
from domain.interfaces import LoggingPort, TransactionSource
from domain.services import ProviderAdapter, sanitize_document
from application.service.fetch_statement import bind_logger

MIN_DOCUMENT_DIGITS = 11
MIN_END_TO_END_LENGTH = 10


class VerifyTransactionService:
    """Checks a single transaction by end-to-end code before a downstream crediting step."""

    def __init__(
        self,
        source: TransactionSource,
        adapter: ProviderAdapter,
        logging_port: Optional[LoggingPort] = None,
    ):
        self.source = source
        self.adapter = adapter
        self.logging_port = logging_port

    async def execute(self, tax_document: str, end_to_end: str, request_id: Optional[str] = None) -> VerificationResult:
        document = sanitize_document(tax_document)
        end_to_end = (end_to_end or "").strip()

        if len(document) < MIN_DOCUMENT_DIGITS:
            return VerificationResult(found=False, message="Invalid tax document")
        if len(end_to_end) < MIN_END_TO_END_LENGTH:
            return VerificationResult(found=False, message="End-to-end code is missing or too short")

        log = bind_logger(self.logging_port, request_id=request_id or "unknown", provider=self.adapter.tag, step="verify_transaction")
        try:
            result = await self.source.verify_transaction(document, end_to_end)
        except BankAPIError as e:
            log.warning("transaction_verification_failed", error=str(e), end_to_end=end_to_end[:20])
            return VerificationResult(found=False, message=f"Transaction lookup failed: {e}")

        log.info(
            "transaction_verified",
            found=result.found,
            status=result.status,
            allows_operation=result.allows_operation,
        )
        return result
