"""
TransactionSource implementation backed by the provider bank APIs.

This adapter implements the TransactionSource protocol from domain/interfaces:
it turns a TransactionQuery into listing query parameters, and decodes the
listing, sync and verification responses into domain entities. Records are
handed back in provider shape; normalization happens in the domain layer.
"""
from datetime import date
from typing import Any, Optional

from domain.entities import RawPage, SyncResult, TransactionQuery, VerificationResult
from domain.exceptions import BankAPIError
from domain.interfaces import TransactionSource
from domain.services.providers import ProviderAdapter
from infrastructure.clients.bank_client import BankClient

MIN_LIMIT = 1
MAX_LIMIT = 2000

ALLOWED_VERIFICATION_STATUSES = ("success", "completed", "approved", "confirmed")


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class TransactionSourceAPI(TransactionSource):
    """
    Remote transaction source for one provider.

    Follows the Adapter pattern, implementing the domain protocol while
    delegating HTTP concerns to the infrastructure BankClient.
    """

    def __init__(self, bank_client: BankClient, adapter: ProviderAdapter):
        """
        Args:
            bank_client: An instance of BankClient for API calls
            adapter: Provider whose endpoints this source talks to
        """
        self.bank_client = bank_client
        self.adapter = adapter

    @staticmethod
    def build_params(query: TransactionQuery) -> dict[str, Any]:
        """
        Query string for the listing endpoint.

        A non-zero exactAmount replaces minAmount/maxAmount, and endToEnd
        replaces search. Unset parameters are left out.
        """
        params: dict[str, Any] = {
            "limit": min(max(query.limit, MIN_LIMIT), MAX_LIMIT),
            "offset": max(query.offset, 0),
            "startDate": _iso(query.start_date),
            "endDate": _iso(query.end_date),
            "transactionType": query.transaction_type,
            "order": query.order,
            "accountId": query.account_id,
        }

        if query.exact_amount is not None and query.exact_amount != 0:
            params["exactAmount"] = query.exact_amount
        else:
            params["minAmount"] = query.min_amount
            params["maxAmount"] = query.max_amount

        end_to_end = (query.end_to_end or "").strip()
        if end_to_end:
            params["endToEnd"] = end_to_end
        else:
            params["search"] = (query.search or "").strip() or None

        return {key: value for key, value in params.items() if value is not None}

    @staticmethod
    def decode_page(body: dict[str, Any], query: TransactionQuery) -> RawPage:
        data = body.get("data")
        if data is None:
            data = []
        if not isinstance(data, list):
            raise BankAPIError(f"Unexpected listing data type: {type(data).__name__}")
        records = [record for record in data if isinstance(record, dict)]

        pagination = body.get("pagination") or {}
        has_more = pagination.get("has_more", pagination.get("hasMore"))
        total = _as_int(pagination.get("total"))
        if has_more is None:
            # Without a flag, a full page suggests there may be more
            has_more = len(data) >= query.limit if total is None else query.offset + len(data) < total

        next_offset = _as_int(pagination.get("next_offset", pagination.get("nextOffset")))
        if next_offset is None:
            next_offset = max(query.offset, 0) + len(data)

        return RawPage(records=records, has_more=bool(has_more), total=total, next_offset=next_offset)

    async def list_transactions(self, query: TransactionQuery) -> RawPage:
        """
        Fetch one page of raw provider records.

        Raises:
            BankAPIError: If the API call fails or the payload is malformed
        """
        body = await self.bank_client.list_transactions(self.adapter.transactions_path, self.build_params(query))
        return self.decode_page(body, query)

    async def sync_statement(
        self,
        tax_document: str,
        start_date: date,
        end_date: date,
        dry_run: bool = False,
    ) -> SyncResult:
        payload = {
            "taxDocument": tax_document,
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
            "dryRun": dry_run,
        }
        body = await self.bank_client.sync_statement(self.adapter.sync_path, payload)
        return SyncResult(
            success=bool(body.get("success", True)),
            message=str(body.get("message") or ""),
            total_synced=_as_int(body.get("totalSynced", body.get("total_synced"))),
            dry_run=dry_run,
        )

    async def verify_transaction(self, tax_document: str, end_to_end: str) -> VerificationResult:
        body = await self.bank_client.verify_transaction(self.adapter.verify_path, tax_document, end_to_end)
        message = body.get("message")

        if body.get("error"):
            return VerificationResult(found=False, message=message or "Transaction lookup failed")

        inner = (body.get("data") or {}).get("data") or {}
        requests = inner.get("requests") or []
        reversals = inner.get("reversals") or []
        # Requests take precedence over reversals
        transaction = requests[0] if requests else (reversals[0] if reversals else None)
        if not isinstance(transaction, dict):
            return VerificationResult(
                found=False,
                message=message or "Transaction not found; the end-to-end code may be wrong or not yet processed",
            )

        status = str(transaction.get("status") or "")
        allowed = status.lower() in ALLOWED_VERIFICATION_STATUSES
        if allowed:
            default_message = f"Transaction verified. Status: {status.upper()}"
        else:
            default_message = f"Transaction found with status {status.upper() or 'UNKNOWN'}; operation not allowed"
        return VerificationResult(
            found=True,
            message=message or default_message,
            allows_operation=allowed,
            status=status or None,
            transaction=transaction,
        )
