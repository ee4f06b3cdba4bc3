import math
import re
import time
from datetime import datetime
from typing import Any, Iterable, Optional

from domain.entities import Transaction, TransactionType, TransactionStatus, UNIDENTIFIED
from . import providers as fields
from .providers import ProviderAdapter, CandidatePath

_NON_DIGITS = re.compile(r"\D")

_CREDIT_MARKERS = {"c", "credit", "credito", "crédito", "funding", "cashin", "in", "pix_in", "entrada"}
_DEBIT_MARKERS = {"d", "debit", "debito", "débito", "withdrawal", "cashout", "out", "pix_out", "saida", "saída"}

_STATUS_VOCABULARY = {
    "success": TransactionStatus.SUCCESS,
    "completed": TransactionStatus.SUCCESS,
    "complete": TransactionStatus.SUCCESS,
    "approved": TransactionStatus.SUCCESS,
    "confirmed": TransactionStatus.SUCCESS,
    "paid": TransactionStatus.SUCCESS,
    "liquidated": TransactionStatus.SUCCESS,
    "pending": TransactionStatus.PENDING,
    "waiting": TransactionStatus.PENDING,
    "processing": TransactionStatus.PROCESSING,
    "in_progress": TransactionStatus.PROCESSING,
    "failed": TransactionStatus.FAILED,
    "refused": TransactionStatus.FAILED,
    "rejected": TransactionStatus.FAILED,
    "error": TransactionStatus.FAILED,
    "cancelled": TransactionStatus.CANCELLED,
    "canceled": TransactionStatus.CANCELLED,
}


def sanitize_document(value: Any) -> str:
    """Keep digits only (CPF/CNPJ come formatted as 000.000.000-00 or 00.000.000/0000-00)."""
    if value is None:
        return ""
    return _NON_DIGITS.sub("", str(value))


def parse_amount(value: Any) -> Optional[float]:
    """Parse a signed amount from a number or a string ("1234.56", "-10", "1.234,56")."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        amount = float(value)
    else:
        text = str(value).strip().replace("R$", "").replace(" ", "")
        if not text:
            return None
        try:
            amount = float(text)
        except ValueError:
            # pt-BR formatting: thousands "." and decimal ","
            try:
                amount = float(text.replace(".", "").replace(",", "."))
            except ValueError:
                return None
    if not math.isfinite(amount):
        return None
    return amount


def _resolve(raw: dict, path: CandidatePath) -> Any:
    if isinstance(path, tuple):
        parts = [_resolve(raw, part) for part in path]
        if any(_is_empty(part) for part in parts):
            return None
        return " ".join(str(part).strip() for part in parts)

    current: Any = raw
    for key in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class Normalization:
    """Maps raw provider records onto the canonical Transaction shape.

    normalize() is a total function: every attribute has a fallback so a
    malformed record never aborts the rest of the page.
    """

    @staticmethod
    def first_present(raw: dict, candidates: Iterable[CandidatePath]) -> Any:
        for path in candidates:
            value = _resolve(raw, path)
            if not _is_empty(value):
                return value
        return None

    @staticmethod
    def is_balance_row(raw: Any, adapter: ProviderAdapter) -> bool:
        if not isinstance(raw, dict):
            return False
        for key in ("data", "descricao", "description"):
            value = raw.get(key)
            if isinstance(value, str) and value.strip() in adapter.balance_row_markers:
                return True
        return False

    @staticmethod
    def resolve_type(discriminator: Any, description: str, signed_amount: Optional[float], adapter: ProviderAdapter) -> TransactionType:
        if not _is_empty(discriminator):
            marker = str(discriminator).strip().lower()
            if marker in _CREDIT_MARKERS:
                return TransactionType.CREDIT
            if marker in _DEBIT_MARKERS:
                return TransactionType.DEBIT

        upper = description.upper()
        if any(hint in upper for hint in adapter.debit_hints):
            return TransactionType.DEBIT
        if any(hint in upper for hint in adapter.credit_hints):
            return TransactionType.CREDIT

        if signed_amount is not None and signed_amount < 0:
            return TransactionType.DEBIT
        return TransactionType.CREDIT

    @staticmethod
    def resolve_status(value: Any) -> TransactionStatus:
        if _is_empty(value):
            return TransactionStatus.UNKNOWN
        return _STATUS_VOCABULARY.get(str(value).strip().lower(), TransactionStatus.UNKNOWN)

    @staticmethod
    def resolve_date_time(value: Any) -> str:
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            try:
                # Epoch milliseconds are common in provider payloads
                seconds = value / 1000 if value > 1e11 else value
                return datetime.fromtimestamp(seconds).isoformat()
            except (OverflowError, OSError, ValueError):
                return datetime.now().isoformat()
        if isinstance(value, str) and value.strip():
            return value.strip()
        # No timestamp from the provider: fall back to "now"
        return datetime.now().isoformat()

    @staticmethod
    def counterparty_from_description(description: str) -> Optional[str]:
        # e.g. "TRANSF ENVIADA PIX - Felipe Bernardo Costa"
        if " - " in description:
            name = description.split(" - ")[1].strip()
            return name or None
        return None

    @staticmethod
    def normalize(raw: Any, adapter: ProviderAdapter) -> Transaction:
        record = raw if isinstance(raw, dict) else {}
        table = adapter.field_map

        def pick(attribute: str) -> Any:
            return Normalization.first_present(record, table.get(attribute, ()))

        description = str(pick(fields.DESCRIPTION) or "").strip()
        signed_amount = parse_amount(pick(fields.AMOUNT))
        tx_type = Normalization.resolve_type(pick(fields.TYPE), description, signed_amount, adapter)

        payer_document = sanitize_document(pick(fields.PAYER_DOCUMENT))
        beneficiary_document = sanitize_document(pick(fields.BENEFICIARY_DOCUMENT))
        if tx_type is TransactionType.CREDIT:
            name = pick(fields.PAYER_NAME)
            counterparty_document = payer_document
        else:
            name = pick(fields.BENEFICIARY_NAME)
            counterparty_document = beneficiary_document
        counterparty_name = (
            str(name).strip() if not _is_empty(name)
            else Normalization.counterparty_from_description(description) or UNIDENTIFIED
        )

        end_to_end = str(pick(fields.END_TO_END) or "").strip()
        record_id = pick(fields.ID)
        if _is_empty(record_id):
            record_id = end_to_end or str(time.time_ns() // 1_000_000)

        return Transaction(
            id=str(record_id).strip(),
            date_time=Normalization.resolve_date_time(pick(fields.DATE_TIME)),
            value=abs(signed_amount) if signed_amount is not None else 0.0,
            type=tx_type,
            counterparty_name=counterparty_name,
            counterparty_document=counterparty_document,
            end_to_end_code=end_to_end,
            description=description,
            status=Normalization.resolve_status(pick(fields.STATUS)),
            payer_document=payer_document,
            beneficiary_document=beneficiary_document,
            account_document=sanitize_document(pick(fields.ACCOUNT_DOCUMENT)),
            original_description=str(pick(fields.ORIGINAL_DESCRIPTION) or "").strip(),
            raw_original=record,
        )

    @staticmethod
    def positioned_batch(records: Iterable[Any], adapter: ProviderAdapter) -> list[tuple[int, Transaction]]:
        """Normalized records paired with their index in the raw page, balance rows skipped."""
        return [
            (position, Normalization.normalize(raw, adapter))
            for position, raw in enumerate(records or [])
            if not Normalization.is_balance_row(raw, adapter)
        ]

    @staticmethod
    def normalize_batch(records: Iterable[Any], adapter: ProviderAdapter) -> list[Transaction]:
        """Normalize a page of raw records, skipping balance rows."""
        return [t for _, t in Normalization.positioned_batch(records, adapter)]
