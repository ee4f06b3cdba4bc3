from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

UNIDENTIFIED = "unidentified"

# Accepted after ISO-8601 fails (provider statement lines use BR formats)
_FALLBACK_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
)


class TransactionType(Enum):
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class TransactionStatus(Enum):
    SUCCESS = "SUCCESS"
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a provider timestamp into a naive local datetime.

    Aware values are converted to local time before the tzinfo is dropped so
    day-granularity comparisons happen in local time. Returns None when the
    value cannot be parsed.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            parsed = None
            for fmt in _FALLBACK_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
            if parsed is None:
                return None
    else:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


@dataclass(frozen=True)
class Transaction:
    """Canonical statement record built fresh on every normalization pass."""

    id: str
    date_time: str
    value: float
    type: TransactionType
    counterparty_name: str = UNIDENTIFIED
    counterparty_document: str = ""
    end_to_end_code: str = ""
    description: str = ""
    status: TransactionStatus = TransactionStatus.UNKNOWN
    # Documents kept separately for account scoping and noise rules
    payer_document: str = ""
    beneficiary_document: str = ""
    account_document: str = ""
    original_description: str = ""
    raw_original: dict = field(default_factory=dict, repr=False)

    @property
    def timestamp(self) -> Optional[datetime]:
        return parse_timestamp(self.date_time)

    @property
    def is_credit(self) -> bool:
        return self.type is TransactionType.CREDIT

    @property
    def is_debit(self) -> bool:
        return self.type is TransactionType.DEBIT
