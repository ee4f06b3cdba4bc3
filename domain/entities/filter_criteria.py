import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

# "E" followed by at least 20 digits reads as a payment end-to-end code
END_TO_END_PATTERN = re.compile(r"^E\d{20,}")


def looks_like_end_to_end(query: Optional[str]) -> bool:
    """Best-effort guess whether a free-text query is an end-to-end code."""
    return bool(query) and END_TO_END_PATTERN.match(query.strip()) is not None


class TypeFilter(Enum):
    ANY = "any"
    DEBIT = "debit"
    CREDIT = "credit"


class SortBy(Enum):
    NONE = "none"
    DATE = "date"
    VALUE = "value"


class SortOrder(Enum):
    NONE = "none"
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class FilterCriteria:
    """Inclusion predicates; any field left as None (or ANY) is not a constraint."""

    date_from: Optional[date] = None
    date_to: Optional[date] = None
    type_filter: TypeFilter = TypeFilter.ANY
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    exact_amount: Optional[float] = None
    # Generic free-text search
    search: Optional[str] = None
    # Restricted to counterparty name / document
    search_name: Optional[str] = None
    # Restricted to description / name / original description
    search_description: Optional[str] = None
    # Substring of the stringified absolute value
    search_value: Optional[str] = None
    # Explicit end-to-end lookup
    end_to_end: Optional[str] = None

    @property
    def exact_amount_active(self) -> bool:
        """exact_amount wins over min/max when set and non-zero."""
        return self.exact_amount is not None and self.exact_amount != 0

    @property
    def effective_end_to_end(self) -> Optional[str]:
        """The end-to-end code to look up, explicit or inferred from the search text."""
        if self.end_to_end and self.end_to_end.strip():
            return self.end_to_end.strip()
        if looks_like_end_to_end(self.search):
            return self.search.strip()
        return None

    @property
    def effective_search(self) -> Optional[str]:
        """The free-text query, unless an end-to-end lookup supersedes it."""
        if self.effective_end_to_end is not None:
            return None
        if self.search and self.search.strip():
            return self.search.strip()
        return None
