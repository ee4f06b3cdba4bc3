from datetime import datetime, time
from typing import Iterable, Optional

from domain.entities import FilterCriteria, Transaction, TypeFilter
from domain.exceptions import InvalidFilterError

EXACT_AMOUNT_TOLERANCE = 0.01
_END_OF_DAY = time(23, 59, 59, 999000)


def number_text(value: float) -> str:
    """Render a magnitude the way users type it: 100 -> "100", 100.5 -> "100.5"."""
    if value == int(value):
        return str(int(value))
    return repr(value)


def _contains(haystack: Optional[str], needle: str) -> bool:
    return bool(haystack) and needle in haystack.lower()


class TransactionFilter:
    """AND-combined inclusion predicates over normalized, suppressed records."""

    @staticmethod
    def validate(criteria: FilterCriteria) -> None:
        """Reject inconsistent user input before any remote call is made."""
        if criteria.date_from and criteria.date_to and criteria.date_from > criteria.date_to:
            raise InvalidFilterError("date_from must not be after date_to")
        if (
            not criteria.exact_amount_active
            and criteria.min_amount is not None
            and criteria.max_amount is not None
            and criteria.min_amount > criteria.max_amount
        ):
            raise InvalidFilterError("min_amount must not be greater than max_amount")

    @staticmethod
    def matches_date(t: Transaction, criteria: FilterCriteria) -> bool:
        if criteria.date_from is None and criteria.date_to is None:
            return True
        ts = t.timestamp
        if ts is None:
            # Unparseable dates are kept rather than hidden
            return True
        if criteria.date_from is not None and ts < datetime.combine(criteria.date_from, time.min):
            return False
        if criteria.date_to is not None and ts > datetime.combine(criteria.date_to, _END_OF_DAY):
            return False
        return True

    @staticmethod
    def matches_type(t: Transaction, criteria: FilterCriteria) -> bool:
        if criteria.type_filter is TypeFilter.CREDIT:
            return t.is_credit
        if criteria.type_filter is TypeFilter.DEBIT:
            return t.is_debit
        return True

    @staticmethod
    def matches_amount(t: Transaction, criteria: FilterCriteria) -> bool:
        if criteria.exact_amount_active:
            return abs(t.value - abs(criteria.exact_amount)) < EXACT_AMOUNT_TOLERANCE
        if criteria.min_amount is not None and t.value < criteria.min_amount:
            return False
        if criteria.max_amount is not None and t.value > criteria.max_amount:
            return False
        return True

    @staticmethod
    def matches_search(t: Transaction, criteria: FilterCriteria) -> bool:
        end_to_end = criteria.effective_end_to_end
        if end_to_end is not None:
            return t.end_to_end_code.lower() == end_to_end.lower()

        query = criteria.effective_search
        if query is None:
            return True
        needle = query.lower()
        return (
            _contains(t.counterparty_name, needle)
            or _contains(t.counterparty_document, needle)
            or _contains(t.end_to_end_code, needle)
            or _contains(t.description, needle)
            or needle in number_text(t.value)
        )

    @staticmethod
    def matches_named_fields(t: Transaction, criteria: FilterCriteria) -> bool:
        if criteria.search_name and criteria.search_name.strip():
            needle = criteria.search_name.strip().lower()
            if not (_contains(t.counterparty_name, needle) or _contains(t.counterparty_document, needle)):
                return False
        if criteria.search_description and criteria.search_description.strip():
            needle = criteria.search_description.strip().lower()
            if not (
                _contains(t.description, needle)
                or _contains(t.counterparty_name, needle)
                or _contains(t.original_description, needle)
            ):
                return False
        if criteria.search_value and criteria.search_value.strip():
            if criteria.search_value.strip() not in number_text(t.value):
                return False
        return True

    @staticmethod
    def matches(t: Transaction, criteria: FilterCriteria) -> bool:
        return (
            TransactionFilter.matches_date(t, criteria)
            and TransactionFilter.matches_type(t, criteria)
            and TransactionFilter.matches_amount(t, criteria)
            and TransactionFilter.matches_search(t, criteria)
            and TransactionFilter.matches_named_fields(t, criteria)
        )

    @staticmethod
    def filter(transactions: Iterable[Transaction], criteria: FilterCriteria) -> list[Transaction]:
        """Survivors in their original relative order."""
        return [t for t in transactions if TransactionFilter.matches(t, criteria)]
