from datetime import datetime
from typing import Iterable

from domain.entities import SortBy, SortOrder, Transaction


def _date_key(t: Transaction) -> datetime:
    # Unparseable timestamps sort as the oldest records
    return t.timestamp or datetime.min


def _value_key(t: Transaction) -> float:
    return t.value


class Sorting:
    @staticmethod
    def sort(transactions: Iterable[Transaction], by: SortBy, order: SortOrder) -> list[Transaction]:
        """Return a new ordered list; by=NONE or order=NONE keeps input order."""
        items = list(transactions)
        if by is SortBy.NONE or order is SortOrder.NONE:
            return items
        key = _date_key if by is SortBy.DATE else _value_key
        return sorted(items, key=key, reverse=order is SortOrder.DESC)
