from typing import Hashable, Iterable

from domain.entities import SortBy, SortOrder, Transaction
from .sorting import Sorting


class TransactionMerge:
    """Incremental refresh: fold newly fetched records into an existing collection."""

    @staticmethod
    def dedup_key(t: Transaction) -> Hashable:
        if t.end_to_end_code:
            return ("e2e", t.end_to_end_code)
        # No end-to-end code: the timestamp and amount pair identifies the movement
        return ("at", t.date_time, round(t.value, 2))

    @staticmethod
    def unseen(existing: Iterable[Transaction], batch: Iterable[Transaction]) -> list[Transaction]:
        seen = {TransactionMerge.dedup_key(t) for t in existing}
        fresh = []
        for t in batch:
            key = TransactionMerge.dedup_key(t)
            if key in seen:
                continue
            seen.add(key)
            fresh.append(t)
        return fresh

    @staticmethod
    def merge(existing: list[Transaction], batch: Iterable[Transaction]) -> list[Transaction]:
        """
        Prepend unseen records to the collection, then re-sort by date descending.

        Applying the same batch twice yields the same collection.
        """
        fresh = TransactionMerge.unseen(existing, batch)
        return Sorting.sort(fresh + list(existing), SortBy.DATE, SortOrder.DESC)
