from typing import Iterable

from domain.entities import StatementMetrics, Transaction


class Aggregation:
    @staticmethod
    def compute(transactions: Iterable[Transaction]) -> StatementMetrics:
        """Per-type counts and sums in a single pass."""
        credit_count = debit_count = 0
        credit_sum = debit_sum = 0.0
        for t in transactions:
            if t.is_credit:
                credit_count += 1
                credit_sum += t.value
            else:
                debit_count += 1
                debit_sum += t.value
        return StatementMetrics(
            credit_count=credit_count,
            credit_sum=round(credit_sum, 2),
            debit_count=debit_count,
            debit_sum=round(debit_sum, 2),
        )
