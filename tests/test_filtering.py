"""
Tests for the criteria filter engine.
"""
from datetime import date

import pytest

from domain.entities import FilterCriteria, Transaction, TransactionType, TypeFilter, looks_like_end_to_end
from domain.exceptions import InvalidFilterError
from domain.services.filtering import TransactionFilter, number_text

E2E = "E18236120202405101432" + "0" * 11


def tx(id_, value, type_=TransactionType.CREDIT, date_time="2024-05-10T12:00:00", **kwargs) -> Transaction:
    return Transaction(id=id_, date_time=date_time, value=value, type=type_, **kwargs)


@pytest.fixture
def transactions():
    return [
        tx("1", 100.0, counterparty_name="Maria Souza", counterparty_document="12345678909",
           end_to_end_code=E2E, description="PIX RECEBIDO"),
        tx("2", 30.0, TransactionType.DEBIT, date_time="2024-05-09T23:59:59",
           counterparty_name="Joao Lima", description="PIX ENVIADO"),
        tx("3", 250.75, date_time="2024-05-11T00:00:00", counterparty_name="Acme",
           description="DEPOSITO", original_description="Aporte mensal"),
        tx("4", 100.004, TransactionType.DEBIT, date_time="not a date", description="TARIFA"),
    ]


def ids(result):
    return [t.id for t in result]


class TestPriorityRules:
    def test_exact_amount_overrides_min_max(self):
        items = [tx("hundred", 100.0), tx("thirty", 30.0)]
        criteria = FilterCriteria(exact_amount=100, min_amount=0, max_amount=50)
        assert ids(TransactionFilter.filter(items, criteria)) == ["hundred"]

    def test_zero_exact_amount_is_inactive(self, transactions):
        criteria = FilterCriteria(exact_amount=0, min_amount=50)
        assert ids(TransactionFilter.filter(transactions, criteria)) == ["1", "3", "4"]

    def test_exact_amount_tolerance(self, transactions):
        criteria = FilterCriteria(exact_amount=100)
        # 100.004 is within 0.01
        assert ids(TransactionFilter.filter(transactions, criteria)) == ["1", "4"]

    def test_end_to_end_search_bypasses_text_search(self, transactions):
        # Looked up as a whole code, not as a substring
        criteria = FilterCriteria(search=E2E)
        assert ids(TransactionFilter.filter(transactions, criteria)) == ["1"]

        partial = FilterCriteria(end_to_end=E2E[:-1])
        assert TransactionFilter.filter(transactions, partial) == []

    def test_end_to_end_pattern(self):
        assert looks_like_end_to_end("E" + "1" * 20)
        assert looks_like_end_to_end("  E" + "1" * 25 + "abc")
        assert not looks_like_end_to_end("E" + "1" * 19)
        assert not looks_like_end_to_end("e" + "1" * 20)
        assert not looks_like_end_to_end(None)


class TestPredicates:
    def test_date_range_is_inclusive_by_day(self, transactions):
        criteria = FilterCriteria(date_from=date(2024, 5, 9), date_to=date(2024, 5, 10))
        # "not a date" is kept rather than hidden
        assert ids(TransactionFilter.filter(transactions, criteria)) == ["1", "2", "4"]

    def test_type_filter(self, transactions):
        assert ids(TransactionFilter.filter(transactions, FilterCriteria(type_filter=TypeFilter.DEBIT))) == ["2", "4"]
        assert ids(TransactionFilter.filter(transactions, FilterCriteria(type_filter=TypeFilter.CREDIT))) == ["1", "3"]

    def test_free_text_search_fields(self, transactions):
        assert ids(TransactionFilter.filter(transactions, FilterCriteria(search="maria"))) == ["1"]
        assert ids(TransactionFilter.filter(transactions, FilterCriteria(search="456789"))) == ["1"]
        assert ids(TransactionFilter.filter(transactions, FilterCriteria(search="pix"))) == ["1", "2"]
        assert ids(TransactionFilter.filter(transactions, FilterCriteria(search="250.7"))) == ["3"]

    def test_named_field_searches(self, transactions):
        assert ids(TransactionFilter.filter(transactions, FilterCriteria(search_name="lima"))) == ["2"]
        # Description search also looks at the original description
        assert ids(TransactionFilter.filter(transactions, FilterCriteria(search_description="aporte"))) == ["3"]
        assert ids(TransactionFilter.filter(transactions, FilterCriteria(search_value="30"))) == ["2"]

    def test_survivors_keep_relative_order(self, transactions):
        reversed_input = list(reversed(transactions))
        result = TransactionFilter.filter(reversed_input, FilterCriteria(min_amount=50))
        assert ids(result) == ["4", "3", "1"]


class TestAndComposition:
    @pytest.mark.parametrize("extra", [
        {"type_filter": TypeFilter.CREDIT},
        {"min_amount": 200},
        {"max_amount": 99},
        {"search": "pix"},
        {"date_from": date(2024, 5, 11)},
        {"search_description": "deposito"},
    ])
    def test_adding_a_constraint_never_grows_the_result(self, transactions, extra):
        base = FilterCriteria(min_amount=10)
        narrowed = FilterCriteria(min_amount=10, **extra)
        base_ids = set(ids(TransactionFilter.filter(transactions, base)))
        narrowed_ids = set(ids(TransactionFilter.filter(transactions, narrowed)))
        assert narrowed_ids <= base_ids

    def test_all_constraints_must_hold(self, transactions):
        criteria = FilterCriteria(type_filter=TypeFilter.CREDIT, min_amount=50, search="acme")
        assert ids(TransactionFilter.filter(transactions, criteria)) == ["3"]


class TestValidation:
    def test_min_greater_than_max(self):
        with pytest.raises(InvalidFilterError):
            TransactionFilter.validate(FilterCriteria(min_amount=100, max_amount=10))

    def test_min_max_ignored_when_exact_set(self):
        TransactionFilter.validate(FilterCriteria(min_amount=100, max_amount=10, exact_amount=5))

    def test_inverted_dates(self):
        with pytest.raises(InvalidFilterError):
            TransactionFilter.validate(FilterCriteria(date_from=date(2024, 5, 10), date_to=date(2024, 5, 1)))


def test_number_text():
    assert number_text(100.0) == "100"
    assert number_text(250.75) == "250.75"
    assert number_text(0.5) == "0.5"
