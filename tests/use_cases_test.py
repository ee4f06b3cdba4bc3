# use cases test

from datetime import date, datetime

import pytest

from application.service.fetch_statement import FetchStatementService
from application.service.session_store import SessionStore
from application.service.statement_session import StatementSession
from application.service.sync_statement import SyncStatementService
from application.service.verify_transaction import VerifyTransactionService
from domain.config import FetchConfig, SuppressionConfig
from domain.entities import FilterCriteria, PaginationInfo, RawPage, SortBy, SortOrder, SyncResult, VerificationResult
from domain.exceptions import BankAPIError, InvalidFilterError, StatementFetchError
from domain.interfaces import MetricsPort, TransactionSource
from domain.services import Normalization
from domain.services.providers import CORPX

DECOY = "12345678000190"


def raw(i: int, amount: float = 10.0, day: int = 10, decoy: bool = False) -> dict:
    if decoy:
        return {"id": f"decoy-{i}", "amount": -0.5, "transactionType": "D", "beneficiaryDocument": DECOY,
                "transactionDatetime": f"2024-05-{day:02d}T08:00:00"}
    return {
        "id": f"r{i}",
        "amount": amount,
        "transactionType": "C",
        "payerName": f"Payer {i}",
        "endToEndId": f"E{i:030d}",
        "transactionDatetime": f"2024-05-{day:02d}T{i % 24:02d}:00:00",
    }


def page(records, has_more, total=None, next_offset=None) -> RawPage:
    return RawPage(records=records, has_more=has_more, total=total, next_offset=next_offset)


@pytest.fixture
def fetch_config():
    return FetchConfig(page_size=100, max_page_size=2000, max_iterations=10, default_days=3)


@pytest.fixture
def suppression_config():
    return SuppressionConfig(decoy_document=DECOY, foreign_beneficiary_documents=[])


@pytest.fixture
def mock_source(mocker):
    """Fixture to create a mock of the transaction source using pytest-mock"""
    return mocker.AsyncMock(spec=TransactionSource)


@pytest.fixture
def mock_metrics(mocker):
    return mocker.Mock(spec=MetricsPort)


@pytest.fixture
def service(mock_source, mock_metrics, fetch_config, suppression_config):
    return FetchStatementService(
        source=mock_source,
        adapter=CORPX,
        fetch_config=fetch_config,
        suppression_config=suppression_config,
        metrics_port=mock_metrics,
    )


class TestPaginatedLoad:
    @pytest.mark.asyncio
    async def test_two_pages_reach_the_requested_count(self, service, mock_source):
        """80 of 100 with has_more, then 20 more without: two calls, 100 records."""
        mock_source.list_transactions.side_effect = [
            page([raw(i) for i in range(80)], has_more=True, total=100),
            page([raw(i) for i in range(80, 100)], has_more=False, total=100),
        ]

        result = await service.load(FilterCriteria(), limit=100)

        assert result.calls == 2
        assert len(result.transactions) == 100
        assert result.guard_exhausted is False
        assert result.pagination.has_more is False
        assert result.pagination.total == 100

        first, second = [call.args[0] for call in mock_source.list_transactions.await_args_list]
        assert (first.limit, first.offset) == (100, 0)
        assert (second.limit, second.offset) == (20, 80)

    @pytest.mark.asyncio
    async def test_next_offset_hint_is_followed(self, service, mock_source):
        mock_source.list_transactions.side_effect = [
            page([raw(i) for i in range(5)], has_more=True, next_offset=50),
            page([raw(i) for i in range(5, 10)], has_more=False),
        ]
        await service.load(FilterCriteria(), limit=100)
        second = mock_source.list_transactions.await_args_list[1].args[0]
        assert second.offset == 50

    @pytest.mark.asyncio
    async def test_overshoot_is_truncated_and_flagged(self, service, mock_source):
        mock_source.list_transactions.return_value = page([raw(i) for i in range(30)], has_more=False)

        result = await service.load(FilterCriteria(), limit=20)

        assert len(result.transactions) == 20
        assert result.pagination.has_more is True
        assert result.calls == 1
        # The unread tail of the page is where the next load starts
        assert result.pagination.next_offset == 20
        assert [t.id for t in result.transactions][-1] == "r19"

    @pytest.mark.asyncio
    async def test_suppressed_records_do_not_count_towards_the_limit(self, service, mock_source, mock_metrics):
        def half_decoys(query):
            start = query.offset
            records = [raw(start + i, decoy=(i % 2 == 1)) for i in range(10)]
            return page(records, has_more=True)

        mock_source.list_transactions.side_effect = half_decoys

        result = await service.load(FilterCriteria(), limit=20)

        assert len(result.transactions) == 20
        assert result.calls == 4
        # The fourth page is read up to its fifth survivor (index 8 of offset 30)
        assert result.suppressed == 19
        assert result.pagination.next_offset == 39
        assert result.pagination.has_more is True
        assert all(not t.id.startswith("decoy") for t in result.transactions)
        mock_metrics.increment_suppressed.assert_any_call("corpx", "decoy_deposit", 5)

    @pytest.mark.asyncio
    async def test_iteration_guard_is_a_soft_stop(self, mock_source, mock_metrics, suppression_config):
        service = FetchStatementService(
            source=mock_source,
            adapter=CORPX,
            fetch_config=FetchConfig(page_size=100, max_page_size=2000, max_iterations=3, default_days=3),
            suppression_config=suppression_config,
            metrics_port=mock_metrics,
        )
        mock_source.list_transactions.return_value = page([raw(1, decoy=True), raw(2)], has_more=True)

        result = await service.load(FilterCriteria(), limit=50)

        assert result.calls == 3
        assert result.guard_exhausted is True
        assert result.pagination.has_more is True
        assert len(result.transactions) == 3
        mock_metrics.increment_iteration_guard.assert_called_once_with("corpx")

    @pytest.mark.asyncio
    async def test_empty_page_ends_the_loop(self, service, mock_source):
        mock_source.list_transactions.return_value = page([], has_more=True)
        result = await service.load(FilterCriteria(), limit=10)
        assert result.calls == 1
        assert result.transactions == []

    @pytest.mark.asyncio
    async def test_remote_failure_carries_partial_result(self, service, mock_source, mock_metrics):
        mock_source.list_transactions.side_effect = [
            page([raw(i) for i in range(40)], has_more=True),
            BankAPIError("Bank API returned 502: Bad Gateway"),
        ]

        with pytest.raises(StatementFetchError) as exc_info:
            await service.load(FilterCriteria(), limit=100)

        assert exc_info.value.calls == 1
        assert len(exc_info.value.partial.transactions) == 40
        assert isinstance(exc_info.value, BankAPIError)
        mock_metrics.increment_fetch_failure.assert_called_once_with("corpx")

    @pytest.mark.asyncio
    async def test_invalid_criteria_never_reach_the_source(self, service, mock_source):
        with pytest.raises(InvalidFilterError):
            await service.load(FilterCriteria(min_amount=10, max_amount=1))
        mock_source.list_transactions.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_end_to_end_search_goes_to_the_query(self, service, mock_source):
        e2e = "E" + "7" * 25
        mock_source.list_transactions.return_value = page([], has_more=False)
        await service.load(FilterCriteria(search=e2e))
        query = mock_source.list_transactions.await_args.args[0]
        assert query.end_to_end == e2e

    def test_default_period(self, service):
        criteria = service.with_default_period(FilterCriteria(), today=date(2024, 5, 10))
        assert criteria.date_from == date(2024, 5, 8)
        assert criteria.date_to == date(2024, 5, 10)

        explicit = FilterCriteria(date_from=date(2024, 1, 1))
        assert service.with_default_period(explicit, today=date(2024, 5, 10)) is explicit


class TestSession:
    @pytest.mark.asyncio
    async def test_reload_replaces_collection(self, service, mock_source):
        session = StatementSession(provider="corpx")
        mock_source.list_transactions.return_value = page([raw(i) for i in range(3)], has_more=False)

        result, applied = await service.reload(session, FilterCriteria(), limit=10)

        assert applied is True
        assert len(session.transactions) == 3
        assert session.generation == 1
        assert session.pagination == result.pagination

    @pytest.mark.asyncio
    async def test_failed_reload_leaves_session_untouched(self, service, mock_source):
        session = StatementSession(provider="corpx")
        mock_source.list_transactions.return_value = page([raw(i) for i in range(3)], has_more=False)
        await service.reload(session, FilterCriteria(), limit=10)
        before = list(session.transactions)

        mock_source.list_transactions.side_effect = BankAPIError("timeout")
        with pytest.raises(StatementFetchError):
            await service.reload(session, FilterCriteria(search="x"), limit=10)

        assert session.transactions == before
        assert session.criteria == FilterCriteria()

    @pytest.mark.asyncio
    async def test_stale_reload_is_discarded(self, service, mock_source):
        session = StatementSession(provider="corpx")

        async def newer_request_starts_mid_flight(query):
            session.begin_request()
            return page([raw(1)], has_more=False)

        mock_source.list_transactions.side_effect = newer_request_starts_mid_flight

        _, applied = await service.reload(session, FilterCriteria(), limit=10)

        assert applied is False
        assert session.transactions == []

    @pytest.mark.asyncio
    async def test_refresh_merges_only_new_records(self, service, mock_source):
        session = StatementSession(provider="corpx")
        mock_source.list_transactions.return_value = page([raw(1, day=9), raw(2, day=9)], has_more=False)
        await service.reload(session, FilterCriteria(), limit=10)

        mock_source.list_transactions.return_value = page([raw(3, day=11), raw(1, day=9)], has_more=False)
        _, added = await service.refresh(session)
        assert added == 1
        assert [t.id for t in session.transactions][0] == "r3"

        _, added_again = await service.refresh(session)
        assert added_again == 0
        assert len(session.transactions) == 3

    @pytest.mark.asyncio
    async def test_refresh_failure_keeps_collection(self, service, mock_source):
        session = StatementSession(provider="corpx")
        mock_source.list_transactions.return_value = page([raw(1)], has_more=False)
        await service.reload(session, FilterCriteria(), limit=10)

        mock_source.list_transactions.side_effect = BankAPIError("down")
        with pytest.raises(StatementFetchError):
            await service.refresh(session)
        assert [t.id for t in session.transactions] == ["r1"]

    @pytest.mark.asyncio
    async def test_refresh_uses_load_criteria_not_view_criteria(self, service, mock_source):
        session = StatementSession(provider="corpx")
        loaded_with = service.with_default_period(FilterCriteria(), today=date(2024, 5, 10))
        mock_source.list_transactions.return_value = page([raw(1)], has_more=False)
        await service.reload(session, loaded_with, limit=10)

        session.set_view(criteria=FilterCriteria(search="zzz"))
        await service.refresh(session)

        query = mock_source.list_transactions.await_args.args[0]
        assert (query.start_date, query.end_date) == (date(2024, 5, 8), date(2024, 5, 10))
        assert query.search is None
        assert session.load_criteria == loaded_with
        assert session.criteria.search == "zzz"

    @pytest.mark.asyncio
    async def test_load_more_continues_from_next_offset(self, service, mock_source):
        session = StatementSession(provider="corpx")
        mock_source.list_transactions.return_value = page([raw(i) for i in range(8)], has_more=True, total=12)
        await service.reload(session, FilterCriteria(), limit=5)
        assert session.pagination.next_offset == 5

        mock_source.list_transactions.return_value = page([raw(i) for i in range(5, 12)], has_more=False, total=12)
        result, added = await service.load_more(session, limit=10)

        query = mock_source.list_transactions.await_args.args[0]
        assert query.offset == 5
        assert added == 7
        assert len(session.transactions) == 12
        assert session.pagination.has_more is False
        assert session.pagination.next_offset == 12
        assert session.pagination.total == 12

        mock_source.list_transactions.reset_mock()
        _, added_again = await service.load_more(session)
        assert added_again == 0
        mock_source.list_transactions.assert_not_awaited()

    def test_refresh_merge_shifts_next_offset(self):
        session = StatementSession(provider="corpx")
        session.pagination = PaginationInfo(total=5, limit=5, offset=0, has_more=True, next_offset=5)
        added = session.merge(Normalization.normalize_batch([raw(20, day=11), raw(21, day=11)], CORPX))
        assert added == 2
        assert session.pagination.next_offset == 7
        assert session.pagination.total == 7

    def test_view_filters_sorts_and_aggregates(self):
        session = StatementSession(provider="corpx")
        added = session.merge(
            Normalization.normalize_batch([raw(1, amount=100), raw(2, amount=5), raw(3, amount=50)], CORPX)
        )
        assert added == 3

        session.set_view(criteria=FilterCriteria(min_amount=10), sort_by=SortBy.VALUE, sort_order=SortOrder.ASC)
        view = session.view(page=1, page_size=1)

        assert [t.value for t in view.transactions] == [50.0]
        assert view.filtered_count == 2
        assert view.metrics.credit_count == 2
        assert view.metrics.credit_sum == 150.0
        assert view.pagination.total_pages == 2
        assert view.pagination.has_more is True

    def test_invalid_view_criteria_keep_previous_settings(self):
        session = StatementSession(provider="corpx")
        session.set_view(criteria=FilterCriteria(search="maria"))
        with pytest.raises(InvalidFilterError):
            session.set_view(criteria=FilterCriteria(date_from=date(2024, 5, 2), date_to=date(2024, 5, 1)))
        assert session.criteria.search == "maria"


class TestSyncStatement:
    @pytest.mark.asyncio
    async def test_sync_success(self, mock_source, mock_metrics):
        mock_source.sync_statement.return_value = SyncResult(success=True, message="ok", total_synced=12)
        srv = SyncStatementService(mock_source, CORPX, metrics_port=mock_metrics)

        result = await srv.execute("11.222.333/0001-81", date(2024, 5, 1), date(2024, 5, 3), dry_run=True)

        assert result.total_synced == 12
        mock_source.sync_statement.assert_awaited_once_with("11222333000181", date(2024, 5, 1), date(2024, 5, 3), True)
        mock_metrics.increment_sync_request.assert_called_once_with("corpx", "success")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("document,start,end", [
        ("", date(2024, 5, 1), date(2024, 5, 3)),
        ("11222333000181", None, date(2024, 5, 3)),
        ("11222333000181", date(2024, 5, 4), date(2024, 5, 3)),
    ])
    async def test_sync_validation(self, mock_source, document, start, end):
        srv = SyncStatementService(mock_source, CORPX)
        with pytest.raises(InvalidFilterError):
            await srv.execute(document, start, end)
        mock_source.sync_statement.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sync_bank_error_is_counted_and_raised(self, mock_source, mock_metrics):
        mock_source.sync_statement.side_effect = BankAPIError("down")
        srv = SyncStatementService(mock_source, CORPX, metrics_port=mock_metrics)
        with pytest.raises(BankAPIError):
            await srv.execute("11222333000181", date(2024, 5, 1), date(2024, 5, 1))
        mock_metrics.increment_sync_request.assert_called_once_with("corpx", "error")


class TestVerifyTransaction:
    @pytest.mark.asyncio
    async def test_short_document_is_rejected_locally(self, mock_source):
        srv = VerifyTransactionService(mock_source, CORPX)
        result = await srv.execute("123.456", "E" + "1" * 20)
        assert result.found is False
        mock_source.verify_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_short_end_to_end_is_rejected_locally(self, mock_source):
        srv = VerifyTransactionService(mock_source, CORPX)
        result = await srv.execute("11222333000181", "E123")
        assert result.found is False
        mock_source.verify_transaction.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_result_is_passed_through(self, mock_source):
        mock_source.verify_transaction.return_value = VerificationResult(
            found=True, message="ok", allows_operation=True, status="SUCCESS"
        )
        srv = VerifyTransactionService(mock_source, CORPX)
        result = await srv.execute("11.222.333/0001-81", " E12345678901234567890 ")
        assert result.allows_operation is True
        mock_source.verify_transaction.assert_awaited_once_with("11222333000181", "E12345678901234567890")

    @pytest.mark.asyncio
    async def test_bank_error_becomes_not_found(self, mock_source):
        mock_source.verify_transaction.side_effect = BankAPIError("Bank API returned 500: boom")
        srv = VerifyTransactionService(mock_source, CORPX)
        result = await srv.execute("11222333000181", "E12345678901234567890")
        assert result.found is False
        assert result.allows_operation is False
        assert "500" in result.message


def test_session_store_scopes_by_id_and_provider():
    store = SessionStore()
    corpx = store.get_or_create("s1", "corpx")
    assert store.get_or_create("s1", "corpx") is corpx
    assert store.get_or_create("s1", "tcr") is not corpx
    assert store.get("s2", "corpx") is None

    # A different account scope starts a fresh collection
    scoped = store.get_or_create("s1", "corpx", account_scope="11222333000181")
    assert scoped is not corpx
    assert scoped.account_scope == "11222333000181"
    assert store.get_or_create("s1", "corpx", account_scope="11222333000181") is scoped

    assert store.drop("s1") == 2
    assert len(store) == 0


def test_session_store_switches_back_to_all_accounts():
    store = SessionStore()
    scoped = store.get_or_create("s1", "corpx", account_scope="11222333000181")
    scoped.transactions = Normalization.normalize_batch([raw(1)], CORPX)

    all_accounts = store.get_or_create("s1", "corpx")

    assert all_accounts is not scoped
    assert all_accounts.account_scope is None
    assert all_accounts.transactions == []
    assert store.get("s1", "corpx") is all_accounts
    assert len(store) == 1


def test_session_store_evicts_least_recently_loaded():
    store = SessionStore(max_sessions=2)
    first = store.get_or_create("a", "corpx")
    second = store.get_or_create("b", "corpx")
    first.loaded_at = datetime(2024, 5, 10, 12, 0)
    second.loaded_at = datetime(2024, 5, 10, 9, 0)

    store.get_or_create("c", "corpx")

    assert len(store) == 2
    assert store.get("b", "corpx") is None
    assert store.get("a", "corpx") is first

    # Re-scoping an existing entry does not grow the store
    store.get_or_create("a", "corpx", account_scope="11222333000181")
    assert len(store) == 2
    assert store.get("c", "corpx") is not None
