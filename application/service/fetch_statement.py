import time
from dataclasses import replace
from datetime import date, timedelta
from typing import Any, Optional

from domain.config import FetchConfig, SuppressionConfig, get_fetch_config, get_suppression_config
from domain.entities import FetchResult, FilterCriteria, PaginationInfo, TransactionQuery
from domain.exceptions import StatementFetchError
from domain.interfaces import LoggingPort, MetricsPort, TransactionSource
from domain.services import Normalization, ProviderAdapter, Suppression, SuppressionContext, TransactionFilter
from application.service.statement_session import StatementSession


class NoOpLogger:
    """Stand-in for a bound logger when no logging port is injected (tests)."""

    def debug(self, event: str, **kwargs: Any): pass
    def info(self, event: str, **kwargs: Any): pass
    def warning(self, event: str, **kwargs: Any): pass
    def error(self, event: str, exc_info: bool = False, **kwargs: Any): pass


def bind_logger(logging_port: Optional[LoggingPort], **context: Any):
    if logging_port:
        return logging_port.bind(**context)
    return NoOpLogger()


class FetchStatementService:
    def __init__(
        self,
        source: TransactionSource,
        adapter: ProviderAdapter,
        fetch_config: Optional[FetchConfig] = None,
        suppression_config: Optional[SuppressionConfig] = None,
        metrics_port: Optional[MetricsPort] = None,
        logging_port: Optional[LoggingPort] = None,
    ):
        """
        Initialize the statement fetch service.

        Args:
            source: Remote transaction source for the provider (required)
            adapter: Provider adapter driving normalization and suppression (required)
            fetch_config: Page size and iteration guard (defaults to environment config)
            suppression_config: Noise rule parameters (defaults to environment config)
            metrics_port: Metrics port for emitting metrics (optional)
            logging_port: Logging port for structured logging (optional)
        """
        self.source = source
        self.adapter = adapter
        self.fetch_config = fetch_config or get_fetch_config()
        self.suppression_config = suppression_config or get_suppression_config()
        self.metrics_port = metrics_port
        self.logging_port = logging_port

    def with_default_period(self, criteria: FilterCriteria, today: Optional[date] = None) -> FilterCriteria:
        """Fill in today and the previous days when no date bound was given."""
        if criteria.date_from is not None or criteria.date_to is not None:
            return criteria
        if self.fetch_config.default_days <= 0:
            return criteria
        today = today or date.today()
        return replace(
            criteria,
            date_from=today - timedelta(days=self.fetch_config.default_days - 1),
            date_to=today,
        )

    async def load(
        self,
        criteria: FilterCriteria,
        limit: Optional[int] = None,
        account_scope: Optional[str] = None,
        account_id: Optional[str] = None,
        request_id: Optional[str] = None,
        offset: int = 0,
    ) -> FetchResult:
        """
        Accumulate normalized, un-suppressed records page by page.

        Stops when the requested count is reached, when the source has no more
        pages, or when the iteration guard is hit. The guard is a soft stop:
        the partial result comes back flagged has_more=True.

        When the count is reached in the middle of a page, the rest of that page
        is left unread and pagination.next_offset points at it.

        Args:
            criteria: Remote-side filter criteria (validated before any call)
            limit: Number of records wanted (defaults to the configured page size)
            account_scope: Tax document of the scoped account, None for all accounts
            account_id: Remote account identifier forwarded to the listing endpoint
            request_id: ID of the request for tracing (optional)
            offset: Remote offset to start from (0 for a full load)

        Raises:
            InvalidFilterError: If the criteria are inconsistent (no call is made)
            StatementFetchError: If a remote call fails; carries the partial result
        """
        TransactionFilter.validate(criteria)

        start_time = time.time()
        provider = self.adapter.tag
        target = max(1, limit or self.fetch_config.page_size)
        start_offset = max(0, offset)
        log = bind_logger(
            self.logging_port,
            request_id=request_id or "unknown",
            provider=provider,
            step="statement_load",
        )
        log.info("statement_load_started", limit=target, offset=start_offset, account_scoped=bool(account_scope))

        ctx = SuppressionContext(account_scope=account_scope, config=self.suppression_config)
        query = TransactionQuery.from_criteria(criteria, limit=target, account_id=account_id)
        result = FetchResult()
        offset = start_offset
        total: Optional[int] = None
        has_more = False

        while True:
            if result.calls >= self.fetch_config.max_iterations:
                result.guard_exhausted = True
                has_more = True
                if self.metrics_port:
                    self.metrics_port.increment_iteration_guard(provider)
                log.warning(
                    "statement_iteration_guard_hit",
                    calls=result.calls,
                    accumulated=len(result.transactions),
                )
                break

            page_limit = min(target - len(result.transactions), self.fetch_config.max_page_size)
            page_start = time.time()
            try:
                page = await self.source.list_transactions(query.page(page_limit, offset))
            except Exception as e:
                if self.metrics_port:
                    self.metrics_port.increment_fetch_failure(provider)
                log.error(
                    "statement_load_failed",
                    exc_info=True,
                    calls=result.calls,
                    accumulated=len(result.transactions),
                    error=str(e),
                    error_type=type(e).__name__,
                    duration_ms=round((time.time() - start_time) * 1000, 2),
                )
                result.pagination = PaginationInfo(
                    total=total if total is not None else len(result.transactions),
                    limit=target,
                    offset=start_offset,
                    has_more=True,
                    next_offset=offset,
                )
                raise StatementFetchError(str(e), partial=result, calls=result.calls) from e

            result.calls += 1
            if self.metrics_port:
                self.metrics_port.increment_pages_fetched(provider)

            positioned = Normalization.positioned_batch(page.records, self.adapter)
            kept, dropped = Suppression.apply(
                [t for _, t in positioned],
                ctx,
                self.adapter,
                limit=target - len(result.transactions),
            )
            examined = len(kept) + sum(dropped.values())
            for rule, count in dropped.items():
                if self.metrics_port:
                    self.metrics_port.increment_suppressed(provider, rule, count)
            result.suppressed += sum(dropped.values())
            result.transactions.extend(kept)
            if page.total is not None:
                total = page.total

            log.debug(
                "statement_page_fetched",
                offset=offset,
                raw_count=len(page.records),
                kept=len(kept),
                suppressed=sum(dropped.values()),
                has_more=page.has_more,
                duration_ms=round((time.time() - page_start) * 1000, 2),
            )

            if examined < len(positioned):
                # Count reached mid-page: resume at the first record not examined
                offset += positioned[examined][0]
                has_more = True
                break

            has_more = page.has_more
            next_offset = page.next_offset
            if next_offset is None or next_offset <= offset:
                next_offset = offset + len(page.records)
            offset = next_offset

            if len(result.transactions) >= target or not page.has_more or not page.records:
                break

        result.pagination = PaginationInfo(
            total=total if total is not None else start_offset + len(result.transactions),
            limit=target,
            offset=start_offset,
            has_more=has_more,
            next_offset=offset,
        )
        log.info(
            "statement_load_completed",
            calls=result.calls,
            transaction_count=len(result.transactions),
            suppressed=result.suppressed,
            has_more=has_more,
            next_offset=offset,
            guard_exhausted=result.guard_exhausted,
            duration_ms=round((time.time() - start_time) * 1000, 2),
        )
        return result

    async def reload(
        self,
        session: StatementSession,
        criteria: FilterCriteria,
        limit: Optional[int] = None,
        account_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> tuple[FetchResult, bool]:
        """
        Full reload into a session. Returns the result and whether it was applied.

        A reload superseded by a newer one while in flight is discarded.
        On failure the session is left as it was.
        """
        TransactionFilter.validate(criteria)
        generation = session.begin_request()
        result = await self.load(
            criteria,
            limit=limit,
            account_scope=session.account_scope,
            account_id=account_id,
            request_id=request_id,
        )
        async with session.lock:
            if not session.is_current(generation):
                bind_logger(self.logging_port, request_id=request_id or "unknown", provider=self.adapter.tag).info(
                    "statement_load_discarded_stale", generation=generation, current=session.generation
                )
                return result, False
            session.replace(result, criteria)
        return result, True

    async def refresh(
        self,
        session: StatementSession,
        account_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> tuple[FetchResult, int]:
        """
        Incremental refresh: fetch the newest page(s) for the criteria the
        collection was loaded with and merge the unseen records into it.

        Local view criteria never reach the remote query. Returns the fetched
        result and the number of records added. If a reload started while this
        refresh was in flight, nothing is merged.
        """
        generation = session.generation
        result = await self.load(
            session.load_criteria,
            limit=self.fetch_config.page_size,
            account_scope=session.account_scope,
            account_id=account_id,
            request_id=request_id,
        )
        async with session.lock:
            if not session.is_current(generation):
                return result, 0
            added = session.merge(result.transactions)
        bind_logger(self.logging_port, request_id=request_id or "unknown", provider=self.adapter.tag).info(
            "statement_refresh_merged", fetched=len(result.transactions), added=added
        )
        return result, added

    async def load_more(
        self,
        session: StatementSession,
        limit: Optional[int] = None,
        account_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> tuple[FetchResult, int]:
        """
        Continue the session's load from the remote offset where it stopped.

        Returns the fetched result and the number of records added. Nothing is
        fetched when the remote listing is exhausted.
        """
        if not session.pagination.has_more or session.pagination.next_offset is None:
            return FetchResult(pagination=session.pagination), 0

        generation = session.generation
        result = await self.load(
            session.load_criteria,
            limit=limit,
            account_scope=session.account_scope,
            account_id=account_id,
            request_id=request_id,
            offset=session.pagination.next_offset,
        )
        async with session.lock:
            if not session.is_current(generation):
                return result, 0
            added = session.append_page(result)
        bind_logger(self.logging_port, request_id=request_id or "unknown", provider=self.adapter.tag).info(
            "statement_load_more_merged",
            fetched=len(result.transactions),
            added=added,
            next_offset=result.pagination.next_offset,
        )
        return result, added
