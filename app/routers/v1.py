from fastapi import APIRouter, Depends, HTTPException, status, Request, Header, Query
from typing import Annotated, AsyncIterator, Optional
from application.service.fetch_statement import FetchStatementService
from application.service.session_store import SessionStore
from application.service.statement_session import StatementSession, StatementView
from application.service.sync_statement import SyncStatementService
from application.service.verify_transaction import VerifyTransactionService
from infrastructure.clients import BankClient, TransactionSourceAPI
from infrastructure.logging.logging_adapter import LoggingAdapter
from infrastructure.metrics.metrics_adapter import MetricsAdapter
from app.schemas.statement_schema import (
    LoadMoreRequest,
    LoadRequest,
    MetricsResponse,
    PaginationResponse,
    RefreshRequest,
    SessionDropResponse,
    StatementResponse,
    SyncRequest,
    SyncResponse,
    TransactionResponse,
    VerifyRequest,
    VerifyResponse,
    ViewParams,
)
from domain.config import get_bank_api_config
from domain.exceptions import BankAPIError, InvalidFilterError, UnknownProviderError
from domain.interfaces import TransactionSource
from domain.services import ProviderAdapter, get_adapter
import uuid


router = APIRouter(prefix="/v1")


def get_provider_adapter(provider: str) -> ProviderAdapter:
    try:
        return get_adapter(provider)
    except UnknownProviderError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "unknown_provider", "message": str(e)}
        )


async def get_transaction_source(
    adapter: ProviderAdapter = Depends(get_provider_adapter),
) -> AsyncIterator[TransactionSource]:
    config = get_bank_api_config()
    bank_client = BankClient(
        base_url=config.base_url,
        connect_timeout=config.connect_timeout,
        read_timeout=config.read_timeout,
        api_key=config.api_key or None,
        sync_max_attempts=config.sync_max_attempts,
    )
    try:
        yield TransactionSourceAPI(bank_client, adapter)
    finally:
        await bank_client.close()


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def _require_session(store: SessionStore, session_id: Optional[str], adapter: ProviderAdapter) -> StatementSession:
    session = store.get(session_id, adapter.tag) if session_id else None
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "session_not_found", "message": "Load a statement first"}
        )
    return session


def _raise_http(e: Exception):
    if isinstance(e, InvalidFilterError):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": "invalid_filter", "message": str(e)}
        )
    if isinstance(e, BankAPIError):
        # Return 503 on bank fetch failure; the session keeps its previous data
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "bank_api_error", "message": str(e)}
        )
    raise e


def _statement_response(
    session_id: str,
    session: StatementSession,
    view: StatementView,
    **extra,
) -> StatementResponse:
    return StatementResponse(
        session_id=session_id,
        provider=session.provider,
        provider_name=get_adapter(session.provider).display_name,
        transactions=[TransactionResponse.from_entity(t) for t in view.transactions],
        metrics=MetricsResponse.from_entity(view.metrics),
        pagination=PaginationResponse.from_entity(view.pagination),
        remote_pagination=PaginationResponse.from_entity(view.remote_pagination),
        filtered_count=view.filtered_count,
        **extra,
    )


@router.post("/{provider}/statement/load")
async def load_statement(
    payload: LoadRequest,
    adapter: ProviderAdapter = Depends(get_provider_adapter),
    source: TransactionSource = Depends(get_transaction_source),
    store: SessionStore = Depends(get_session_store),
    x_session_id: Optional[str] = Header(None, alias="X-Session-ID"),
    x_request_id: Optional[str] = Header(None, alias="X-Request-ID"),
) -> StatementResponse:
    """
    Full reload of the statement for a session.

    Fetches pages until `limit` records survive suppression (or the source is
    exhausted), replaces the session's collection and returns the first page
    of the filtered, sorted view with metrics. When no date bound is given the
    default period (today and the previous days) is used.
    """
    session_id = x_session_id or SessionStore.new_session_id()
    request_id = x_request_id or str(uuid.uuid4())
    srv = FetchStatementService(
        source=source,
        adapter=adapter,
        metrics_port=MetricsAdapter(),
        logging_port=LoggingAdapter(),
    )
    session = store.get_or_create(session_id, adapter.tag, account_scope=payload.account_scope)
    criteria = srv.with_default_period(payload.to_criteria())
    sort_by, sort_order = payload.sort()

    try:
        result, applied = await srv.reload(
            session,
            criteria,
            limit=payload.limit,
            account_id=payload.account_id,
            request_id=request_id,
        )
        if applied:
            session.set_view(sort_by=sort_by, sort_order=sort_order)
    except (InvalidFilterError, BankAPIError) as e:
        _raise_http(e)

    return _statement_response(
        session_id,
        session,
        session.view(page=1, page_size=payload.page_size),
        calls=result.calls,
        suppressed=result.suppressed,
        guard_exhausted=result.guard_exhausted,
        applied=applied,
    )


@router.post("/{provider}/statement/refresh")
async def refresh_statement(
    payload: RefreshRequest,
    adapter: ProviderAdapter = Depends(get_provider_adapter),
    source: TransactionSource = Depends(get_transaction_source),
    store: SessionStore = Depends(get_session_store),
    x_session_id: Optional[str] = Header(None, alias="X-Session-ID"),
    x_request_id: Optional[str] = Header(None, alias="X-Request-ID"),
) -> StatementResponse:
    """
    Incremental refresh: merge records not yet in the session (by end-to-end
    code, else timestamp and value) and re-sort by date descending.
    """
    session = _require_session(store, x_session_id, adapter)
    srv = FetchStatementService(
        source=source,
        adapter=adapter,
        metrics_port=MetricsAdapter(),
        logging_port=LoggingAdapter(),
    )

    try:
        result, added = await srv.refresh(session, account_id=payload.account_id, request_id=x_request_id)
    except (InvalidFilterError, BankAPIError) as e:
        _raise_http(e)

    return _statement_response(
        x_session_id,
        session,
        session.view(page=1, page_size=payload.page_size),
        calls=result.calls,
        suppressed=result.suppressed,
        guard_exhausted=result.guard_exhausted,
        added=added,
    )


@router.get("/{provider}/statement")
async def view_statement(
    params: Annotated[ViewParams, Query()],
    adapter: ProviderAdapter = Depends(get_provider_adapter),
    store: SessionStore = Depends(get_session_store),
    x_session_id: Optional[str] = Header(None, alias="X-Session-ID"),
) -> StatementResponse:
    """
    Re-filter and re-sort the session's collection locally. No remote call.

    Invalid criteria are rejected with 422 and the session keeps its settings.
    """
    session = _require_session(store, x_session_id, adapter)

    sort_by, sort_order = params.sort()
    try:
        session.set_view(criteria=params.to_criteria(), sort_by=sort_by, sort_order=sort_order)
    except InvalidFilterError as e:
        _raise_http(e)

    return _statement_response(x_session_id, session, session.view(page=params.page, page_size=params.page_size))


@router.post("/{provider}/statement/more")
async def load_more_statement(
    payload: LoadMoreRequest,
    adapter: ProviderAdapter = Depends(get_provider_adapter),
    source: TransactionSource = Depends(get_transaction_source),
    store: SessionStore = Depends(get_session_store),
    x_session_id: Optional[str] = Header(None, alias="X-Session-ID"),
    x_request_id: Optional[str] = Header(None, alias="X-Request-ID"),
) -> StatementResponse:
    """
    Continue the session's load from `remote_pagination.next_offset`.
    No remote call is made when the remote listing is exhausted.
    """
    session = _require_session(store, x_session_id, adapter)
    srv = FetchStatementService(
        source=source,
        adapter=adapter,
        metrics_port=MetricsAdapter(),
        logging_port=LoggingAdapter(),
    )

    try:
        result, added = await srv.load_more(
            session,
            limit=payload.limit,
            account_id=payload.account_id,
            request_id=x_request_id,
        )
    except (InvalidFilterError, BankAPIError) as e:
        _raise_http(e)

    return _statement_response(
        x_session_id,
        session,
        session.view(page=1, page_size=payload.page_size),
        calls=result.calls,
        suppressed=result.suppressed,
        guard_exhausted=result.guard_exhausted,
        added=added,
    )


@router.delete("/session")
async def drop_session(
    store: SessionStore = Depends(get_session_store),
    x_session_id: Optional[str] = Header(None, alias="X-Session-ID"),
) -> SessionDropResponse:
    """Forget every provider's statement held for the session."""
    if not x_session_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "session_not_found", "message": "X-Session-ID header is required"}
        )
    return SessionDropResponse(session_id=x_session_id, dropped=store.drop(x_session_id))


@router.post("/{provider}/sync")
async def sync_statement(
    payload: SyncRequest,
    adapter: ProviderAdapter = Depends(get_provider_adapter),
    source: TransactionSource = Depends(get_transaction_source),
    x_request_id: Optional[str] = Header(None, alias="X-Request-ID"),
) -> SyncResponse:
    """Ask the provider to re-ingest a date range. Use `dry_run` to preview."""
    srv = SyncStatementService(
        source=source,
        adapter=adapter,
        metrics_port=MetricsAdapter(),
        logging_port=LoggingAdapter(),
    )
    try:
        result = await srv.execute(
            payload.tax_document,
            payload.start_date,
            payload.end_date,
            dry_run=payload.dry_run,
            request_id=x_request_id,
        )
    except (InvalidFilterError, BankAPIError) as e:
        _raise_http(e)

    return SyncResponse(
        success=result.success,
        message=result.message,
        total_synced=result.total_synced,
        dry_run=result.dry_run,
    )


@router.post("/{provider}/transactions/verify")
async def verify_transaction(
    payload: VerifyRequest,
    adapter: ProviderAdapter = Depends(get_provider_adapter),
    source: TransactionSource = Depends(get_transaction_source),
    x_request_id: Optional[str] = Header(None, alias="X-Request-ID"),
) -> VerifyResponse:
    """
    Verify one transaction by end-to-end code. `allows_operation` is true
    only for settled statuses (success, completed, approved, confirmed).
    """
    srv = VerifyTransactionService(source=source, adapter=adapter, logging_port=LoggingAdapter())
    result = await srv.execute(payload.tax_document, payload.end_to_end, request_id=x_request_id)
    return VerifyResponse(
        found=result.found,
        message=result.message,
        allows_operation=result.allows_operation,
        status=result.status,
        transaction=result.transaction,
    )
