"""
Bank API Client using httpx for async HTTP calls.

Talks to the provider backends (CorpX, TCR/BMP 531) that own the statement
listing, sync and end-to-end verification endpoints. Every failure is
surfaced as BankAPIError; nothing here interprets transaction payloads.
"""
import time
import httpx
from typing import Any, Optional
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
)

from infrastructure.metrics.metrics import bank_request_latency_seconds
from infrastructure.logging.structlog_logs import logger
from domain.exceptions import BankAPIError


def _is_retryable(exc: BaseException) -> bool:
    """Transport problems and 5xx are worth retrying; 4xx are not."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response is not None and exc.response.status_code >= 500
    return isinstance(exc, httpx.TransportError)


class BankClient:
    """
    HTTP client for the provider bank APIs.

    Uses httpx.AsyncClient with configurable timeouts:
    - connect_timeout: 2 seconds (default)
    - read_timeout: 10 seconds (default)

    Request latency is observed in bank_request_latency_seconds.
    """

    def __init__(
        self,
        base_url: str,
        connect_timeout: float = 2.0,
        read_timeout: float = 10.0,
        api_key: str | None = None,
        sync_max_attempts: int = 3,
    ):
        """
        Initialize the bank client.

        Args:
            base_url: Base URL of the bank API (e.g., "https://api.bank.com")
            connect_timeout: Connection timeout in seconds (default: 2.0)
            read_timeout: Read timeout in seconds (default: 10.0)
            api_key: Optional bearer token for authentication
            sync_max_attempts: Attempts for the sync trigger before giving up (default: 3)
        """
        self.base_url = base_url.rstrip("/")
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.api_key = api_key
        self.sync_max_attempts = sync_max_attempts

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=connect_timeout,
                read=read_timeout,
                write=read_timeout,
                pool=connect_timeout,
            ),
            headers={
                "Accept": "application/json",
                **({"Authorization": f"Bearer {api_key}"} if api_key else {}),
            },
        )

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        params: Optional[dict[str, Any]] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> Any:
        start_time = time.time()
        try:
            response = await self._client.request(method, self._url(path), params=params, json=payload)
            response.raise_for_status()
            return response.json()
        finally:
            bank_request_latency_seconds.labels(operation=operation).observe(time.time() - start_time)

    async def _call(self, method: str, path: str, operation: str, **kwargs: Any) -> Any:
        """Perform a request and translate every failure into BankAPIError."""
        try:
            return await self._request(method, path, operation, **kwargs)
        except httpx.HTTPStatusError as e:
            raise BankAPIError(
                f"Bank API returned {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.TimeoutException as e:
            raise BankAPIError(
                f"Bank API request timed out after {self.read_timeout}s"
            ) from e
        except httpx.RequestError as e:
            raise BankAPIError(
                f"Bank API request failed: {str(e)}"
            ) from e
        except ValueError as e:
            raise BankAPIError(
                f"Bank API returned an invalid JSON body: {str(e)}"
            ) from e

    async def list_transactions(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        """
        Fetch one page from a transaction-listing endpoint.

        Args:
            path: Endpoint path (e.g. "/api/corpx/transactions")
            params: Query string parameters

        Returns:
            The decoded response body ({success, data, pagination})

        Raises:
            BankAPIError: If the API call fails or reports success=false
        """
        body = await self._call("GET", path, "list_transactions", params=params)
        if not isinstance(body, dict):
            raise BankAPIError(f"Unexpected listing payload type: {type(body).__name__}")
        if body.get("success") is False:
            raise BankAPIError(f"Bank API reported failure: {body.get('message') or body.get('error') or 'unknown'}")
        return body

    async def sync_statement(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Ask the provider to (re)ingest a date range.

        Retries with exponential backoff on network errors and 5xx responses.

        Raises:
            BankAPIError: If every attempt fails or the response is a 4xx
        """
        log = logger.bind(step="bank_sync", path=path)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.sync_max_attempts),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
                retry=retry_if_exception(_is_retryable),
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        log.warning("bank_sync_retry", attempt=attempt.retry_state.attempt_number)
                    body = await self._request("POST", path, "sync_statement", payload=payload)
        except httpx.HTTPStatusError as e:
            raise BankAPIError(
                f"Bank API returned {e.response.status_code}: {e.response.text}"
            ) from e
        except httpx.TimeoutException as e:
            raise BankAPIError(
                f"Bank API sync timed out after {self.read_timeout}s"
            ) from e
        except httpx.RequestError as e:
            raise BankAPIError(f"Bank API sync failed: {str(e)}") from e
        except ValueError:
            # Acknowledged without a JSON body
            body = {"success": True}
        return body if isinstance(body, dict) else {"success": True, "raw": body}

    async def verify_transaction(self, path: str, tax_document: str, end_to_end: str) -> dict[str, Any]:
        """
        Look up a single transaction by its end-to-end code.

        Raises:
            BankAPIError: If the API call fails
        """
        body = await self._call(
            "POST", path, "verify_transaction",
            payload={"tax_document": tax_document, "endtoend": end_to_end},
        )
        if not isinstance(body, dict):
            raise BankAPIError(f"Unexpected verification payload type: {type(body).__name__}")
        return body

    async def close(self):
        """Close the httpx client."""
        await self._client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
