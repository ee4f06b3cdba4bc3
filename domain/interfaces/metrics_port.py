from typing_extensions import Protocol


class MetricsPort(Protocol):
    """Protocol for metrics operations."""
    
    def increment_fetch_failure(self, provider: str) -> None:
        """
        Increment the statement_fetch_failures_total counter.
        
        Args:
            provider: Provider tag (e.g. "corpx", "tcr")
        """
        ...
    
    def increment_pages_fetched(self, provider: str) -> None:
        """
        Increment the statement_pages_fetched_total counter.
        
        Args:
            provider: Provider tag
        """
        ...

    def increment_suppressed(self, provider: str, rule: str, count: int = 1) -> None:
        """
        Increment the statement_records_suppressed_total counter.
        
        Args:
            provider: Provider tag
            rule: Name of the suppression rule that dropped the records
            count: Number of records dropped
        """
        ...

    def increment_iteration_guard(self, provider: str) -> None:
        """
        Increment the statement_iteration_guard_total counter.
        
        Args:
            provider: Provider tag
        """
        ...

    def increment_sync_request(self, provider: str, outcome: str) -> None:
        """
        Increment the statement_sync_requests_total counter.
        
        Args:
            provider: Provider tag
            outcome: One of "success", "failed" or "error"
        """
        ...
