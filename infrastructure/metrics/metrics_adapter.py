"""
Metrics adapter that implements MetricsPort protocol.

This adapter wraps the Prometheus metrics to provide a clean interface
for the application layer.
"""
from infrastructure.metrics.metrics import (
    statement_fetch_failures_total,
    statement_pages_fetched,
    statement_records_suppressed,
    statement_iteration_guard,
    statement_sync_requests,
)


class MetricsAdapter:
    """
    Adapter that implements MetricsPort for emitting metrics.
    
    Every counter is labelled by provider so CorpX and TCR can be told apart
    on the /metrics endpoint.
    """
    
    def increment_fetch_failure(self, provider: str) -> None:
        statement_fetch_failures_total.labels(provider=provider).inc()
    
    def increment_pages_fetched(self, provider: str) -> None:
        statement_pages_fetched.labels(provider=provider).inc()

    def increment_suppressed(self, provider: str, rule: str, count: int = 1) -> None:
        """
        Increment the statement_records_suppressed counter.
        
        Args:
            provider: Provider tag
            rule: Suppression rule name
            count: Number of records dropped by the rule
        """
        if count > 0:
            statement_records_suppressed.labels(provider=provider, rule=rule).inc(count)

    def increment_iteration_guard(self, provider: str) -> None:
        statement_iteration_guard.labels(provider=provider).inc()

    def increment_sync_request(self, provider: str, outcome: str) -> None:
        statement_sync_requests.labels(provider=provider, outcome=outcome).inc()
