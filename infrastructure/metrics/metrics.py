# infrastructure/metrics/metrics.py
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

statement_fetch_failures_total = Counter(
    "statement_fetch_failures_total",
    "Remote statement fetch failures",
    ["provider"]
)

statement_pages_fetched = Counter(
    "statement_pages_fetched",
    "Statement pages fetched from the remote listing endpoint",
    ["provider"]
)

statement_records_suppressed = Counter(
    "statement_records_suppressed",
    "Records dropped by suppression rules",
    ["provider", "rule"]  # decoy_deposit|foreign_beneficiary|account_scope|internal_fee
)

statement_iteration_guard = Counter(
    "statement_iteration_guard",
    "Paginated loads stopped by the iteration guard",
    ["provider"]
)

statement_sync_requests = Counter(
    "statement_sync_requests",
    "Statement sync triggers",
    ["provider", "outcome"]  # success|failed|error
)

bank_request_latency_seconds = Histogram(
    "bank_request_latency_seconds",
    "Bank API request latency in seconds",
    ["operation"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10]
)


def metrics_endpoint():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
