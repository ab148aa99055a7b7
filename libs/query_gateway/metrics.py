"""Prometheus metrics for the query gateway."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

query_gateway_requests_total = Counter(
    "query_gateway_requests_total",
    "Gateway calls by final status",
    ["status"],
)

query_gateway_validation_path_total = Counter(
    "query_gateway_validation_path_total",
    "Validation verdicts by path (parser or keyword fallback)",
    ["path"],
)

query_gateway_execution_seconds = Histogram(
    "query_gateway_execution_seconds",
    "Analytical query execution latency",
    buckets=[0.05, 0.1, 0.5, 1, 5, 10, 30, 60],
)

rate_limit_checks_total = Counter(
    "rate_limit_checks_total",
    "Total fixed-window rate limit checks",
    ["prefix", "result"],
)

rate_limit_store_errors_total = Counter(
    "rate_limit_store_errors_total",
    "Counter store errors during rate limit checks",
    ["prefix"],
)


__all__ = [
    "query_gateway_requests_total",
    "query_gateway_validation_path_total",
    "query_gateway_execution_seconds",
    "rate_limit_checks_total",
    "rate_limit_store_errors_total",
]
