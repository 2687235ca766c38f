"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


REQUEST_COUNTER = Counter(
	"reportdesk_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"reportdesk_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

MOD_REPORTS_FILED_TOTAL = Counter(
	"mod_reports_filed_total",
	"Report filings processed, by resource type and outcome",
	["resource_type", "outcome"],
)

MOD_REPORT_FILE_SECONDS = Histogram(
	"mod_report_file_duration_seconds",
	"Time spent creating or appending to a report",
	buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

MOD_REPORT_LIST_LATENCY_MS = Histogram(
	"mod_report_list_latency_ms",
	"Report listing latency (milliseconds)",
	buckets=(5.0, 10.0, 25.0, 50.0, 100.0, 250.0, 500.0, 1000.0),
)

MOD_REPORT_STREAM_FAILURES_TOTAL = Counter(
	"mod_report_stream_publish_failures_total",
	"Report events that could not be appended to the report stream",
)

MOD_ACCESS_DENIED_TOTAL = Counter(
	"mod_access_denied_total",
	"Moderation requests rejected by the access gate",
	["operation"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def report_filed(resource_type: str, outcome: str) -> None:
	MOD_REPORTS_FILED_TOTAL.labels(resource_type=resource_type, outcome=outcome).inc()


def access_denied(operation: str) -> None:
	MOD_ACCESS_DENIED_TOTAL.labels(operation=operation).inc()
