"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


REQUEST_COUNTER = Counter(
	"vpnsearch_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"vpnsearch_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SEARCH_QUERIES = Counter(
	"vpnsearch_search_queries_total",
	"Non-empty queries evaluated against the location index",
	["partner_only"],
)

SEARCH_RESULTS = Histogram(
	"vpnsearch_search_results",
	"Number of results per category for an evaluated query",
	["category"],
	buckets=(0, 1, 2, 5, 10, 25, 50, 100, 250),
)

SEARCH_INDEX_REBUILDS = Counter(
	"vpnsearch_index_rebuilds_total",
	"Location index rebuilds from server list snapshots",
)

SEARCH_INDEX_SKIPPED = Counter(
	"vpnsearch_index_skipped_records_total",
	"Malformed server records excluded from the location index",
	["reason"],
)

RECENTS_COMMITS = Counter(
	"vpnsearch_recents_commits_total",
	"Queries committed to recents",
	["source", "result"],
)

RECENTS_STORAGE_FAILURES = Counter(
	"vpnsearch_recents_storage_failures_total",
	"Recents backend failures swallowed by the store",
	["operation"],
)

PARTNERSHIPS_REFRESH = Counter(
	"vpnsearch_partnerships_refresh_total",
	"Partnership snapshot refresh attempts",
	["result"],
)

SEARCH_SESSIONS = Counter(
	"vpnsearch_search_sessions_total",
	"Search engine sessions opened, closed and expired",
	["event"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_search_query(*, partner_only: bool) -> None:
	SEARCH_QUERIES.labels(partner_only="true" if partner_only else "false").inc()


def observe_search_results(countries: int, cities: int, servers: int) -> None:
	SEARCH_RESULTS.labels(category="countries").observe(countries)
	SEARCH_RESULTS.labels(category="cities").observe(cities)
	SEARCH_RESULTS.labels(category="servers").observe(servers)


def inc_index_rebuild() -> None:
	SEARCH_INDEX_REBUILDS.inc()


def inc_index_skipped(reason: str) -> None:
	SEARCH_INDEX_SKIPPED.labels(reason=reason).inc()


def inc_recents_commit(source: str, result: str) -> None:
	RECENTS_COMMITS.labels(source=source, result=result).inc()


def inc_recents_storage_failure(operation: str) -> None:
	RECENTS_STORAGE_FAILURES.labels(operation=operation).inc()


def inc_partnerships_refresh(result: str) -> None:
	PARTNERSHIPS_REFRESH.labels(result=result).inc()


def inc_search_session(event: str) -> None:
	SEARCH_SESSIONS.labels(event=event).inc()
