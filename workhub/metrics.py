from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

work_item_operations_total = Counter(
    "work_item_operations_total",
    "Total work item operations by outcome",
    ["operation", "outcome"],
)

work_item_operation_duration_seconds = Histogram(
    "work_item_operation_duration_seconds",
    "Work item operation duration in seconds",
    ["operation"],
)

work_item_slow_queries_total = Counter(
    "work_item_slow_queries_total",
    "Work item queries exceeding the slow query threshold",
    ["operation"],
)

scope_denied_reads_count = Counter(
    "scope_denied_reads_count",
    "Total reads denied by scope checks",
    ["resource", "scope_type"],
)

scope_denied_writes_count = Counter(
    "scope_denied_writes_count",
    "Total writes denied by scope checks",
    ["resource", "scope_type"],
)

work_item_transition_blocks_total = Counter(
    "work_item_transition_blocks_total",
    "Status transitions blocked by reason",
    ["reason"],
)

work_item_completion_blocks_total = Counter(
    "work_item_completion_blocks_total",
    "Completions blocked by missing required fields",
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_INT_RE = re.compile(r"/\d+\b")
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def _normalize_route_template(path: str) -> str:
    return _PATH_PARAM_RE.sub("{id}", path)


def _sanitize_path(path: str) -> str:
    without_uuids = _UUID_RE.sub("{id}", path)
    return _INT_RE.sub("/{id}", without_uuids)


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        path_format = getattr(route, "path_format", None)
        if isinstance(path_format, str) and path_format:
            return _normalize_route_template(path_format)
        route_path = getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _normalize_route_template(route_path)
    return _sanitize_path(request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    status_str = str(status)
    http_requests_total.labels(method=method, path=path, status=status_str).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_work_item_operation(operation: str, outcome: str, duration: float) -> None:
    work_item_operations_total.labels(operation=operation, outcome=outcome).inc()
    work_item_operation_duration_seconds.labels(operation=operation).observe(duration)


def observe_slow_query(operation: str) -> None:
    work_item_slow_queries_total.labels(operation=operation).inc()


def observe_scope_denied_read(resource: str, scope_type: str) -> None:
    scope_denied_reads_count.labels(resource=resource, scope_type=scope_type).inc()


def observe_scope_denied_write(resource: str, scope_type: str) -> None:
    scope_denied_writes_count.labels(resource=resource, scope_type=scope_type).inc()


def observe_transition_block(reason: str) -> None:
    work_item_transition_blocks_total.labels(reason=reason).inc()


def observe_completion_block() -> None:
    work_item_completion_blocks_total.inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
