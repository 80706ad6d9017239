from __future__ import annotations

import logging
import time
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from workhub.metrics import observe_http_request, resolve_http_path_label
from workhub.otel import work_item_id_from_path, work_item_route_operation


logger = logging.getLogger("workhub.request")


def _request_fields(request: Request, status_code: int, duration_ms: float) -> dict[str, Any]:
    raw_path = request.url.path
    fields: dict[str, Any] = {
        "method": request.method,
        # route template, only resolved once the router has run
        "path": resolve_http_path_label(request),
        "status_code": status_code,
        "duration_ms": duration_ms,
    }
    operation = work_item_route_operation(request.method, raw_path)
    if operation is not None:
        fields["operation"] = operation
    work_item_id = work_item_id_from_path(raw_path)
    if work_item_id is not None:
        fields["work_item_id"] = work_item_id
    return fields


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            fields = _request_fields(request, 500, round((time.perf_counter() - started) * 1000, 2))
            observe_http_request(method=request.method, path=fields["path"], status=500, duration=fields["duration_ms"] / 1000)
            logger.error("http.error", exc_info=True, extra=fields)
            raise

        fields = _request_fields(request, response.status_code, round((time.perf_counter() - started) * 1000, 2))
        observe_http_request(
            method=request.method,
            path=fields["path"],
            status=response.status_code,
            duration=fields["duration_ms"] / 1000,
        )
        logger.info("http.request", extra=fields)
        return response
