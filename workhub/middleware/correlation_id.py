from __future__ import annotations

import logging
import uuid

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from workhub.context import is_valid_correlation_id, reset_correlation_id, set_correlation_id
from workhub.otel import work_item_id_from_path


logger = logging.getLogger("workhub.request")

CORRELATION_HEADER = "x-correlation-id"


def resolve_correlation_id(raw: str | None) -> str:
    """Caller-supplied id when it is safe to log and echo, a fresh uuid otherwise."""

    if raw is not None and is_valid_correlation_id(raw):
        return raw
    if raw:
        logger.warning("correlation_id.rejected", extra={"error": "malformed correlation id header"})
    return str(uuid.uuid4())


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = resolve_correlation_id(request.headers.get(CORRELATION_HEADER))
        request.state.correlation_id = correlation_id
        token = set_correlation_id(correlation_id)

        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("correlation_id", correlation_id)
            work_item_id = work_item_id_from_path(request.url.path)
            if work_item_id is not None:
                span.set_attribute("work_item_id", work_item_id)

        try:
            response = await call_next(request)
        finally:
            reset_correlation_id(token)

        response.headers[CORRELATION_HEADER] = correlation_id
        return response
