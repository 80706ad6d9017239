from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry.trace import Span, Status, StatusCode
from sqlalchemy.orm import Session

from workhub import audit
from workhub.errors import ServiceError
from workhub.metrics import observe_work_item_operation
from workhub.otel import get_tracer
from workhub.platform.security.context import AuthContext


logger = logging.getLogger("workhub.work_items")
tracer = get_tracer("workhub.work_items")


@contextmanager
def track_operation(
    session: Session,
    ctx: AuthContext,
    operation: str,
    *,
    rbac_scope: str,
    **context: Any,
) -> Iterator[Span]:
    """Wrap one work item operation in a span, a duration metric and failure handling.

    Any exception rolls the session back, is logged with the operation context,
    is recorded as a ``work_item.<operation>.failed`` audit entry and is
    re-raised unchanged.
    """

    started = time.perf_counter()
    fields = {key: str(value) if value is not None else None for key, value in context.items()}

    with tracer.start_as_current_span(
        f"work_items.{operation}",
        record_exception=False,
        set_status_on_exception=False,
    ) as span:
        span.set_attribute("operation", operation)
        span.set_attribute("user_id", str(ctx.user_id))
        span.set_attribute("rbac_scope", rbac_scope)
        if ctx.correlation_id:
            span.set_attribute("correlation_id", ctx.correlation_id)
        for key, value in fields.items():
            if value is not None:
                span.set_attribute(key, value)

        try:
            yield span
        except Exception as exc:
            session.rollback()
            duration = time.perf_counter() - started
            observe_work_item_operation(operation, "error", duration)
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, str(exc)))

            extra = {
                "operation": operation,
                "user_id": str(ctx.user_id),
                "rbac_scope": rbac_scope,
                "duration_ms": round(duration * 1000, 2),
                "error": str(exc)[:500],
                **{key: value for key, value in fields.items() if value is not None},
            }
            if isinstance(exc, ServiceError):
                logger.warning(f"work_items.{operation}.failed", extra=extra)
            else:
                logger.error(f"work_items.{operation}.failed", exc_info=True, extra=extra)

            audit.record(
                actor_user_id=str(ctx.user_id),
                entity_type="work_item",
                entity_id=fields.get("work_item_id") or "-",
                action=f"work_item.{operation}.failed",
                before=None,
                after={"error": str(exc)[:500], "error_type": type(exc).__name__, **fields},
                correlation_id=ctx.correlation_id,
            )
            raise

        observe_work_item_operation(operation, "success", time.perf_counter() - started)


def elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
