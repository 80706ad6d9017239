from __future__ import annotations

import os
import re
from typing import Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

from workhub.context import is_valid_correlation_id
from workhub.core.config import get_settings


_configured = False
_provider: TracerProvider | None = None

SERVICE_NAMESPACE = "workhub"
_WORK_ITEM_PATH = re.compile(
    r"^/work-items/(?P<id>[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})(?:/(?P<view>children|ancestors))?/?$"
)


def work_item_id_from_path(path: str) -> str | None:
    match = _WORK_ITEM_PATH.match(path)
    if match is None:
        return None
    return match.group("id").lower()


def work_item_route_operation(method: str, path: str) -> str | None:
    """Name the work item operation a request targets, ``None`` outside ``/work-items``."""

    if path.rstrip("/") == "/work-items":
        return {"GET": "list", "POST": "create"}.get(method.upper())
    if path.rstrip("/") == "/work-items/count":
        return "count" if method.upper() == "GET" else None
    match = _WORK_ITEM_PATH.match(path)
    if match is None:
        return None
    if match.group("view"):
        return match.group("view")
    return {"GET": "get", "PATCH": "update", "DELETE": "delete"}.get(method.upper())


def _get_or_create_provider(service_name: str) -> TracerProvider:
    global _provider

    provider = _provider
    if provider is not None:
        return provider

    settings = get_settings()
    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": SERVICE_NAMESPACE,
            "service.version": os.getenv("APP_VERSION", "0.1.0"),
            "deployment.environment": settings.app_env,
            "workhub.transition_policy": settings.work_item_transition_policy,
            "workhub.max_depth": settings.work_item_max_depth,
        }
    )
    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)
    _provider = provider
    return provider


def setup_otel(service_name: str, enable: bool) -> TracerProvider | None:
    global _configured

    if not enable:
        return None

    provider = _get_or_create_provider(service_name)

    if _configured:
        return provider

    settings = get_settings()
    endpoint = settings.otel_exporter_otlp_endpoint
    if endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))

    if settings.otel_console_exporter:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    _configured = True
    return provider


def setup_inmemory_otel(service_name: str = "workhub-api") -> InMemorySpanExporter:
    provider = _get_or_create_provider(service_name)
    exporter = InMemorySpanExporter()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


def get_tracer(name: str):
    return trace.get_tracer(name)


def get_fastapi_server_request_hook():
    def server_request_hook(span, scope: dict[str, Any]) -> None:  # type: ignore[no-untyped-def]
        if span is None or not span.is_recording():
            return
        headers = dict(scope.get("headers", []))
        correlation_raw = headers.get(b"x-correlation-id")
        correlation_id = correlation_raw.decode("utf-8", errors="replace") if correlation_raw else None
        if is_valid_correlation_id(correlation_id):
            span.set_attribute("correlation_id", correlation_id)

        path = scope.get("path", "")
        operation = work_item_route_operation(scope.get("method", ""), path)
        if operation is not None:
            span.set_attribute("work_item.operation", operation)
        work_item_id = work_item_id_from_path(path)
        if work_item_id is not None:
            span.set_attribute("work_item_id", work_item_id)

    return server_request_hook
