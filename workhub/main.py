import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from workhub.api.routes import router as api_router
from workhub.core.config import get_settings
from workhub.logging import configure_logging
from workhub.middleware.correlation_id import CorrelationIdMiddleware
from workhub.middleware.request_logging import RequestLoggingMiddleware
from workhub.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("workhub.lifecycle")

app = FastAPI(title="Workhub API", version="0.1.0")
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)

settings = get_settings()
if settings.otel_enabled:
    setup_otel("workhub-api", True)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())

logger.info("app.started", extra={"component": settings.app_name})
