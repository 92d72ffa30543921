"""Observability module for logging, metrics, and error tracking."""

import logging
import json
import sys
import time
from typing import Any, Dict
from datetime import datetime, timezone
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import FastAPI, Request, Response

from .config import Settings

# Prometheus metrics
http_requests_total = Counter(
    'smartcity_http_requests_total',
    'Total number of HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration_seconds = Histogram(
    'smartcity_http_request_duration_seconds',
    'Duration of HTTP requests in seconds',
    ['method', 'endpoint']
)

case_transitions_total = Counter(
    'smartcity_case_transitions_total',
    'Number of case status changes, by target status',
    ['status']
)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(settings: Settings) -> None:
    """Configure structured JSON logging on stdout."""
    root = logging.getLogger()
    if not any(isinstance(h.formatter, JSONFormatter) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
        root.addHandler(handler)
    root.setLevel(logging.INFO)

    logger = logging.getLogger("smartcity")
    logger.setLevel(settings.log_level)
    logger.info("Structured JSON logging configured")


def init_sentry(settings: Settings) -> None:
    """Initialize Sentry error tracking when a DSN is configured."""
    if not settings.sentry_dsn:
        logging.getLogger("smartcity").info("Sentry DSN not configured, skipping initialization")
        return

    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
    )
    logging.getLogger("smartcity").info("Sentry initialized successfully")


def _route_template(request: Request) -> str:
    # Label by route pattern (/api/v1/cases/{case_id}), not the concrete path
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


def setup_metrics_middleware(app: FastAPI) -> None:
    """Add Prometheus metrics middleware to FastAPI app."""
    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start_time = time.time()

        response = await call_next(request)

        duration = time.time() - start_time
        endpoint = _route_template(request)
        method = request.method

        http_requests_total.labels(method=method, endpoint=endpoint, status=response.status_code).inc()
        http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)

        return response


def metrics_response() -> Response:
    """Prometheus metrics exposition."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


def get_health_check() -> Dict[str, Any]:
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
