"""Prometheus metrics for capture, pipeline and the control API."""

from __future__ import annotations

import time
from typing import Callable

from fastapi import APIRouter, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

CHUNKS_FINALIZED = Counter(
    "livecaption_chunks_finalized_total",
    "Audio chunks finalized by the capturer",
    labelnames=("reason",),
)

PIPELINE_JOBS = Counter(
    "livecaption_pipeline_jobs_total",
    "Pipeline jobs by outcome",
    labelnames=("outcome",),
)

PROVIDER_LATENCY = Histogram(
    "livecaption_provider_latency_seconds",
    "Latency of external transcribe/translate calls",
    labelnames=("operation",),
)

QUEUE_DEPTH = Gauge(
    "livecaption_pipeline_queue_depth",
    "Jobs waiting in or being processed by the pipeline",
)

REQUEST_COUNTER = Counter(
    "livecaption_api_requests_total",
    "Total API requests",
    labelnames=("path", "method", "status"),
)

REQUEST_LATENCY = Histogram(
    "livecaption_api_request_latency_seconds",
    "API request latency",
    labelnames=("path", "method"),
)

router = APIRouter()


@router.get("/metrics")
async def metrics_endpoint() -> Response:
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


def instrument_app(app):
    @app.middleware("http")
    async def prometheus_middleware(request, call_next: Callable):  # type: ignore
        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        method = request.method
        REQUEST_COUNTER.labels(path=path, method=method, status=response.status_code).inc()
        REQUEST_LATENCY.labels(path=path, method=method).observe(duration)
        return response

    return app
