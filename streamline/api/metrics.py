import time

from fastapi import APIRouter, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

router = APIRouter()


def create_request_histogram(registry: CollectorRegistry) -> Histogram:
    return Histogram(
        "streamline_http_request_duration_seconds",
        "Request latency per (method, route, status)",
        ["method", "route", "status"],
        registry=registry,
    )


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """Observe every request in a latency histogram labelled by route template."""

    def __init__(self, app: ASGIApp, histogram: Histogram) -> None:
        super().__init__(app)
        self.histogram = histogram

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        route = request.scope.get("route")
        self.histogram.labels(
            method=request.method,
            route=getattr(route, "path", "unmatched"),
            status=str(response.status_code),
        ).observe(time.perf_counter() - start)
        return response


@router.get("/metrics")
def metrics(request: Request):
    registry: CollectorRegistry = getattr(request.app.state, "metrics_registry", None)
    if not registry:
        return Response(content=b"", media_type=CONTENT_TYPE_LATEST)
    return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)
