import re
import time

from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

HTTP_REQUESTS = Counter(
    "selforder_http_requests_total",
    "HTTP requests served by the ordering API",
    ["method", "path", "status"],
)

HTTP_LATENCY = Histogram(
    "selforder_http_request_duration_seconds",
    "Ordering API request latency",
    ["method", "path"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

_UNMEASURED_PREFIXES = ("/metrics",)

_ORDER_ID = re.compile(r"/orders/[0-9a-f-]{36}")


def normalise_path(request: Request) -> str:
    """Label value for a request: the matched route template when known."""
    route = request.scope.get("route")
    template = getattr(route, "path_format", None) or getattr(route, "path", None)
    if template:
        return template
    return _ORDER_ID.sub("/orders/{order_id}", request.url.path)


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        if request.url.path.startswith(_UNMEASURED_PREFIXES):
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        path = normalise_path(request)

        HTTP_REQUESTS.labels(request.method, path, str(response.status_code)).inc()
        HTTP_LATENCY.labels(request.method, path).observe(time.perf_counter() - started)
        return response
