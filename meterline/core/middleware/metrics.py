from starlette.middleware.base import BaseHTTPMiddleware

from meterline.core.metrics import http_requests_total, normalize_path


def route_label(request) -> str:
    """Matched route template when routing succeeded, else the id-collapsed path."""
    route = request.scope.get("route")
    template = getattr(route, "path", None)
    return template or normalize_path(request.url.path)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Count every served request by method, route and status."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        http_requests_total.inc(labels={
            "method": request.method,
            "path": route_label(request),
            "status": str(response.status_code),
        })
        return response
