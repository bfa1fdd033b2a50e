"""
HTTP middleware for the reporting API.

``ReportRequestMiddleware`` scopes a correlation id to every request and logs
it together with the report parameters it asked for (kind, format,
granularity, window size, payment filter), so a slow or empty export can be
traced back to the exact query that produced it.

``ReportTimeoutMiddleware`` bounds request time. Exports and snapshot loads
touch every order and get the bulk timeout from ``WebConfig``.
"""
import asyncio
import re
import time
from typing import Callable, Dict, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from sales_engine.config import config
from sales_engine.observability import (
    correlation_context,
    get_correlation_id,
    get_logger,
    metrics,
)

logger = get_logger(__name__)

# Polled by dashboards and monitors; counted but not logged
QUIET_PATHS = frozenset({"/api/health", "/api/metrics", "/ws/stats"})

BULK_PATHS = frozenset({"/api/reports/export", "/api/live/snapshot"})

# Paths whose query string selects a report
REPORT_PREFIXES = ("/api/reports/", "/api/live/")
REPORT_PARAMS = ("kind", "format", "granularity", "periods", "filter")

_FILENAME = re.compile(r'filename="?([^";]+)"?')


def report_context(request: Request) -> Dict[str, str]:
    """Report parameters of a request, empty for non-report routes."""
    if not request.url.path.startswith(REPORT_PREFIXES):
        return {}
    return {name: request.query_params[name] for name in REPORT_PARAMS if name in request.query_params}


def attachment_name(response: Response) -> Optional[str]:
    match = _FILENAME.search(response.headers.get("content-disposition", ""))
    return match.group(1) if match else None


class ReportRequestMiddleware(BaseHTTPMiddleware):
    """Correlation ids, per-route counters and report-aware request logs."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        route = f"{request.method} {request.url.path}"
        quiet = request.url.path in QUIET_PATHS
        context = report_context(request)

        with correlation_context(request.headers.get("X-Request-ID")) as correlation_id:
            started = time.perf_counter()
            if not quiet:
                logger.info(f"{route} received", extra=context)

            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(f"{route} raised {type(e).__name__}", extra={**context, "error": str(e)})
                metrics.record_error(type(e).__name__)
                raise

            elapsed_ms = (time.perf_counter() - started) * 1000
            response.headers["X-Request-ID"] = correlation_id
            response.headers["X-Response-Time"] = f"{elapsed_ms:.2f}ms"

            metrics.record_request(route)
            metrics.record_timing(route, elapsed_ms)
            if response.status_code >= 400:
                metrics.record_error(f"HTTP_{response.status_code}")

            if not quiet:
                fields = {**context, "status_code": response.status_code, "duration_ms": round(elapsed_ms, 2)}
                filename = attachment_name(response)
                if filename:
                    fields["attachment"] = filename
                level = "info" if response.status_code < 400 else "warning"
                getattr(logger, level)(f"{route} -> {response.status_code}", extra=fields)

            return response


class ReportTimeoutMiddleware(BaseHTTPMiddleware):
    """Answer 504 when a request outlives its budget."""

    def timeout_for(self, path: str) -> float:
        if path in BULK_PATHS:
            return config.web.bulk_request_timeout
        return config.web.request_timeout

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in QUIET_PATHS:
            return await call_next(request)

        timeout = self.timeout_for(path)
        try:
            return await asyncio.wait_for(call_next(request), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"{request.method} {path} timed out after {timeout}s",
                extra=report_context(request),
            )
            metrics.record_error("REQUEST_TIMEOUT")
            return JSONResponse(
                status_code=504,
                content={
                    "error": "Request Timeout",
                    "detail": f"Report request exceeded {timeout}s",
                    "path": path,
                    "correlation_id": get_correlation_id(),
                },
            )
