"""Health check and metrics endpoints."""
import time

from fastapi import APIRouter, Request

from sales_engine.observability import get_correlation_id, metrics
from sales_engine.websocket_manager import manager as ws_manager
from web.config import VERSION
from web.schemas import HealthResponse, MetricsResponse
from ._deps import limiter, get_logger, get_analytics_service, START_TIME

router = APIRouter()
logger = get_logger(__name__)

RECENT_EVENTS = 10


@router.get("/health", response_model=HealthResponse)
@limiter.limit("60/minute")
async def health_check(request: Request):
    """Health check endpoint for Docker/load balancer monitoring."""
    uptime_seconds = int(time.time() - START_TIME)
    order_stats = get_analytics_service().live_orders.stats()

    return {
        "status": "healthy" if order_stats["snapshotLoaded"] else "degraded",
        "version": VERSION,
        "uptime_seconds": uptime_seconds,
        "correlation_id": get_correlation_id(),
        "orders": order_stats,
        "websocket": {
            "active_connections": ws_manager.connection_count(),
            "total_messages_sent": ws_manager.total_messages_sent,
        },
    }


@router.get("/metrics", response_model=MetricsResponse)
@limiter.limit("30/minute")
async def get_metrics(request: Request):
    """Request counts, errors, operation timings, exports and recent events."""
    bus = get_analytics_service().bus
    return {
        **metrics.get_stats(),
        "events": {
            "handlers": bus.get_handlers(),
            "recent": bus.get_history(limit=RECENT_EVENTS),
        },
    }
