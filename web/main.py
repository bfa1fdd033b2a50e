"""
FastAPI web application for the sales and profit dashboard.
"""
import os
from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse, JSONResponse
from starlette.middleware.gzip import GZipMiddleware

from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from sales_engine.config import validate_config, ConfigurationError
from sales_engine.exceptions import SalesEngineError, ValidationError
from sales_engine.events import events, AnalyticsEvent
from sales_engine.observability import setup_logging, get_logger
from web.config import VERSION, SALES_ROOM
from web.routes import api, websocket
from web.routes.api._deps import limiter
from web.middleware import ReportRequestMiddleware, ReportTimeoutMiddleware

# Configure structured logging
# Use JSON format in production (LOG_FORMAT=json), human-readable otherwise
log_format = os.getenv("LOG_FORMAT", "text")
log_level = os.getenv("LOG_LEVEL", "INFO")
setup_logging(level=log_level, json_format=(log_format == "json"))
logger = get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Hardware Store Sales Dashboard",
    description="Sales, profit and payroll reporting",
    version=VERSION,
    default_response_class=ORJSONResponse
)

# Add rate limiter to app state
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)}")
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "detail": "Too many requests. Please try again later.",
            "retry_after": exc.detail
        }
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": "Invalid parameter", "detail": str(exc)})


@app.exception_handler(SalesEngineError)
async def engine_error_handler(request: Request, exc: SalesEngineError):
    logger.warning(f"Engine error on {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"error": exc.message, "detail": exc.details})


# Timeout runs inside the request middleware so a 504 carries the correlation id
app.add_middleware(ReportTimeoutMiddleware)
app.add_middleware(ReportRequestMiddleware)

# Add Gzip compression (min 500 bytes to compress)
app.add_middleware(GZipMiddleware, minimum_size=500)

# Include routers
app.include_router(api.router, prefix="/api")
app.include_router(websocket.router)  # WebSocket routes (no /api prefix)

_handlers_registered = False


@app.on_event("startup")
async def startup_event():
    logger.info("Sales dashboard starting...")

    # Validate configuration early - fail fast with clear errors
    try:
        validate_config()
        logger.info("Configuration validated")
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        raise SystemExit(1)

    _register_event_handlers()
    logger.info("Dashboard ready")


def _register_event_handlers():
    """Register handlers that push live sales to WebSocket clients."""
    global _handlers_registered
    if _handlers_registered:
        return
    _handlers_registered = True

    from sales_engine.websocket_manager import manager as ws_manager, WebSocketEvent
    from web.services.analytics_service import get_analytics_service

    @events.on(AnalyticsEvent.SALE_INGESTED)
    async def on_sale_ingested(data: dict):
        """Broadcast the new sale with refreshed aggregates."""
        summary = get_analytics_service().live_summary()
        await ws_manager.broadcast(
            SALES_ROOM,
            WebSocketEvent.SALE_INGESTED,
            {"sale": data, **summary},
        )

    @events.on(AnalyticsEvent.SNAPSHOT_LOADED)
    async def on_snapshot_loaded(data: dict):
        await ws_manager.broadcast(SALES_ROOM, WebSocketEvent.SNAPSHOT_LOADED, data)

    @events.on(AnalyticsEvent.REPORT_EXPORTED)
    async def on_report_exported(data: dict):
        logger.debug(f"Report exported: {data.get('kind')} ({data.get('rowCount')} rows)")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Sales dashboard stopped")
