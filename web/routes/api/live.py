"""Live sales endpoints: snapshot merge, pushed sale events, working-set sales."""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Query, Request

from web.schemas import SnapshotRequest, SnapshotResponse, IngestResponse, SalesResponse
from ._deps import (
    limiter, DEFAULT_LIMIT, get_logger, bad_request, get_analytics_service,
    validate_granularity, validate_filter, validate_periods,
    ValidationError,
)

router = APIRouter(prefix="/live", tags=["live"])
logger = get_logger(__name__)


@router.post("/snapshot", response_model=SnapshotResponse)
@limiter.limit(DEFAULT_LIMIT)
async def load_snapshot(request: Request, body: SnapshotRequest):
    """Merge a fetched order snapshot (and optionally the product catalog)."""
    service = get_analytics_service()

    catalog = None
    if body.products is not None or body.supplierProducts is not None:
        catalog = service.load_catalog(body.products, body.supplierProducts)

    added = await service.live_orders.load_snapshot_and_publish(body.orders)
    return {"added": added, **service.live_orders.stats(), "catalog": catalog}


@router.post("/events", response_model=IngestResponse)
@limiter.limit(DEFAULT_LIMIT)
async def ingest_event(request: Request, payload: Dict[str, Any] = Body(...)):
    """Ingest one sale-confirmed event."""
    service = get_analytics_service()
    result = await service.live_orders.ingest_and_publish(payload)
    return result.to_dict()


@router.get("/sales", response_model=SalesResponse)
@limiter.limit(DEFAULT_LIMIT)
async def get_live_sales(
    request: Request,
    granularity: str = Query("weekly"),
    periods: Optional[int] = Query(None),
    filter: Optional[str] = Query("all"),
):
    """Sales aggregates over the working order set."""
    try:
        granularity = validate_granularity(granularity)
        periods = validate_periods(periods, granularity)
        sales_filter = validate_filter(filter)
    except ValidationError as ex:
        raise bad_request(ex)

    return get_analytics_service().sales_report(granularity, periods, sales_filter)
