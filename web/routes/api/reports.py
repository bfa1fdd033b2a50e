"""Report export endpoints: CSV and printable HTML."""
from fastapi import APIRouter, Query, Request
from fastapi.responses import Response

from web.schemas import ExportRequest
from ._deps import (
    limiter, EXPORT_LIMIT, get_logger, bad_request, get_analytics_service,
    validate_export_kind, validate_export_format, validate_filter,
    validate_granularity, validate_periods, validate_role,
    ValidationError, ExportError,
)

router = APIRouter(prefix="/reports", tags=["reports"])
logger = get_logger(__name__)


@router.post("/export")
@limiter.limit(EXPORT_LIMIT)
async def export_report(
    request: Request,
    body: ExportRequest,
    kind: str = Query(..., description="sales, profit, payroll or attendance"),
    format: str = Query("csv", description="csv or html"),
):
    """
    Export a report as a CSV file or a printable HTML document.

    An empty report returns 200 with a "Nothing to export" message
    instead of a file.
    """
    try:
        kind = validate_export_kind(kind)
        fmt = validate_export_format(format)
        sales_filter = validate_filter(body.filter)
        granularity = validate_granularity(body.granularity)
        periods = validate_periods(body.periods, granularity)
        role = validate_role(body.role)
    except ValidationError as ex:
        raise bad_request(ex)

    params = {
        "orders": body.orders,
        "products": body.products,
        "supplierProducts": body.supplierProducts,
        "filter": sales_filter,
        "granularity": granularity,
        "periods": periods,
        "attendance": body.attendance,
        "role": role,
    }

    service = get_analytics_service()
    try:
        result = await service.export_report(kind, fmt, params, body.metadata)
    except ExportError as ex:
        raise bad_request(ex)

    if result.is_empty:
        return result.to_dict()

    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={"Content-Disposition": f"attachment; filename={result.filename}"},
    )
