"""Sales analytics endpoints: period sales, product sales, profit, payment split, daily products."""
from fastapi import APIRouter, Request

from web.schemas import (
    SalesRequest,
    SalesResponse,
    ProductSalesRequest,
    ProductSalesResponse,
    ProfitRequest,
    ProfitResponse,
    PaymentBreakdownRequest,
    PaymentBreakdownResponse,
    DailyProductsRequest,
    DailyProductsResponse,
)
from ._deps import (
    limiter, DEFAULT_LIMIT, get_logger, bad_request, get_analytics_service,
    validate_granularity, validate_filter, validate_periods, validate_report_date,
    validate_product_key,
    ValidationError,
)

router = APIRouter(prefix="/analytics", tags=["analytics"])
logger = get_logger(__name__)


@router.post("/sales", response_model=SalesResponse)
@limiter.limit(DEFAULT_LIMIT)
async def get_sales(request: Request, body: SalesRequest):
    """Sales and units per week or month over the trailing window."""
    try:
        granularity = validate_granularity(body.granularity)
        periods = validate_periods(body.periods, granularity)
        sales_filter = validate_filter(body.filter)
    except ValidationError as ex:
        raise bad_request(ex)

    service = get_analytics_service()
    return service.sales_report(granularity, periods, sales_filter, body.orders)


@router.post("/product-sales", response_model=ProductSalesResponse)
@limiter.limit(DEFAULT_LIMIT)
async def get_product_sales(request: Request, body: ProductSalesRequest):
    """Sales of one product per week or month over the trailing window."""
    try:
        product_key = validate_product_key(body.productKey)
        granularity = validate_granularity(body.granularity)
        periods = validate_periods(body.periods, granularity)
        sales_filter = validate_filter(body.filter)
    except ValidationError as ex:
        raise bad_request(ex)

    service = get_analytics_service()
    return service.product_sales_report(
        product_key, granularity, periods, sales_filter, body.orders
    )


@router.post("/profit", response_model=ProfitResponse)
@limiter.limit(DEFAULT_LIMIT)
async def get_profit(request: Request, body: ProfitRequest):
    """Daily/weekly/monthly/total profit, overall and per product."""
    try:
        sales_filter = validate_filter(body.filter)
    except ValidationError as ex:
        raise bad_request(ex)

    service = get_analytics_service()
    return service.profit_report(
        sales_filter,
        orders=body.orders,
        products=body.products,
        supplier_products=body.supplierProducts,
        product_key=body.productKey,
    )


@router.post("/payment-breakdown", response_model=PaymentBreakdownResponse)
@limiter.limit(DEFAULT_LIMIT)
async def get_payment_breakdown(request: Request, body: PaymentBreakdownRequest):
    """Online vs pay-at-shop revenue split."""
    return get_analytics_service().payment_report(body.orders)


@router.post("/daily-products", response_model=DailyProductsResponse)
@limiter.limit(DEFAULT_LIMIT)
async def get_daily_products(request: Request, body: DailyProductsRequest):
    """Per-product sales for one day."""
    service = get_analytics_service()
    try:
        day = validate_report_date(body.date, clock=service.clock)
        sales_filter = validate_filter(body.filter)
    except ValidationError as ex:
        raise bad_request(ex)

    return service.daily_products_report(day, sales_filter, body.orders)
