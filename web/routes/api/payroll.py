"""Payroll projection endpoints."""
from fastapi import APIRouter, Request

from web.schemas import PayrollRequest, PayrollResponse
from ._deps import (
    limiter, DEFAULT_LIMIT, get_logger, bad_request, get_analytics_service,
    validate_role, ValidationError,
)

router = APIRouter(prefix="/payroll", tags=["payroll"])
logger = get_logger(__name__)


@router.post("", response_model=PayrollResponse)
@limiter.limit(DEFAULT_LIMIT)
async def project_payroll(request: Request, body: PayrollRequest):
    """
    Project pay from an attendance summary.

    Overrides in the body are merged into the session overrides and stay
    in effect for later projections until reset.
    """
    try:
        role = validate_role(body.role)
    except ValidationError as ex:
        raise bad_request(ex)

    service = get_analytics_service()
    return service.payroll_report(body.attendance, role, body.overrides)


@router.delete("/overrides")
@limiter.limit(DEFAULT_LIMIT)
async def reset_overrides(request: Request, user_id: str = None):
    """Clear one employee's salary overrides, or all of them."""
    service = get_analytics_service()
    service.overrides.reset(user_id)
    logger.info(f"Salary overrides reset for {user_id or 'all employees'}")
    return {"reset": user_id or "all", "overrides": service.overrides.as_mapping()}
