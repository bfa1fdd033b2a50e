"""Shared dependencies for API route modules."""
import logging
import time

from fastapi import HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address

from sales_engine.config import config
from sales_engine.exceptions import ExportError, ValidationError
from sales_engine.validators import (
    validate_granularity,
    validate_filter,
    validate_periods,
    validate_product_key,
    validate_report_date,
    validate_role,
    validate_export_format,
    validate_export_kind,
)
from web.services.analytics_service import get_analytics_service

# Shared limiter instance
limiter = Limiter(key_func=get_remote_address)

DEFAULT_LIMIT = f"{config.web.rate_limit_per_minute}/minute"
EXPORT_LIMIT = f"{config.web.export_rate_limit_per_minute}/minute"

# Shared logger factory
def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def bad_request(error: Exception) -> HTTPException:
    """Map a validation/export error to HTTP 400."""
    return HTTPException(status_code=400, detail=str(error))

# Track startup time for uptime calculation
START_TIME = time.time()
