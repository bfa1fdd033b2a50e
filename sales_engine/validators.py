"""
Input validation functions for report parameters.

All validators raise ValidationError on invalid input.
"""

from datetime import date, datetime
from typing import Optional

from sales_engine.calendar_keys import Clock, Granularity, resolve_now
from sales_engine.config import config
from sales_engine.exceptions import ValidationError
from sales_engine.export import EXPORT_FORMATS, EXPORT_KINDS
from sales_engine.models import SalesFilter


MAX_ROLE_LENGTH = 100
MAX_PRODUCT_KEY_LENGTH = 200


def validate_granularity(value: Optional[str], field: str = "granularity") -> Granularity:
    """
    Validate a bucket granularity ('weekly' or 'monthly').

    Raises:
        ValidationError: If the value is not a known granularity
    """
    if isinstance(value, Granularity):
        return value
    try:
        return Granularity(str(value or "").strip().lower())
    except ValueError:
        raise ValidationError(
            field,
            f"Must be one of {[g.value for g in Granularity]}",
            value
        )


def validate_filter(value: Optional[str], field: str = "filter") -> SalesFilter:
    """Validate a payment filter; None means all payments."""
    if value is None or value == "":
        return SalesFilter.ALL
    if isinstance(value, SalesFilter):
        return value
    try:
        return SalesFilter(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            field,
            f"Must be one of {[f.value for f in SalesFilter]}",
            value
        )


def validate_periods(
    value: Optional[int],
    granularity: Granularity,
    field: str = "periods",
    max_value: Optional[int] = None
) -> int:
    """
    Validate the number of trailing periods to report.

    Args:
        value: Requested period count, None for the granularity default
        granularity: Bucket granularity the default depends on
        field: Field name for error messages
        max_value: Upper bound (default: configured maximum)

    Returns:
        Validated period count

    Raises:
        ValidationError: If the count is not an integer in range
    """
    if value is None:
        if Granularity(granularity) == Granularity.WEEKLY:
            return config.reports.default_weeks
        return config.reports.default_months

    max_value = max_value or config.reports.max_periods
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, "Must be an integer", value)
    if value < 1:
        raise ValidationError(field, "Must be at least 1", value)
    if value > max_value:
        raise ValidationError(field, f"Cannot exceed {max_value}", value)
    return value


def validate_date_string(
    value: str,
    field: str = "date",
    format: str = "%Y-%m-%d"
) -> date:
    """
    Validate and parse a date string.

    Raises:
        ValidationError: If date is invalid or in wrong format
    """
    if not value:
        raise ValidationError(field, "Date is required", value)

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    try:
        return datetime.strptime(value, format).date()
    except ValueError:
        raise ValidationError(
            field,
            f"Invalid date format. Expected {format}",
            value
        )


def validate_report_date(
    value: Optional[str],
    field: str = "date",
    clock: Optional[Clock] = None
) -> date:
    """
    Validate the day for a daily product report.

    None means today (local time). Future dates are rejected.
    """
    today = resolve_now(clock).date()
    if value is None or value == "":
        return today

    day = validate_date_string(value, field)
    if day > today:
        raise ValidationError(field, "Date cannot be in the future", value)
    return day


def validate_role(value: Optional[str], field: str = "role") -> str:
    """Validate a payroll role filter; empty means all roles."""
    if value is None or value == "":
        return "all"

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    value = value.strip()
    if len(value) > MAX_ROLE_LENGTH:
        raise ValidationError(
            field,
            f"Cannot exceed {MAX_ROLE_LENGTH} characters",
            f"{len(value)} characters"
        )
    return value or "all"


def validate_product_key(value: Optional[str], field: str = "productKey") -> str:
    """Validate the product whose sales are charted."""
    if value is None:
        raise ValidationError(field, "Product is required", value)
    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    value = value.strip()
    if not value:
        raise ValidationError(field, "Product is required", value)
    if len(value) > MAX_PRODUCT_KEY_LENGTH:
        raise ValidationError(
            field,
            f"Cannot exceed {MAX_PRODUCT_KEY_LENGTH} characters",
            f"{len(value)} characters"
        )
    return value


def validate_export_format(value: Optional[str], field: str = "format") -> str:
    value = str(value or "csv").strip().lower()
    if value not in EXPORT_FORMATS:
        raise ValidationError(field, f"Must be one of {list(EXPORT_FORMATS)}", value)
    return value


def validate_export_kind(value: Optional[str], field: str = "kind") -> str:
    value = str(value or "").strip().lower()
    if value not in EXPORT_KINDS:
        raise ValidationError(field, f"Must be one of {list(EXPORT_KINDS)}", value)
    return value
