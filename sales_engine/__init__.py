"""
Sales and profit reporting engine for the hardware store dashboard.

This package contains the reporting logic used by the web/ package:
- calendar_keys: Week/month bucket keys and rolling windows
- classifier: Online vs pay-at-shop sale eligibility
- aggregation / profit / payroll: Report computations
- live: Merging pushed sale events into the working order set
- export: CSV and printable report documents
"""

# Import in dependency order
from sales_engine.exceptions import (
    SalesEngineError,
    ExportError,
    ValidationError,
)

from sales_engine.config import config, ConfigurationError, validate_config

from sales_engine.calendar_keys import (
    Granularity,
    parse_timestamp,
    bucket_key_of,
    bucket_label,
    window_keys,
)

from sales_engine.models import (
    SalesFilter,
    SaleChannel,
    OrderRecord,
    normalize_order,
)

from sales_engine.classifier import classify, is_recognized_sale
from sales_engine.cost_index import CostIndex
from sales_engine.aggregation import aggregate, payment_breakdown, daily_product_sales, product_sales_series
from sales_engine.profit import compute_profit
from sales_engine.payroll import SalaryOverrides, project_payroll, role_options, attendance_totals
from sales_engine.live import LiveOrderSet, sale_event_to_order
from sales_engine.export import ExportResult, build_export, to_csv, to_printable_document

__all__ = [
    # Exceptions
    "SalesEngineError",
    "ExportError",
    "ValidationError",
    "ConfigurationError",
    # Config
    "config",
    "validate_config",
    # Calendar
    "Granularity",
    "parse_timestamp",
    "bucket_key_of",
    "bucket_label",
    "window_keys",
    # Orders
    "SalesFilter",
    "SaleChannel",
    "OrderRecord",
    "normalize_order",
    "classify",
    "is_recognized_sale",
    # Reports
    "CostIndex",
    "aggregate",
    "payment_breakdown",
    "daily_product_sales",
    "product_sales_series",
    "compute_profit",
    "SalaryOverrides",
    "project_payroll",
    "role_options",
    "attendance_totals",
    # Live
    "LiveOrderSet",
    "sale_event_to_order",
    # Export
    "ExportResult",
    "build_export",
    "to_csv",
    "to_printable_document",
]
