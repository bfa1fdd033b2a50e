"""
Analytics service: report computations over the working order set.

Holds the session state shared by HTTP and WebSocket handlers: the live
order set, the last loaded product catalog (for supplier costs) and the
payroll salary overrides. Requests may also pass their own order snapshot,
in which case the working set is left untouched.
"""
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sales_engine.aggregation import (
    aggregate,
    daily_product_sales,
    payment_breakdown,
    product_sales_series,
)
from sales_engine.calendar_keys import Clock, Granularity, window_keys
from sales_engine.config import config
from sales_engine.cost_index import CostIndex
from sales_engine.events import AnalyticsEvent, EventBus, events
from sales_engine.export import (
    ATTENDANCE_HEADER,
    PAYROLL_HEADER,
    PROFIT_HEADER,
    SALES_HEADER,
    ExportResult,
    attendance_report_rows,
    build_export,
    payroll_report_rows,
    profit_report_rows,
    sales_report_rows,
)
from sales_engine.exceptions import ExportError
from sales_engine.live import LiveOrderSet
from sales_engine.models import SalesFilter
from sales_engine.observability import get_logger
from sales_engine.payroll import (
    SalaryOverrides,
    attendance_totals,
    filter_by_role,
    parse_attendance,
    project_payroll,
    role_options,
)
from sales_engine.profit import compute_profit

logger = get_logger(__name__)


class AnalyticsService:
    """Report facade used by the API routes."""

    def __init__(self, clock: Optional[Clock] = None, bus: Optional[EventBus] = None):
        self.clock = clock
        self.bus = bus or events
        self.live_orders = LiveOrderSet(bus=self.bus, clock=clock)
        self.overrides = SalaryOverrides()
        self.cost_index = CostIndex.build([], [])

    # ─── Inputs ──────────────────────────────────────────────────────────────

    def load_catalog(
        self,
        products: Optional[Sequence[Any]],
        supplier_products: Optional[Sequence[Any]],
    ) -> Dict[str, int]:
        """Replace the stored cost index with one built from a new catalog."""
        self.cost_index = CostIndex.build(products, supplier_products)
        logger.info("Product catalog loaded", extra=self.cost_index.stats())
        return self.cost_index.stats()

    def _orders(self, orders: Optional[Sequence[Any]]) -> Sequence[Any]:
        return self.live_orders.orders() if orders is None else orders

    def _cost_index(
        self,
        products: Optional[Sequence[Any]],
        supplier_products: Optional[Sequence[Any]],
    ) -> CostIndex:
        if products is None and supplier_products is None:
            return self.cost_index
        return CostIndex.build(products, supplier_products)

    # ─── Sales ───────────────────────────────────────────────────────────────

    def sales_report(
        self,
        granularity: Granularity,
        periods: int,
        sales_filter: SalesFilter,
        orders: Optional[Sequence[Any]] = None,
    ) -> Dict[str, Any]:
        keys = window_keys(granularity, periods, self.clock)
        buckets = aggregate(self._orders(orders), granularity, sales_filter, keys)
        return {
            "granularity": Granularity(granularity).value,
            "filter": SalesFilter(sales_filter).value,
            "filterLabel": SalesFilter(sales_filter).label,
            "windowKeys": keys,
            "buckets": [bucket.to_dict() for bucket in buckets],
            "totalSales": round(sum(b.total_sales for b in buckets), 2),
            "unitsSold": sum(b.units_sold for b in buckets),
        }

    def product_sales_report(
        self,
        product_key: str,
        granularity: Granularity,
        periods: int,
        sales_filter: SalesFilter,
        orders: Optional[Sequence[Any]] = None,
    ) -> Dict[str, Any]:
        """Weekly or monthly sales of one product over the trailing window."""
        keys = window_keys(granularity, periods, self.clock)
        buckets = product_sales_series(
            self._orders(orders), product_key, granularity, sales_filter, keys
        )
        return {
            "productKey": product_key,
            "granularity": Granularity(granularity).value,
            "filter": SalesFilter(sales_filter).value,
            "filterLabel": SalesFilter(sales_filter).label,
            "windowKeys": keys,
            "buckets": [bucket.to_dict() for bucket in buckets],
            "totalSales": round(sum(b.total_sales for b in buckets), 2),
            "unitsSold": sum(b.units_sold for b in buckets),
        }

    def payment_report(self, orders: Optional[Sequence[Any]] = None) -> Dict[str, Any]:
        return payment_breakdown(self._orders(orders)).to_dict()

    def daily_products_report(
        self,
        day: date,
        sales_filter: SalesFilter,
        orders: Optional[Sequence[Any]] = None,
    ) -> Dict[str, Any]:
        products = daily_product_sales(self._orders(orders), day, sales_filter)
        return {
            "date": day.isoformat(),
            "filter": SalesFilter(sales_filter).value,
            "products": [entry.to_dict() for entry in products],
        }

    # ─── Profit ──────────────────────────────────────────────────────────────

    def profit_report(
        self,
        sales_filter: SalesFilter,
        orders: Optional[Sequence[Any]] = None,
        products: Optional[Sequence[Any]] = None,
        supplier_products: Optional[Sequence[Any]] = None,
        product_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        summary = compute_profit(
            self._orders(orders),
            sales_filter,
            self._cost_index(products, supplier_products),
            self.clock,
        )
        result = summary.to_dict()
        result["filter"] = SalesFilter(sales_filter).value
        result["filterLabel"] = SalesFilter(sales_filter).label
        if product_key:
            entry = summary.for_product(product_key)
            result["selectedProduct"] = entry.to_dict() if entry else None
        return result

    # ─── Payroll ─────────────────────────────────────────────────────────────

    def apply_overrides(self, overrides: Optional[Mapping[str, Mapping[str, Any]]]) -> None:
        for user_id, fields in (overrides or {}).items():
            for name, value in (fields or {}).items():
                self.overrides.set_override(str(user_id), name, value)

    def payroll_report(
        self,
        attendance: Mapping[str, Any],
        role: str = "all",
        overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ) -> Dict[str, Any]:
        employees = parse_attendance(attendance)
        self.overrides.sync(employees)
        self.apply_overrides(overrides)

        projection = project_payroll(
            employees, self.overrides.as_mapping(), role, config.payroll
        )
        result = projection.to_dict()
        result["roles"] = role_options(employees)
        result["attendance"] = attendance_totals(filter_by_role(employees, role))
        result["range"] = dict(attendance.get("range") or {})
        return result

    # ─── Live ────────────────────────────────────────────────────────────────

    def live_summary(
        self,
        granularity: Granularity = Granularity.WEEKLY,
        periods: Optional[int] = None,
        sales_filter: SalesFilter = SalesFilter.ALL,
    ) -> Dict[str, Any]:
        """Refreshed aggregates over the working set, pushed after each live sale."""
        if periods is None:
            periods = (
                config.reports.default_weeks
                if Granularity(granularity) == Granularity.WEEKLY
                else config.reports.default_months
            )
        return {
            "sales": self.sales_report(granularity, periods, sales_filter),
            "paymentBreakdown": self.payment_report(),
            "orders": self.live_orders.stats(),
        }

    # ─── Export ──────────────────────────────────────────────────────────────

    def _export_rows(self, kind: str, params: Mapping[str, Any]) -> tuple:
        sales_filter = SalesFilter(params.get("filter") or SalesFilter.ALL)
        orders = params.get("orders")

        if kind == "sales":
            granularity = Granularity(params.get("granularity") or Granularity.WEEKLY)
            periods = params.get("periods") or config.reports.default_weeks
            keys = window_keys(granularity, periods, self.clock)
            buckets = aggregate(self._orders(orders), granularity, sales_filter, keys)
            return SALES_HEADER, sales_report_rows(buckets, sales_filter)

        if kind == "profit":
            summary = compute_profit(
                self._orders(orders),
                sales_filter,
                self._cost_index(params.get("products"), params.get("supplierProducts")),
                self.clock,
            )
            # Nothing sold at a profit means nothing to export
            if not summary.per_product:
                return PROFIT_HEADER, []
            return PROFIT_HEADER, profit_report_rows(summary, sales_filter)

        employees = parse_attendance(params.get("attendance") or {})
        role = params.get("role") or "all"
        if kind == "payroll":
            self.overrides.sync(employees)
            projection = project_payroll(employees, self.overrides.as_mapping(), role)
            return PAYROLL_HEADER, payroll_report_rows(projection.rows)
        if kind == "attendance":
            return ATTENDANCE_HEADER, attendance_report_rows(filter_by_role(employees, role))

        raise ExportError(f"Unknown report kind '{kind}'")

    async def export_report(
        self,
        kind: str,
        fmt: str,
        params: Mapping[str, Any],
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> ExportResult:
        header, rows = self._export_rows(kind, params)

        document_metadata: Dict[str, Any] = {"title": f"{kind.capitalize()} report"}
        if kind in ("sales", "profit"):
            document_metadata["filter"] = SalesFilter(params.get("filter") or SalesFilter.ALL).label
        document_metadata.update(metadata or {})

        result = build_export(kind, header, rows, fmt, document_metadata, self.clock)
        await self.bus.emit(
            AnalyticsEvent.REPORT_EXPORTED,
            result.to_dict(),
            source="reports",
        )
        return result


# Global service instance
_service: Optional[AnalyticsService] = None


def get_analytics_service() -> AnalyticsService:
    """Get or create the shared analytics service."""
    global _service
    if _service is None:
        _service = AnalyticsService()
    return _service


def reset_analytics_service(
    clock: Optional[Clock] = None, bus: Optional[EventBus] = None
) -> AnalyticsService:
    """Replace the shared service (fresh state), e.g. between tests."""
    global _service
    _service = AnalyticsService(clock=clock, bus=bus)
    return _service
