"""
Domain models for order, attendance and report data.

Upstream records arrive with ambiguous shapes: product ids live under
several keys, the payment method may be top-level or nested, amounts and
quantities may be strings or garbage. ``normalize_order`` canonicalizes a
raw order once at the boundary so the rest of the engine never re-implements
fallback chains.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from sales_engine.calendar_keys import parse_timestamp
from sales_engine.config import config
from sales_engine.observability import get_logger

logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# FIELD HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def normalize_text(value: Any) -> str:
    """Lower-cased, trimmed text; None becomes an empty string."""
    if value is None:
        return ""
    return str(value).strip().lower()


def normalize_id_value(value: Any) -> str:
    """String id from a raw id, or from a populated ``{_id}``/``{id}`` object."""
    if value is None or value == "" or value is False:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        nested = value.get("_id") or value.get("id")
        return str(nested) if nested else ""
    return str(value)


def to_number(value: Any, default: float = 0.0) -> float:
    """Coerce to a finite float, falling back to ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number


def round2(value: float) -> float:
    """Round to cents for display/export (never mid-computation)."""
    rounded = round(value, 2) if math.isfinite(value) else 0.0
    return rounded + 0.0  # collapse -0.0


def first_present(*values: Any) -> Any:
    """First value that is not None."""
    for value in values:
        if value is not None:
            return value
    return None


def _mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


# Accessors tried in order for a line item's product identity
_PRODUCT_KEY_ACCESSORS: Tuple[Callable[[Mapping], Any], ...] = (
    lambda item: item.get("productId"),
    lambda item: item.get("_id"),
    lambda item: _mapping(item.get("product")).get("_id"),
    lambda item: item.get("sku"),
    lambda item: item.get("id"),
)

_NAME_KEYS = ("productName", "name", "title")


def resolve_product_key(item: Mapping) -> str:
    """First non-empty product identity of a raw line item."""
    for accessor in _PRODUCT_KEY_ACCESSORS:
        key = normalize_id_value(accessor(item)).strip()
        if key:
            return key
    return ""


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class SalesFilter(str, Enum):
    """Payment channel filter applied to sales and profit reports."""
    ALL = "all"
    ONLINE = "online"
    PAY_LATER = "pay_later"

    @property
    def label(self) -> str:
        """Human-readable filter name."""
        return config.reports.get_filter_label(self.value)


class SaleChannel(str, Enum):
    """Channel a recognized sale was made through."""
    ONLINE = "online"
    PAY_LATER = "pay_later"

    @property
    def label(self) -> str:
        return config.reports.get_filter_label(self.value)

    @property
    def color(self) -> str:
        return config.reports.channel_colors.get(self.value, "#999999")


# ═══════════════════════════════════════════════════════════════════════════════
# ORDERS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PaymentInfo:
    """Payment details attached to an order."""
    method: str = ""
    payment_status: str = ""
    supplier_id: Optional[str] = None
    amount: Optional[Any] = None
    currency: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, data: Any) -> "PaymentInfo":
        """Create PaymentInfo from a raw ``paymentInfo`` object."""
        data = _mapping(data)
        supplier_id = normalize_id_value(data.get("supplierId")) or None
        return cls(
            method=normalize_text(data.get("method")),
            payment_status=normalize_text(data.get("paymentStatus")),
            supplier_id=supplier_id,
            amount=data.get("amount"),
            currency=data.get("currency"),
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )


@dataclass(frozen=True)
class OrderLineItem:
    """Product line item within an order."""
    product_key: str
    name: str
    quantity: int
    price: float
    price_valid: bool = True

    @classmethod
    def from_api(cls, data: Any) -> "OrderLineItem":
        """
        Create OrderLineItem from a raw order item.

        Quantities are whole units: fractions are truncated toward zero and
        negative values count as 0.
        """
        data = _mapping(data)

        quantity = to_number(data.get("quantity"), 0.0)
        if quantity < 0:
            quantity = 0.0
        if quantity != int(quantity):
            logger.debug(
                f"Fractional quantity {quantity} truncated for item {resolve_product_key(data) or '?'}"
            )

        raw_price = data.get("price")
        price = to_number(raw_price, 0.0)
        price_valid = price >= 0
        if isinstance(raw_price, (int, float)) and not isinstance(raw_price, bool):
            price_valid = price_valid and math.isfinite(raw_price)

        name = ""
        for key in _NAME_KEYS:
            if data.get(key):
                name = str(data[key])
                break

        return cls(
            product_key=resolve_product_key(data),
            name=name,
            quantity=int(quantity),
            price=price,
            price_valid=price_valid,
        )

    @property
    def label(self) -> str:
        """Display name for reports and diagnostics."""
        return self.name or self.product_key or "Unknown product"

    @property
    def is_sellable(self) -> bool:
        """Line counts toward profit/product sales."""
        return self.quantity > 0 and self.price_valid

    @property
    def total(self) -> float:
        """Line selling total."""
        return self.price * self.quantity


@dataclass(frozen=True)
class OrderRecord:
    """Canonical order, read-only once normalized."""
    id: str
    status: str = ""
    payment_method: str = ""
    payment_info: PaymentInfo = field(default_factory=PaymentInfo)
    amount: float = 0.0
    items: Tuple[OrderLineItem, ...] = ()
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "OrderRecord":
        """Create OrderRecord from a raw order document."""
        payment_info = PaymentInfo.from_api(data.get("paymentInfo"))

        # Top-level method wins over the nested one
        payment_method = normalize_text(data.get("paymentMethod")) or payment_info.method

        amount = to_number(
            first_present(data.get("totalAmount"), data.get("total"), payment_info.amount),
            0.0,
        )

        raw_items = data.get("items")
        items = tuple(
            OrderLineItem.from_api(item)
            for item in (raw_items if isinstance(raw_items, (list, tuple)) else [])
            if isinstance(item, Mapping)
        )

        return cls(
            id=normalize_id_value(data.get("_id") or data.get("id") or data.get("orderId")),
            status=normalize_text(data.get("status")),
            payment_method=payment_method,
            payment_info=payment_info,
            amount=amount,
            items=items,
            created_at=parse_timestamp(data.get("createdAt")),
            updated_at=parse_timestamp(data.get("updatedAt")),
        )

    @property
    def units(self) -> int:
        """Units across all line items."""
        return sum(max(0, item.quantity) for item in self.items)


def normalize_order(raw: Any) -> Optional[OrderRecord]:
    """
    Canonicalize one upstream order.

    Already-normalized records pass through; anything that is not a mapping
    yields None.
    """
    if isinstance(raw, OrderRecord):
        return raw
    if not isinstance(raw, Mapping):
        return None
    return OrderRecord.from_api(raw)


def normalize_orders(raws: Optional[Iterable[Any]]) -> List[OrderRecord]:
    """Canonicalize a batch of orders, dropping unusable entries."""
    orders = []
    for raw in raws or ():
        order = normalize_order(raw)
        if order is not None:
            orders.append(order)
    return orders


# ═══════════════════════════════════════════════════════════════════════════════
# SALES RESULTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class AggregateBucket:
    """Sales for one calendar bucket."""
    key: str
    label: str
    total_sales: float
    units_sold: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "totalSales": self.total_sales,
            "unitsSold": self.units_sold,
        }


@dataclass
class ChannelShare:
    """One slice of the payment breakdown."""
    channel: SaleChannel
    value: float
    percent: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.channel.value,
            "label": self.channel.label,
            "value": self.value,
            "percent": self.percent,
            "color": self.channel.color,
        }


@dataclass
class PaymentBreakdown:
    """Online vs pay-at-shop revenue split."""
    entries: List[ChannelShare]
    total_amount: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": [entry.to_dict() for entry in self.entries],
            "totalAmount": self.total_amount,
        }


@dataclass
class ProductSales:
    """Revenue and units for one product on a given day."""
    key: str
    label: str
    total_sales: float
    units_sold: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "totalSales": self.total_sales,
            "unitsSold": self.units_sold,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# PROFIT RESULTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ProfitTotals:
    """Profit per rolling window; accumulates in full precision."""
    daily: float = 0.0
    weekly: float = 0.0
    monthly: float = 0.0
    total: float = 0.0

    def rounded(self) -> "ProfitTotals":
        """Copy rounded to cents."""
        return ProfitTotals(
            daily=round2(self.daily),
            weekly=round2(self.weekly),
            monthly=round2(self.monthly),
            total=round2(self.total),
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "daily": self.daily,
            "weekly": self.weekly,
            "monthly": self.monthly,
            "total": self.total,
        }


@dataclass
class ProductProfit:
    """Profit totals for one product."""
    key: str
    label: str
    totals: ProfitTotals = field(default_factory=ProfitTotals)

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "label": self.label, "totals": self.totals.to_dict()}


@dataclass
class ProfitWindows:
    """Window start boundaries a profit run was measured against."""
    start_of_today: datetime
    start_of_week: datetime
    start_of_month: datetime

    def to_dict(self) -> Dict[str, str]:
        return {
            "startOfToday": self.start_of_today.isoformat(),
            "startOfWeek": self.start_of_week.isoformat(),
            "startOfMonth": self.start_of_month.isoformat(),
        }


@dataclass
class ProfitSummary:
    """Result of a profit run."""
    totals: ProfitTotals
    per_product: List[ProductProfit]
    missing_cost_labels: List[str]
    windows: ProfitWindows

    def for_product(self, key: str) -> Optional[ProductProfit]:
        """Per-product entry by key, or None."""
        for entry in self.per_product:
            if entry.key == key:
                return entry
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totals": self.totals.to_dict(),
            "perProduct": [entry.to_dict() for entry in self.per_product],
            "missingCostLabels": list(self.missing_cost_labels),
            "windows": self.windows.to_dict(),
        }


# ═══════════════════════════════════════════════════════════════════════════════
# ATTENDANCE & PAYROLL
# ═══════════════════════════════════════════════════════════════════════════════

ATTENDANCE_STATUSES = ("present", "late", "absent", "leave")


@dataclass(frozen=True)
class AttendanceCounts:
    """Days per attendance status over a reporting window."""
    present: int = 0
    late: int = 0
    absent: int = 0
    leave: int = 0

    @classmethod
    def from_api(cls, data: Any) -> "AttendanceCounts":
        data = _mapping(data)
        values = {}
        for status in ATTENDANCE_STATUSES:
            values[status] = max(0, int(to_number(data.get(status), 0.0)))
        return cls(**values)

    @property
    def total_days(self) -> int:
        return self.present + self.late + self.absent + self.leave

    @property
    def worked_days(self) -> int:
        return self.present + self.late

    def to_dict(self) -> Dict[str, int]:
        return {status: getattr(self, status) for status in ATTENDANCE_STATUSES}


@dataclass(frozen=True)
class Employee:
    """Employee row from the attendance summary."""
    user_id: str
    name: str = ""
    email: str = ""
    role: str = ""
    counts: AttendanceCounts = field(default_factory=AttendanceCounts)

    @classmethod
    def from_api(cls, data: Any) -> Optional["Employee"]:
        """Create Employee from an attendance summary user, or None without id."""
        data = _mapping(data)
        user_id = normalize_id_value(data.get("userId"))
        if not user_id:
            return None
        return cls(
            user_id=user_id,
            name=str(data.get("name") or ""),
            email=str(data.get("email") or ""),
            role=str(data.get("role") or "").strip(),
            counts=AttendanceCounts.from_api(data.get("counts")),
        )


@dataclass(frozen=True)
class SalaryConfig:
    """Pay settings for one employee (defaults or console overrides)."""
    hourly_rate: float = 0.0
    overtime_hours: float = 0.0
    overtime_multiplier: float = 1.5
    bonus: float = 0.0
    deductions: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "hourlyRate": self.hourly_rate,
            "overtimeHours": self.overtime_hours,
            "overtimeMultiplier": self.overtime_multiplier,
            "bonus": self.bonus,
            "deductions": self.deductions,
        }


@dataclass
class PayrollRow:
    """Projected pay for one employee."""
    employee: Employee
    salary: SalaryConfig
    regular_hours: float
    regular_pay: float
    overtime_pay: float
    gross_pay: float
    net_pay: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.employee.user_id,
            "name": self.employee.name,
            "email": self.employee.email,
            "role": self.employee.role,
            "counts": self.employee.counts.to_dict(),
            **self.salary.to_dict(),
            "regularHours": self.regular_hours,
            "regularPay": self.regular_pay,
            "overtimePay": self.overtime_pay,
            "grossPay": self.gross_pay,
            "netPay": self.net_pay,
        }


@dataclass
class PayrollTotals:
    """Column-wise sums over payroll rows."""
    regular_hours: float = 0.0
    overtime_hours: float = 0.0
    regular_pay: float = 0.0
    overtime_pay: float = 0.0
    bonus: float = 0.0
    deductions: float = 0.0
    gross_pay: float = 0.0
    net_pay: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {
            "regularHours": self.regular_hours,
            "overtimeHours": self.overtime_hours,
            "regularPay": self.regular_pay,
            "overtimePay": self.overtime_pay,
            "bonus": self.bonus,
            "deductions": self.deductions,
            "grossPay": self.gross_pay,
            "netPay": self.net_pay,
        }


@dataclass
class PayrollProjection:
    """Payroll rows plus their totals."""
    rows: List[PayrollRow]
    totals: PayrollTotals
    role: str = "all"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": [row.to_dict() for row in self.rows],
            "totals": self.totals.to_dict(),
            "role": self.role,
        }
