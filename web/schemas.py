"""
Pydantic request/response models for API endpoints.

Order, product and attendance records are accepted as loose objects: the
engine normalizes them and skips malformed entries instead of rejecting the
whole request.
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


# ═══════════════════════════════════════════════════════════════════════════════
# COMMON MODELS
# ═══════════════════════════════════════════════════════════════════════════════

class OrdersInput(BaseModel):
    """Optional order snapshot; the live working set is used when omitted."""
    orders: Optional[List[Any]] = Field(None, description="Order records to report on")


class CatalogInput(BaseModel):
    """Product catalog used to resolve supplier costs."""
    products: Optional[List[Any]] = Field(None, description="Store products")
    supplierProducts: Optional[List[Any]] = Field(None, description="Supplier catalog entries")


# ═══════════════════════════════════════════════════════════════════════════════
# ANALYTICS
# ═══════════════════════════════════════════════════════════════════════════════

class SalesRequest(OrdersInput):
    granularity: str = Field("weekly", description="weekly or monthly")
    periods: Optional[int] = Field(None, description="Trailing periods (default 8 weeks / 6 months)")
    filter: Optional[str] = Field("all", description="all, online or pay_later")


class SalesBucket(BaseModel):
    key: str
    label: str
    totalSales: float
    unitsSold: int


class SalesResponse(BaseModel):
    granularity: str
    filter: str
    filterLabel: str
    windowKeys: List[str]
    buckets: List[SalesBucket]
    totalSales: float
    unitsSold: int


class ProductSalesRequest(SalesRequest):
    productKey: Optional[str] = Field(None, description="Product to chart")


class ProductSalesResponse(SalesResponse):
    productKey: str


class ProfitRequest(OrdersInput, CatalogInput):
    filter: Optional[str] = Field("all", description="all, online or pay_later")
    productKey: Optional[str] = Field(None, description="Product to highlight")


class ProfitTotalsModel(BaseModel):
    daily: float
    weekly: float
    monthly: float
    total: float


class ProductProfitModel(BaseModel):
    key: str
    label: str
    totals: ProfitTotalsModel


class ProfitResponse(BaseModel):
    totals: ProfitTotalsModel
    perProduct: List[ProductProfitModel]
    missingCostLabels: List[str]
    windows: Dict[str, str]
    filter: str
    filterLabel: str
    selectedProduct: Optional[ProductProfitModel] = None


class PaymentBreakdownRequest(OrdersInput):
    pass


class ChannelShareModel(BaseModel):
    key: str
    label: str
    value: float
    percent: float
    color: str


class PaymentBreakdownResponse(BaseModel):
    entries: List[ChannelShareModel]
    totalAmount: float


class DailyProductsRequest(OrdersInput):
    date: Optional[str] = Field(None, description="Day to report (YYYY-MM-DD), default today")
    filter: Optional[str] = Field("all", description="all, online or pay_later")


class ProductSalesModel(BaseModel):
    key: str
    label: str
    totalSales: float
    unitsSold: int


class DailyProductsResponse(BaseModel):
    date: str
    filter: str
    products: List[ProductSalesModel]


# ═══════════════════════════════════════════════════════════════════════════════
# PAYROLL
# ═══════════════════════════════════════════════════════════════════════════════

class PayrollRequest(BaseModel):
    attendance: Dict[str, Any] = Field(default_factory=dict, description="Summary {users, range}")
    role: Optional[str] = Field("all", description="Role filter")
    overrides: Optional[Dict[str, Dict[str, Any]]] = Field(
        None, description="Salary overrides keyed by employee id"
    )


class PayrollResponse(BaseModel):
    rows: List[Dict[str, Any]]
    totals: Dict[str, float]
    role: str
    roles: List[str]
    attendance: Dict[str, int]
    range: Dict[str, Any] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════════════════════
# EXPORT
# ═══════════════════════════════════════════════════════════════════════════════

class ExportRequest(OrdersInput, CatalogInput):
    """Parameters for every report kind; only those relevant to the kind are used."""
    granularity: Optional[str] = "weekly"
    periods: Optional[int] = None
    filter: Optional[str] = "all"
    attendance: Optional[Dict[str, Any]] = None
    role: Optional[str] = "all"
    metadata: Optional[Dict[str, Any]] = Field(None, description="Extra document metadata")


class ExportEmptyResponse(BaseModel):
    kind: str
    format: str
    rowCount: int
    message: str
    filename: str


# ═══════════════════════════════════════════════════════════════════════════════
# LIVE
# ═══════════════════════════════════════════════════════════════════════════════

class SnapshotRequest(CatalogInput):
    orders: List[Any] = Field(default_factory=list)


class SnapshotResponse(BaseModel):
    added: int
    orders: int
    liveOrders: int
    snapshotOrders: int
    snapshotLoaded: bool
    catalog: Optional[Dict[str, int]] = None


class IngestResponse(BaseModel):
    accepted: bool
    reason: str
    orderId: Optional[str] = None


# ═══════════════════════════════════════════════════════════════════════════════
# HEALTH CHECK
# ═══════════════════════════════════════════════════════════════════════════════

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(description="Service status: healthy or degraded")
    version: str = Field(description="Application version")
    uptime_seconds: int = Field(description="Uptime in seconds")
    correlation_id: Optional[str] = Field(None, description="Request correlation ID")
    orders: Dict[str, Any] = Field(default_factory=dict, description="Working order set stats")
    websocket: Dict[str, Any] = Field(default_factory=dict, description="WebSocket connection stats")


class MetricsResponse(BaseModel):
    """Request metrics, export counts and event bus diagnostics."""
    requests: Dict[str, int]
    errors: Dict[str, int]
    timing: Dict[str, Any]
    reports: Dict[str, Dict[str, int]] = Field(default_factory=dict)
    events: Dict[str, Any] = Field(default_factory=dict)
