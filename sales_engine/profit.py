"""
Profit per rolling window, overall and per product.

Window membership is three independent tests against the sale date:
    daily   - on or after local midnight today
    weekly  - on or after local midnight six days ago
    monthly - on or after the first of the current month
``total`` counts every eligible line. Early in a month the weekly window can
reach back past the month start, so weekly may exceed monthly; the windows
are not nested.
"""
import math
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sales_engine.calendar_keys import Clock, resolve_now, start_of_day, start_of_month
from sales_engine.classifier import classify
from sales_engine.cost_index import CostIndex
from sales_engine.models import (
    ProductProfit,
    ProfitSummary,
    ProfitTotals,
    ProfitWindows,
    SalesFilter,
    normalize_orders,
)
from sales_engine.observability import get_logger, timed

logger = get_logger(__name__)


def profit_windows(clock: Optional[Clock] = None) -> ProfitWindows:
    """Window boundaries measured against the clock's 'now'."""
    today = start_of_day(resolve_now(clock))
    return ProfitWindows(
        start_of_today=today,
        start_of_week=today - timedelta(days=6),
        start_of_month=start_of_month(today),
    )


def _add_to_windows(
    totals: ProfitTotals, profit: float, event_at: datetime, windows: ProfitWindows
) -> None:
    totals.total += profit
    if event_at >= windows.start_of_month:
        totals.monthly += profit
    if event_at >= windows.start_of_week:
        totals.weekly += profit
    if event_at >= windows.start_of_today:
        totals.daily += profit


@timed("compute_profit")
def compute_profit(
    orders: Iterable[Any],
    sales_filter: SalesFilter,
    cost_index: CostIndex,
    clock: Optional[Clock] = None,
) -> ProfitSummary:
    """
    Profit of every sellable line in recognized, filter-matching sales.

    Unit profit is selling price minus supplier cost. Lines whose cost is
    unknown are still counted against a zero cost and their product names
    are collected in ``missing_cost_labels``.

    Returns:
        ProfitSummary with totals rounded to cents and ``per_product``
        sorted by total profit, highest first.
    """
    sales_filter = SalesFilter(sales_filter)
    windows = profit_windows(clock)

    totals = ProfitTotals()
    per_product: Dict[str, ProductProfit] = {}
    missing_cost_labels: Dict[str, None] = {}

    for order in normalize_orders(orders):
        sale = classify(order, sales_filter)
        if sale is None or sale.event_at is None:
            continue

        for item in order.items:
            if not item.is_sellable:
                continue

            cost = cost_index.lookup(item.product_key, item.name)
            if not cost.found:
                missing_cost_labels[item.label] = None

            profit = (item.price - cost.price) * item.quantity
            if not math.isfinite(profit) or profit == 0:
                continue

            _add_to_windows(totals, profit, sale.event_at, windows)

            label = item.label
            key = item.product_key or label or f"Product {len(per_product) + 1}"
            entry = per_product.get(key)
            if entry is None:
                entry = per_product[key] = ProductProfit(key=key, label=label)
            _add_to_windows(entry.totals, profit, sale.event_at, windows)

    if missing_cost_labels:
        logger.warning(
            f"Supplier cost missing for {len(missing_cost_labels)} products, assumed 0",
            extra={"products": list(missing_cost_labels)},
        )

    product_list: List[ProductProfit] = [
        ProductProfit(key=entry.key, label=entry.label, totals=entry.totals.rounded())
        for entry in per_product.values()
    ]
    product_list.sort(key=lambda entry: entry.totals.total, reverse=True)

    return ProfitSummary(
        totals=totals.rounded(),
        per_product=product_list,
        missing_cost_labels=list(missing_cost_labels),
        windows=windows,
    )
