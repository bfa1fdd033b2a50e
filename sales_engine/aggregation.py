"""
Time-bucketed sales aggregation.

All functions are pure over the supplied order snapshot: they never mutate
their inputs and give identical output when re-run on the same data.
"""
from collections import OrderedDict
from datetime import date
from typing import Any, Dict, Iterable, List, Sequence

from sales_engine.calendar_keys import Granularity, bucket_key_of, bucket_label
from sales_engine.classifier import classify
from sales_engine.models import (
    AggregateBucket,
    ChannelShare,
    PaymentBreakdown,
    ProductSales,
    SaleChannel,
    SalesFilter,
    normalize_orders,
    round2,
)
from sales_engine.observability import get_logger, timed

logger = get_logger(__name__)


@timed("aggregate_sales")
def aggregate(
    orders: Iterable[Any],
    granularity: Granularity,
    sales_filter: SalesFilter,
    window_keys: Sequence[str],
) -> List[AggregateBucket]:
    """
    Sum sales amount and units per calendar bucket.

    Args:
        orders: Raw or normalized orders
        granularity: Weekly or monthly buckets
        sales_filter: Payment channel filter
        window_keys: Full rolling key sequence to report on

    Returns:
        One bucket per entry of ``window_keys`` (in the same order), with
        zero totals for keys that saw no sales.
    """
    granularity = Granularity(granularity)
    sales_filter = SalesFilter(sales_filter)

    accumulators: Dict[str, Dict[str, float]] = {}
    undated = 0

    for order in normalize_orders(orders):
        sale = classify(order, sales_filter)
        if sale is None:
            continue
        if sale.event_at is None:
            undated += 1
            continue

        key = bucket_key_of(sale.event_at, granularity)
        entry = accumulators.setdefault(key, {"amount": 0.0, "units": 0})
        entry["amount"] += sale.amount
        entry["units"] += order.units

    if undated:
        logger.debug(f"Skipped {undated} sales without a usable date")

    buckets = []
    for key in window_keys:
        entry = accumulators.get(key, {"amount": 0.0, "units": 0})
        buckets.append(AggregateBucket(
            key=key,
            label=bucket_label(key, granularity),
            total_sales=round2(entry["amount"]),
            units_sold=int(entry["units"]),
        ))
    return buckets


def _percent(value: float, total: float) -> float:
    if total <= 0:
        return 0.0
    percent = value / total * 100
    precision = 1 if percent >= 10 else 2
    return round(percent, precision)


def payment_breakdown(orders: Iterable[Any]) -> PaymentBreakdown:
    """
    Revenue split between online and pay-at-shop sales.

    Only recognized sales with a positive amount count; dates and payment
    filters do not apply.
    """
    totals = {SaleChannel.ONLINE: 0.0, SaleChannel.PAY_LATER: 0.0}

    for order in normalize_orders(orders):
        if not order.amount > 0:
            continue
        sale = classify(order)
        if sale is None:
            continue
        totals[sale.channel] += sale.amount

    values = {channel: round2(amount) for channel, amount in totals.items()}
    total_amount = sum(values.values())

    entries = [
        ChannelShare(channel=channel, value=value, percent=_percent(value, total_amount))
        for channel, value in values.items()
    ]
    return PaymentBreakdown(entries=entries, total_amount=round2(total_amount))


def daily_product_sales(
    orders: Iterable[Any],
    day: date,
    sales_filter: SalesFilter = SalesFilter.ALL,
) -> List[ProductSales]:
    """
    Per-product revenue and units for sales made on one local day.

    Products appear in the order they are first seen. Lines without a
    product identity or name are skipped.
    """
    sales_filter = SalesFilter(sales_filter)
    products: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()

    for order in normalize_orders(orders):
        sale = classify(order, sales_filter)
        if sale is None or sale.event_at is None:
            continue
        if sale.event_at.date() != day:
            continue

        for item in order.items:
            if not item.is_sellable:
                continue
            key = item.product_key or item.name
            if not key:
                continue
            entry = products.setdefault(key, {"label": item.label, "amount": 0.0, "units": 0})
            entry["label"] = item.name or key
            if item.total > 0:
                entry["amount"] += item.total
            entry["units"] += item.quantity

    return [
        ProductSales(
            key=key,
            label=entry["label"],
            total_sales=round2(entry["amount"]),
            units_sold=entry["units"],
        )
        for key, entry in products.items()
    ]


@timed("product_sales_series")
def product_sales_series(
    orders: Iterable[Any],
    product_key: str,
    granularity: Granularity,
    sales_filter: SalesFilter,
    window_keys: Sequence[str],
) -> List[AggregateBucket]:
    """
    Sales of one product per calendar bucket.

    Only the product's own line totals count toward an order, and orders
    that sold none of it are skipped. Output follows ``window_keys`` like
    ``aggregate``, zero-filled for quiet periods.
    """
    granularity = Granularity(granularity)
    sales_filter = SalesFilter(sales_filter)
    product_key = str(product_key or "").strip()

    accumulators: Dict[str, Dict[str, float]] = {}
    if product_key:
        for order in normalize_orders(orders):
            sale = classify(order, sales_filter)
            if sale is None or sale.event_at is None:
                continue

            amount = 0.0
            units = 0
            for item in order.items:
                if item.product_key != product_key or not item.is_sellable:
                    continue
                amount += item.total
                units += item.quantity
            if amount <= 0:
                continue

            key = bucket_key_of(sale.event_at, granularity)
            entry = accumulators.setdefault(key, {"amount": 0.0, "units": 0})
            entry["amount"] += amount
            entry["units"] += units

    return [
        AggregateBucket(
            key=key,
            label=bucket_label(key, granularity),
            total_sales=round2(accumulators.get(key, {}).get("amount", 0.0)),
            units_sold=int(accumulators.get(key, {}).get("units", 0)),
        )
        for key in window_keys
    ]
