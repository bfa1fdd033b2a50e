"""
Order eligibility rules: which orders count as recognized retail sales.

A recognized sale is either
- online: a confirmed order paid through Stripe by a customer, or
- pay later: a confirmed order settled at the shop.

Stripe payments linked to a supplier are B2B settlements and never count.
The two channels are mutually exclusive: a Stripe-settled order is never
pay-later, whatever its top-level payment method says.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional, Union

from sales_engine.models import (
    OrderRecord,
    SaleChannel,
    SalesFilter,
    normalize_order,
)

CONFIRMED = "confirmed"
STRIPE = "stripe"
PAID = "paid"
PAY_LATER = "pay later"

OrderLike = Union[OrderRecord, dict]


@dataclass(frozen=True)
class ClassifiedSale:
    """A recognized sale with its channel, event time and amount."""
    order: OrderRecord
    channel: SaleChannel
    event_at: Optional[datetime]
    amount: float

    @property
    def is_online(self) -> bool:
        return self.channel == SaleChannel.ONLINE


def _as_order(order: Any) -> Optional[OrderRecord]:
    return normalize_order(order)


def is_online_eligible(order: OrderLike) -> bool:
    """Confirmed, Stripe, paid, and not linked to a supplier."""
    record = _as_order(order)
    if record is None or record.status != CONFIRMED:
        return False
    info = record.payment_info
    return info.method == STRIPE and info.payment_status == PAID and not info.supplier_id


def is_pay_later_eligible(order: OrderLike) -> bool:
    """Confirmed and settled at the shop."""
    record = _as_order(order)
    if record is None or record.status != CONFIRMED:
        return False
    if record.payment_info.method == STRIPE:
        return False
    return record.payment_method == PAY_LATER


def is_recognized_sale(order: OrderLike) -> bool:
    return is_online_eligible(order) or is_pay_later_eligible(order)


def sale_event_timestamp(order: OrderLike, online_eligible: bool) -> Optional[datetime]:
    """
    Moment that represents the sale.

    Online sales use the payment capture time (payment updatedAt, then
    createdAt) before the order's own timestamps; pay-later sales use the
    store confirmation time (order updatedAt, then createdAt).
    """
    record = _as_order(order)
    if record is None:
        return None

    if online_eligible:
        candidates = (
            record.payment_info.updated_at,
            record.payment_info.created_at,
            record.updated_at,
            record.created_at,
        )
    else:
        candidates = (record.updated_at, record.created_at)

    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


def sale_amount(order: OrderLike) -> float:
    """Order amount: totalAmount, then total, then paymentInfo.amount, else 0."""
    record = _as_order(order)
    return record.amount if record is not None else 0.0


def sale_channel(order: OrderLike) -> Optional[SaleChannel]:
    """Channel of a recognized sale, or None."""
    if is_online_eligible(order):
        return SaleChannel.ONLINE
    if is_pay_later_eligible(order):
        return SaleChannel.PAY_LATER
    return None


def matches_filter(channel: Optional[SaleChannel], sales_filter: SalesFilter) -> bool:
    """Whether a sale channel passes the payment filter."""
    if channel is None:
        return False
    sales_filter = SalesFilter(sales_filter)
    if sales_filter == SalesFilter.ONLINE:
        return channel == SaleChannel.ONLINE
    if sales_filter == SalesFilter.PAY_LATER:
        return channel == SaleChannel.PAY_LATER
    return True


def classify(order: Any, sales_filter: SalesFilter = SalesFilter.ALL) -> Optional[ClassifiedSale]:
    """
    Classify one order in a single pass.

    Returns:
        ClassifiedSale, or None if the order is not a recognized sale or
        does not pass the filter. ``event_at`` may still be None when the
        order carries no usable timestamp.
    """
    record = _as_order(order)
    if record is None:
        return None

    channel = sale_channel(record)
    if not matches_filter(channel, sales_filter):
        return None

    online = channel == SaleChannel.ONLINE
    return ClassifiedSale(
        order=record,
        channel=channel,
        event_at=sale_event_timestamp(record, online),
        amount=record.amount,
    )
