"""
Live ingestion of pushed "sale confirmed" events.

Pushed events are turned into synthetic orders and run through the same
eligibility rules as fetched orders. The working set is keyed by order id:
the first record seen for an id wins, so duplicate deliveries are no-ops and
an event that arrives before the initial snapshot merges cleanly once the
snapshot lands.
"""
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sales_engine.calendar_keys import Clock, resolve_now
from sales_engine.classifier import PAID, CONFIRMED, STRIPE, is_recognized_sale, sale_channel
from sales_engine.config import config
from sales_engine.events import AnalyticsEvent, EventBus, events
from sales_engine.models import (
    OrderRecord,
    normalize_id_value,
    normalize_order,
    normalize_text,
)
from sales_engine.observability import get_logger

logger = get_logger(__name__)


def sale_event_to_order(payload: Any, clock: Optional[Clock] = None) -> Optional[OrderRecord]:
    """
    Synthetic order for a sale-confirmed event.

    Event shape: ``{orderId, method|paymentMethod, status|paymentStatus,
    supplierId, amount, currency, items, timestamp}``. The event status is
    the payment status. A Stripe event confirms the order once paid; any
    other method needs an explicitly confirmed event.

    Returns:
        OrderRecord, or None if the payload is not an object
    """
    if not isinstance(payload, Mapping):
        return None

    method = normalize_text(payload.get("method") or payload.get("paymentMethod"))
    event_status = normalize_text(
        payload.get("status") or payload.get("paymentStatus") or CONFIRMED
    )
    settled = event_status == CONFIRMED or (method == STRIPE and event_status == PAID)
    order_status = CONFIRMED if settled else event_status
    amount = payload.get("amount") or 0

    order_id = normalize_id_value(payload.get("orderId"))
    if not order_id:
        order_id = f"order_{uuid.uuid4().hex[:12]}"

    items = payload.get("items")
    raw = {
        "_id": order_id,
        "status": order_status,
        "paymentMethod": payload.get("paymentMethod") or payload.get("method"),
        "createdAt": payload.get("timestamp") or resolve_now(clock).isoformat(),
        "totalAmount": amount,
        "items": items if isinstance(items, list) else [],
        "paymentInfo": {
            "method": method,
            "paymentStatus": event_status,
            "supplierId": payload.get("supplierId") or None,
            "amount": amount,
            "currency": payload.get("currency") or config.live.default_currency,
        },
    }
    return normalize_order(raw)


@dataclass(frozen=True)
class IngestResult:
    """Outcome of ingesting one live event."""
    accepted: bool
    reason: str
    order: Optional[OrderRecord] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accepted": self.accepted,
            "reason": self.reason,
            "orderId": self.order.id if self.order else None,
        }


class LiveOrderSet:
    """
    Working order set shared by pulled snapshots and pushed events.

    Live events are placed ahead of snapshot orders, newest first.
    Orders without an id cannot be de-duplicated and are always kept.
    """

    def __init__(self, bus: Optional[EventBus] = None, clock: Optional[Clock] = None):
        self._bus = bus or events
        self._clock = clock
        self._live: List[OrderRecord] = []
        self._snapshot: List[OrderRecord] = []
        self._ids: set = set()
        self._snapshot_loaded = False

    # ─── Queries ─────────────────────────────────────────────────────────────

    def orders(self) -> Tuple[OrderRecord, ...]:
        """Immutable view of the working set, live events first."""
        return tuple(reversed(self._live)) + tuple(self._snapshot)

    @property
    def snapshot_loaded(self) -> bool:
        return self._snapshot_loaded

    def __len__(self) -> int:
        return len(self._live) + len(self._snapshot)

    def __contains__(self, order_id: str) -> bool:
        return str(order_id) in self._ids

    def stats(self) -> Dict[str, Any]:
        return {
            "orders": len(self),
            "liveOrders": len(self._live),
            "snapshotOrders": len(self._snapshot),
            "snapshotLoaded": self._snapshot_loaded,
        }

    # ─── Merging ─────────────────────────────────────────────────────────────

    def _claim(self, order: OrderRecord) -> bool:
        if not order.id:
            return True
        if order.id in self._ids:
            return False
        self._ids.add(order.id)
        return True

    def load_snapshot(self, raw_orders: Iterable[Any]) -> int:
        """
        Merge a fetched order snapshot.

        Orders whose id is already present (from an earlier snapshot or a
        live event) are skipped.

        Returns:
            Number of orders added
        """
        added = 0
        for raw in raw_orders or ():
            order = normalize_order(raw)
            if order is None:
                continue
            if self._claim(order):
                self._snapshot.append(order)
                added += 1
        self._snapshot_loaded = True
        logger.info(f"Snapshot merged: {added} orders added", extra=self.stats())
        return added

    def ingest(self, payload: Any) -> IngestResult:
        """
        Merge one sale-confirmed event.

        Unrecognized sales and already-known order ids are discarded.
        """
        order = sale_event_to_order(payload, self._clock)
        if order is None or not is_recognized_sale(order):
            logger.debug("Live event dropped: not a recognized sale")
            return IngestResult(accepted=False, reason="not_recognized", order=order)

        if not self._claim(order):
            logger.debug(f"Live event for order {order.id} already present")
            return IngestResult(accepted=False, reason="duplicate", order=order)

        self._live.append(order)
        logger.info(
            f"Live sale ingested: {order.id}",
            extra={"channel": sale_channel(order).value, "amount": order.amount},
        )
        return IngestResult(accepted=True, reason="ingested", order=order)

    async def ingest_and_publish(self, payload: Any) -> IngestResult:
        """Ingest an event and publish the outcome on the event bus."""
        result = self.ingest(payload)
        if result.accepted:
            await self._bus.emit(
                AnalyticsEvent.SALE_INGESTED,
                {
                    "orderId": result.order.id,
                    "channel": sale_channel(result.order).value,
                    "amount": result.order.amount,
                },
                source="live_ingestion",
            )
        else:
            await self._bus.emit(
                AnalyticsEvent.SALE_REJECTED,
                result.to_dict(),
                source="live_ingestion",
            )
        return result

    async def load_snapshot_and_publish(self, raw_orders: Iterable[Any]) -> int:
        """Merge a snapshot and publish ``snapshot.loaded``."""
        added = self.load_snapshot(raw_orders)
        await self._bus.emit(
            AnalyticsEvent.SNAPSHOT_LOADED,
            {"added": added, **self.stats()},
            source="live_ingestion",
        )
        return added

    def clear(self) -> None:
        """Drop all orders (e.g. on logout or a full refetch)."""
        self._live.clear()
        self._snapshot.clear()
        self._ids.clear()
        self._snapshot_loaded = False
