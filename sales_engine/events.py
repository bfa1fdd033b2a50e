"""
Publish/subscribe bus for live sales updates.

Decouples live ingestion from its consumers (WebSocket broadcast, logging,
report refresh).

Usage:
    from sales_engine.events import events, AnalyticsEvent

    @events.on(AnalyticsEvent.SALE_INGESTED)
    async def refresh_dashboard(data: dict):
        ...

    await events.emit(AnalyticsEvent.SALE_INGESTED, {"orderId": "A-100"})
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Coroutine, Dict, List, Optional

from sales_engine.config import config
from sales_engine.observability import get_correlation_id, get_logger

logger = get_logger(__name__)

# Type for event handlers
EventHandler = Callable[[Dict[str, Any]], Coroutine[Any, Any, None]]


class AnalyticsEvent(Enum):
    """Events emitted by the reporting engine."""

    SNAPSHOT_LOADED = "snapshot.loaded"
    SALE_INGESTED = "sale.ingested"
    SALE_REJECTED = "sale.rejected"
    REPORT_EXPORTED = "report.exported"


@dataclass
class EventMetadata:
    """Metadata attached to every event."""

    event_id: str = field(default_factory=lambda: f"{datetime.now().timestamp():.6f}")
    timestamp: datetime = field(default_factory=datetime.now)
    correlation_id: Optional[str] = field(default_factory=get_correlation_id)
    source: str = "sales_engine"


@dataclass
class Event:
    """Wrapper for event data with metadata."""

    type: AnalyticsEvent
    data: Dict[str, Any]
    metadata: EventMetadata = field(default_factory=EventMetadata)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary for logging/serialization."""
        return {
            "event_type": self.type.value,
            "data": self.data,
            "metadata": {
                "event_id": self.metadata.event_id,
                "timestamp": self.metadata.timestamp.isoformat(),
                "correlation_id": self.metadata.correlation_id,
                "source": self.metadata.source,
            },
        }


class EventBus:
    """
    Async event bus.

    - Multiple handlers per event, plus wildcard handlers
    - One handler failing does not affect the others
    - Bounded event history for debugging
    """

    def __init__(self, max_history: int = 100):
        self._handlers: Dict[AnalyticsEvent, List[EventHandler]] = {}
        self._wildcard_handlers: List[EventHandler] = []
        self._history: List[Event] = []
        self._max_history = max_history

    def on(
        self, event_type: Optional[AnalyticsEvent] = None
    ) -> Callable[[EventHandler], EventHandler]:
        """
        Decorator to register an event handler.

        Args:
            event_type: Event type to subscribe to, or None for all events
        """

        def decorator(handler: EventHandler) -> EventHandler:
            self.subscribe(event_type, handler)
            return handler

        return decorator

    def subscribe(
        self, event_type: Optional[AnalyticsEvent], handler: EventHandler
    ) -> None:
        """Programmatically subscribe to an event (None for all events)."""
        if event_type is None:
            self._wildcard_handlers.append(handler)
            logger.debug(f"Registered wildcard handler: {handler.__name__}")
        else:
            self._handlers.setdefault(event_type, []).append(handler)
            logger.debug(f"Registered handler {handler.__name__} for {event_type.value}")

    def unsubscribe(
        self, event_type: Optional[AnalyticsEvent], handler: EventHandler
    ) -> bool:
        """
        Unsubscribe a handler from an event.

        Returns:
            True if handler was found and removed
        """
        handlers = self._wildcard_handlers if event_type is None else self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    async def emit(
        self,
        event_type: AnalyticsEvent,
        data: Optional[Dict[str, Any]] = None,
        source: str = "sales_engine",
    ) -> Event:
        """
        Emit an event to all subscribed handlers.

        Handlers run concurrently; failures are logged, never raised.

        Returns:
            The emitted Event object
        """
        event = Event(
            type=event_type,
            data=data or {},
            metadata=EventMetadata(source=source),
        )

        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        handlers = list(self._handlers.get(event_type, []))
        handlers.extend(self._wildcard_handlers)

        if not handlers:
            logger.debug(f"No handlers for event {event_type.value}")
            return event

        results = await asyncio.gather(
            *[handler(event.data) for handler in handlers],
            return_exceptions=True,
        )

        for handler, result in zip(handlers, results):
            if isinstance(result, Exception):
                logger.error(
                    f"Handler {handler.__name__} failed for {event_type.value}: {result}",
                    extra={"event": event.to_dict()},
                )

        return event

    def get_history(
        self, event_type: Optional[AnalyticsEvent] = None, limit: int = 20
    ) -> List[Dict[str, Any]]:
        """Recent events, optionally filtered by type."""
        history = self._history
        if event_type:
            history = [e for e in history if e.type == event_type]
        return [e.to_dict() for e in history[-limit:]]

    def get_handlers(self) -> Dict[str, int]:
        """Count of registered handlers per event type ('*' for wildcard)."""
        result = {et.value: len(handlers) for et, handlers in self._handlers.items()}
        result["*"] = len(self._wildcard_handlers)
        return result

    def clear_handlers(self) -> None:
        """Remove all handlers (useful for testing)."""
        self._handlers.clear()
        self._wildcard_handlers.clear()

    def clear_history(self) -> None:
        self._history.clear()


# Global event bus instance
events = EventBus(max_history=config.live.event_history_size)
