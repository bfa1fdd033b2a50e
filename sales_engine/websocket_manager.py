"""
WebSocket connection management for live sales updates.

Provides room-based subscriptions and broadcast for pushing ingested sales
and refreshed aggregates to connected dashboards.

Usage:
    from sales_engine.websocket_manager import manager

    # In WebSocket endpoint
    conn = await manager.connect(websocket, room="sales")

    # Broadcast to all sales dashboard clients
    await manager.broadcast("sales", WebSocketEvent.SALE_INGESTED, {"orderId": "A-1"})
"""
import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import WebSocket

from sales_engine.config import config
from sales_engine.observability import get_logger

logger = get_logger(__name__)

SALE_CONFIRMED_ACTION = "sale_confirmed"


class WebSocketEvent(Enum):
    """Events that can be sent via WebSocket."""

    # Sales events
    SALE_INGESTED = "sale_ingested"
    SALE_REJECTED = "sale_rejected"
    SNAPSHOT_LOADED = "snapshot_loaded"

    # System events
    CONNECTED = "connected"
    PONG = "pong"
    ERROR = "error"


@dataclass
class ConnectionInfo:
    """Information about a WebSocket connection."""

    id: int
    websocket: WebSocket
    room: str
    connected_at: datetime = field(default_factory=datetime.now)
    last_activity: datetime = field(default_factory=datetime.now)
    message_count: int = 0


class ConnectionManager:
    """
    Manages WebSocket connections with room-based subscriptions.

    - Broadcast to all connections in a room
    - Dead connections are dropped on failed sends
    - Connection statistics
    """

    def __init__(self):
        # Room -> Dict of connection_id -> ConnectionInfo
        self._rooms: Dict[str, Dict[int, ConnectionInfo]] = {}
        self._lock = asyncio.Lock()
        self._total_connections = 0
        self._total_messages_sent = 0
        self._next_connection_id = 1

    async def connect(
        self, websocket: WebSocket, room: str = config.live.websocket_room
    ) -> ConnectionInfo:
        """Accept a WebSocket connection and add it to a room."""
        await websocket.accept()

        async with self._lock:
            conn_id = self._next_connection_id
            self._next_connection_id += 1

            conn_info = ConnectionInfo(id=conn_id, websocket=websocket, room=room)
            self._rooms.setdefault(room, {})[conn_id] = conn_info
            self._total_connections += 1

        logger.info(
            f"WebSocket connected to room '{room}' "
            f"(total: {self.connection_count(room)} in room)"
        )

        await self.send(
            conn_info,
            WebSocketEvent.CONNECTED,
            {"room": room, "timestamp": datetime.now().isoformat()},
        )
        return conn_info

    async def disconnect(self, conn_info: ConnectionInfo) -> None:
        """Remove a connection from its room."""
        async with self._lock:
            room = conn_info.room
            if room in self._rooms:
                self._rooms[room].pop(conn_info.id, None)
                if not self._rooms[room]:
                    del self._rooms[room]

        logger.info(
            f"WebSocket disconnected from room '{conn_info.room}' "
            f"(remaining: {self.connection_count(conn_info.room)} in room)"
        )

    async def broadcast(
        self, room: str, event: WebSocketEvent | str, data: Dict[str, Any]
    ) -> int:
        """
        Broadcast a message to all connections in a room.

        Returns:
            Number of connections that received the message
        """
        event_name = event.value if isinstance(event, WebSocketEvent) else event

        async with self._lock:
            connections = list(self._rooms.get(room, {}).values())

        if not connections:
            logger.debug(f"No connections in room '{room}' for broadcast")
            return 0

        results = await asyncio.gather(
            *[self.send(conn, event_name, data) for conn in connections],
            return_exceptions=True,
        )

        sent_count = 0
        failed_connections = []
        for conn, result in zip(connections, results):
            if result is True:
                sent_count += 1
            else:
                if isinstance(result, Exception):
                    logger.warning(f"Failed to send to connection: {result}")
                failed_connections.append(conn)

        for conn in failed_connections:
            await self.disconnect(conn)

        self._total_messages_sent += sent_count
        logger.debug(
            f"Broadcast '{event_name}' to {sent_count}/{len(connections)} "
            f"connections in room '{room}'"
        )
        return sent_count

    async def send(
        self, conn: ConnectionInfo, event: str | WebSocketEvent, data: Dict[str, Any]
    ) -> bool:
        """
        Send a message to a specific connection.

        Returns:
            True if successful, False otherwise
        """
        event_name = event.value if isinstance(event, WebSocketEvent) else event

        message = json.dumps(
            {
                "event": event_name,
                "data": data,
                "timestamp": datetime.now().isoformat(),
            },
            default=str,
        )

        try:
            await conn.websocket.send_text(message)
        except Exception as e:
            logger.debug(f"Failed to send message: {e}")
            return False

        conn.last_activity = datetime.now()
        conn.message_count += 1
        return True

    async def handle_message(
        self, conn_info: ConnectionInfo, message: str
    ) -> Optional[Dict[str, Any]]:
        """
        Handle an incoming message from a client.

        Keep-alive pings are answered directly. A sale confirmation, either
        ``{"action": "sale_confirmed", "data": {...}}`` or a bare event
        object with an ``orderId``, is returned for ingestion.

        Returns:
            Sale event payload to ingest, or None
        """
        conn_info.last_activity = datetime.now()

        if message == "ping":
            await self.send(
                conn_info, WebSocketEvent.PONG, {"timestamp": datetime.now().isoformat()}
            )
            return None

        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            logger.debug(f"Received non-JSON message: {message[:100]}")
            return None

        if not isinstance(data, dict):
            return None

        action = data.get("action")
        if action == "ping":
            await self.send(conn_info, WebSocketEvent.PONG, {})
            return None
        if action == SALE_CONFIRMED_ACTION:
            payload = data.get("data")
            return payload if isinstance(payload, dict) else None
        if action is None and "orderId" in data:
            return data

        logger.debug(f"Ignoring WebSocket action '{action}'")
        return None

    def connection_count(self, room: Optional[str] = None) -> int:
        """Number of active connections, in one room or overall."""
        if room:
            return len(self._rooms.get(room, {}))
        return sum(len(conns) for conns in self._rooms.values())

    @property
    def total_connections(self) -> int:
        """Total number of connections ever made."""
        return self._total_connections

    @property
    def total_messages_sent(self) -> int:
        return self._total_messages_sent

    def get_stats(self) -> Dict[str, Any]:
        """Connection statistics."""
        rooms_info = {}
        for room, connections in self._rooms.items():
            rooms_info[room] = {
                "count": len(connections),
                "oldest_connection": min(
                    (c.connected_at for c in connections.values()), default=None
                ),
            }

        return {
            "active_connections": self.connection_count(),
            "total_connections_ever": self._total_connections,
            "total_messages_sent": self._total_messages_sent,
            "rooms": rooms_info,
        }


# Global manager instance
manager = ConnectionManager()
