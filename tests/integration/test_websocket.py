"""
Integration tests for WebSocket functionality.

Tests:
- Connection management
- Room-based broadcasting
- Client message handling (ping, sale confirmations)
- Live sale flow through /ws/sales
"""
import json
import pytest
from unittest.mock import AsyncMock

from fastapi import WebSocket
from fastapi.testclient import TestClient

from sales_engine.events import AnalyticsEvent, events
from sales_engine.websocket_manager import ConnectionManager, WebSocketEvent
from web.main import app
from web.routes.api._deps import limiter
from web.services.analytics_service import reset_analytics_service
from tests.conftest import local_iso


class TestConnectionManager:
    """Tests for WebSocket ConnectionManager."""

    @pytest.fixture
    def manager(self):
        """Fresh ConnectionManager instance for each test."""
        return ConnectionManager()

    @pytest.fixture
    def mock_websocket(self):
        ws = AsyncMock(spec=WebSocket)
        ws.accept = AsyncMock()
        ws.send_text = AsyncMock()
        return ws

    @pytest.mark.asyncio
    async def test_connect_defaults_to_sales_room(self, manager, mock_websocket):
        conn_info = await manager.connect(mock_websocket)

        mock_websocket.accept.assert_called_once()
        assert conn_info.room == "sales"
        assert manager.connection_count("sales") == 1

    @pytest.mark.asyncio
    async def test_connect_sends_welcome_message(self, manager, mock_websocket):
        await manager.connect(mock_websocket, room="sales")

        parsed = json.loads(mock_websocket.send_text.call_args[0][0])
        assert parsed["event"] == "connected"
        assert parsed["data"]["room"] == "sales"

    @pytest.mark.asyncio
    async def test_disconnect_cleans_up_empty_rooms(self, manager, mock_websocket):
        conn_info = await manager.connect(mock_websocket, room="sales")
        await manager.disconnect(conn_info)

        assert manager.connection_count("sales") == 0
        assert "sales" not in manager._rooms

    @pytest.mark.asyncio
    async def test_broadcast_reaches_room_only(self, manager):
        in_room = [AsyncMock(spec=WebSocket) for _ in range(2)]
        elsewhere = AsyncMock(spec=WebSocket)
        for ws in in_room:
            await manager.connect(ws, room="sales")
        await manager.connect(elsewhere, room="other")
        elsewhere.send_text.reset_mock()

        sent = await manager.broadcast("sales", WebSocketEvent.SALE_INGESTED, {"orderId": "A-1"})

        assert sent == 2
        elsewhere.send_text.assert_not_called()
        parsed = json.loads(in_room[0].send_text.call_args[0][0])
        assert parsed["event"] == "sale_ingested"
        assert parsed["data"] == {"orderId": "A-1"}

    @pytest.mark.asyncio
    async def test_broadcast_drops_dead_connections(self, manager, mock_websocket):
        dead = AsyncMock(spec=WebSocket)
        await manager.connect(mock_websocket, room="sales")
        await manager.connect(dead, room="sales")
        dead.send_text.side_effect = RuntimeError("closed")

        sent = await manager.broadcast("sales", WebSocketEvent.SNAPSHOT_LOADED, {})

        assert sent == 1
        assert manager.connection_count("sales") == 1

    @pytest.mark.asyncio
    async def test_broadcast_to_empty_room(self, manager):
        assert await manager.broadcast("sales", WebSocketEvent.SALE_INGESTED, {}) == 0

    @pytest.mark.asyncio
    async def test_ping_answered_with_pong(self, manager, mock_websocket):
        conn_info = await manager.connect(mock_websocket)

        assert await manager.handle_message(conn_info, "ping") is None
        parsed = json.loads(mock_websocket.send_text.call_args[0][0])
        assert parsed["event"] == "pong"

        assert await manager.handle_message(conn_info, json.dumps({"action": "ping"})) is None

    @pytest.mark.asyncio
    async def test_sale_confirmed_returns_payload(self, manager, mock_websocket):
        conn_info = await manager.connect(mock_websocket)
        message = json.dumps({"action": "sale_confirmed", "data": {"orderId": "A-1"}})

        assert await manager.handle_message(conn_info, message) == {"orderId": "A-1"}

    @pytest.mark.asyncio
    async def test_bare_sale_event_returns_payload(self, manager, mock_websocket):
        conn_info = await manager.connect(mock_websocket)
        message = json.dumps({"orderId": "A-2", "method": "stripe"})

        assert await manager.handle_message(conn_info, message) == {"orderId": "A-2", "method": "stripe"}

    @pytest.mark.asyncio
    async def test_unknown_messages_ignored(self, manager, mock_websocket):
        conn_info = await manager.connect(mock_websocket)

        assert await manager.handle_message(conn_info, "not json") is None
        assert await manager.handle_message(conn_info, "[1, 2]") is None
        assert await manager.handle_message(conn_info, json.dumps({"action": "subscribe"})) is None

    @pytest.mark.asyncio
    async def test_stats(self, manager, mock_websocket):
        await manager.connect(mock_websocket, room="sales")
        stats = manager.get_stats()

        assert stats["active_connections"] == 1
        assert stats["total_connections_ever"] == 1
        assert stats["rooms"]["sales"]["count"] == 1


class TestSalesWebSocketEndpoint:
    """Tests for the /ws/sales endpoint."""

    @pytest.fixture
    def client(self, fixed_clock):
        reset_analytics_service(clock=fixed_clock)
        limiter.enabled = False
        with TestClient(app) as client:
            yield client
        limiter.enabled = True

    @pytest.fixture
    def sale_event(self):
        return {
            "orderId": "ord-ws-1",
            "method": "stripe",
            "status": "paid",
            "amount": 1800,
            "timestamp": local_iso(2026, 6, 17, 13),
            "items": [{"productId": "p-hammer", "productName": "Claw Hammer", "quantity": 1, "price": 1800}],
        }

    def test_connect_and_ping(self, client):
        with client.websocket_connect("/ws/sales") as ws:
            assert ws.receive_json()["event"] == "connected"
            ws.send_text("ping")
            assert ws.receive_json()["event"] == "pong"

    def test_sale_broadcast_with_refreshed_aggregates(self, client, sale_event):
        with client.websocket_connect("/ws/sales") as ws:
            ws.receive_json()
            ws.send_text(json.dumps({"action": "sale_confirmed", "data": sale_event}))

            message = ws.receive_json()
            assert message["event"] == "sale_ingested"
            assert message["data"]["sale"]["orderId"] == "ord-ws-1"
            assert message["data"]["sale"]["channel"] == "online"
            assert message["data"]["sales"]["buckets"][-1]["key"] == "2026-06-W3"
            assert message["data"]["sales"]["buckets"][-1]["totalSales"] == 1800
            assert message["data"]["orders"]["liveOrders"] == 1

        ingested = events.get_history(AnalyticsEvent.SALE_INGESTED)[-1]
        assert ingested["data"]["orderId"] == "ord-ws-1"
        assert ingested["metadata"]["correlation_id"].startswith("ws")

    def test_rejected_sale_answered_to_sender(self, client, sale_event):
        sale_event["supplierId"] = "sup-1"
        with client.websocket_connect("/ws/sales") as ws:
            ws.receive_json()
            ws.send_text(json.dumps(sale_event))

            message = ws.receive_json()
            assert message["event"] == "sale_rejected"
            assert message["data"]["reason"] == "not_recognized"

    def test_stats_endpoint(self, client):
        response = client.get("/ws/stats")
        assert response.status_code == 200
        assert "active_connections" in response.json()
