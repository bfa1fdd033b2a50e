"""
WebSocket routes for live sales updates.

Provides endpoints for:
- /ws/sales - Push sale confirmations in, receive refreshed aggregates
"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from sales_engine.observability import correlation_context, get_logger
from sales_engine.websocket_manager import manager, WebSocketEvent
from web.config import SALES_ROOM
from web.services.analytics_service import get_analytics_service

router = APIRouter(tags=["websocket"])
logger = get_logger(__name__)


@router.websocket("/ws/sales")
async def sales_websocket(websocket: WebSocket):
    """
    WebSocket endpoint for live sales.

    Client can send:
    - "ping" for keep-alive (responds with "pong")
    - JSON: {"action": "sale_confirmed", "data": {...sale event...}}

    Accepted sales are broadcast to the room as "sale_ingested" together
    with refreshed aggregates; rejected ones are answered with
    "sale_rejected" to the sender only.
    """
    conn_info = await manager.connect(websocket, room=SALES_ROOM)

    try:
        while True:
            try:
                message = await websocket.receive_text()
            except WebSocketDisconnect:
                logger.debug("Client disconnected normally")
                break

            with correlation_context(f"ws{conn_info.id}-{conn_info.message_count}"):
                payload = await manager.handle_message(conn_info, message)
                if payload is None:
                    continue

                service = get_analytics_service()
                result = await service.live_orders.ingest_and_publish(payload)
                if not result.accepted:
                    await manager.send(
                        conn_info, WebSocketEvent.SALE_REJECTED, result.to_dict()
                    )

    except Exception as e:
        logger.error(f"WebSocket error: {e}")
    finally:
        await manager.disconnect(conn_info)


@router.get("/ws/stats")
async def get_websocket_stats():
    """WebSocket connection statistics."""
    return manager.get_stats()
