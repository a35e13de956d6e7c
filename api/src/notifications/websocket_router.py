"""WebSocket API for real-time notifications.

Provides:
- WS /ws/notifications - Notification stream (certificate issued, ...)
"""

import asyncio
import contextlib
import json

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from src.auth.dependencies import authenticate_websocket
from src.core.logging import get_logger
from src.core.redis import get_redis, notification_channel

from .service import WORKER_ID, get_connection_manager


logger = get_logger(__name__)

router = APIRouter(tags=["notifications-ws"])

PING_INTERVAL_SECONDS = 30


async def redis_subscriber(user_id: str, websocket: WebSocket) -> None:
    """Forward notifications published by other workers to the socket."""
    redis_client = get_redis()
    if not redis_client:
        return

    pubsub = redis_client.pubsub()
    channel = notification_channel(user_id)

    try:
        await pubsub.subscribe(channel)
        logger.info("subscribed_to_channel", user_id=user_id, channel=channel)

        while True:
            message = await pubsub.get_message(
                ignore_subscribe_messages=True, timeout=1.0
            )
            if message and message["type"] == "message":
                try:
                    data = json.loads(message["data"])
                except json.JSONDecodeError:
                    logger.warning("notification_relay_invalid_json", user_id=user_id)
                    continue
                # Sockets on this worker were served directly
                if data.pop("origin", None) != WORKER_ID:
                    await websocket.send_json(data)

            await asyncio.sleep(0.1)

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning("redis_subscriber_error", user_id=user_id, error=str(e))
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
        logger.info("unsubscribed_from_channel", user_id=user_id, channel=channel)


@router.websocket("/ws/notifications")
async def notifications_websocket(
    websocket: WebSocket,
    token: str = Query(..., description="JWT access token"),
) -> None:
    """WebSocket endpoint for real-time notifications.

    Connect with: ws://host/ws/notifications?token=<jwt_token>

    Messages received:
    - {"type": "connected", ...} - Stream ready
    - {"type": "notification", "level", "message", "detail", "created_at"}
    - {"type": "ping"} - Keep-alive ping (every 30s)

    Messages you can send:
    - {"type": "ping"} / {"type": "pong"}
    """
    user_id = authenticate_websocket(token)
    if not user_id:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    user_id_str = str(user_id)
    manager = get_connection_manager()

    await websocket.accept()
    manager.register(user_id_str, websocket)

    subscriber_task = None
    if get_redis():
        subscriber_task = asyncio.create_task(redis_subscriber(user_id_str, websocket))

    try:
        await websocket.send_json(
            {
                "type": "connected",
                "user_id": user_id_str,
                "message": "Connected to notifications stream",
            }
        )

        while True:
            try:
                message = await asyncio.wait_for(
                    websocket.receive_json(),
                    timeout=PING_INTERVAL_SECONDS,
                )
                if message.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})
            except TimeoutError:
                await websocket.send_json({"type": "ping"})

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning("websocket_error", user_id=user_id_str, error=str(e))
    finally:
        if subscriber_task and not subscriber_task.done():
            subscriber_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await subscriber_task

        manager.disconnect(user_id_str, websocket)
