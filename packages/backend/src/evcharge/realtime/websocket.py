"""WebSocket endpoint — real-time event delivery to browser dashboards.

Learn: Each client connects to /ws (optionally ?user_id=...). The handler:
1. Registers a connection with the gateway (joins the user's room if given)
2. Forwards every queued gateway message to the socket
3. Handles ping and join-user-room messages from the client
4. Unregisters on disconnect

Authentication is the job of the app in front of this service.
"""

import asyncio
import json
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from evcharge.context import RealtimeContext, get_ws_context

router = APIRouter()


@router.websocket("/ws")
async def realtime_websocket(
    websocket: WebSocket,
    user_id: Optional[str] = None,
    ctx: RealtimeContext = Depends(get_ws_context),
):
    """WebSocket endpoint for dashboard events.

    Learn: Two concurrent tasks run:
    1. Gateway listener drains the connection queue into the socket
    2. Client listener reads client commands

    When either side finishes, both tasks are cancelled cleanly. A client
    the gateway dropped for falling behind is closed with 1013 (try again
    later) so the browser reconnects.
    """
    gateway = ctx.gateway

    async def gateway_listener():
        """Forward gateway messages to the WebSocket client."""
        try:
            while True:
                message = await conn.queue.get()
                if message is None:
                    return
                await websocket.send_text(json.dumps(message))
        except asyncio.CancelledError:
            pass

    async def client_listener():
        """Handle ping and room-join messages from the client."""
        try:
            while True:
                data = await websocket.receive_text()
                try:
                    msg = json.loads(data)
                except json.JSONDecodeError:
                    continue
                if msg.get("type") == "ping":
                    await websocket.send_text(json.dumps({"type": "pong"}))
                elif msg.get("type") == "join-user-room" and msg.get("userId"):
                    gateway.join_room(conn, str(msg["userId"]))
        except (WebSocketDisconnect, asyncio.CancelledError):
            pass

    conn = gateway.connect(user_id=user_id)
    try:
        await websocket.accept()
        relay_task = asyncio.create_task(gateway_listener())
        client_task = asyncio.create_task(client_listener())
        done, pending = await asyncio.wait(
            [relay_task, client_task],
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
    finally:
        gateway.disconnect(conn)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close(code=1013 if conn.dropped else 1000)
