import json
import logging
from typing import Optional

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect

from app.gateway import RealtimeGateway

logger = logging.getLogger(__name__)

router = APIRouter()


def _bearer_token(websocket: WebSocket, token: Optional[str]) -> Optional[str]:
    if token:
        return token
    authorization = websocket.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


@router.websocket("/chat")
async def websocket_chat(websocket: WebSocket, token: Optional[str] = None):
    gateway: RealtimeGateway = websocket.app.state.gateway

    connection = await gateway.connect(websocket, _bearer_token(websocket, token))
    if connection is None:
        return

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))

            data = message.get("text")
            if data is None:
                await gateway.send_error(connection, "Binary frames are not supported")
                continue

            try:
                frame = json.loads(data)
            except json.JSONDecodeError:
                await gateway.send_error(connection, "Invalid JSON format")
                continue

            await gateway.dispatch(connection, frame)
    except WebSocketDisconnect:
        pass
    finally:
        await gateway.disconnect(connection)


@router.get("/online-users")
async def get_online_users(request: Request):
    connected_users = request.app.state.registry.online_users()
    return {"online_users": connected_users, "count": len(connected_users)}
