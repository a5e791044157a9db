from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketDisconnect

from app.core.security import parse_bearer

router = APIRouter()


@router.websocket("/ws")
async def realtime_ws(websocket: WebSocket) -> None:
    gateway = getattr(websocket.app.state, "realtime_gateway", None)
    if gateway is None:
        await websocket.close(code=1011, reason="Realtime gateway not initialized")
        return

    token = websocket.query_params.get("token", "").strip() or parse_bearer(
        websocket.headers.get("authorization")
    )
    session = await gateway.open(websocket, token)
    try:
        while True:
            raw_frame = await websocket.receive_text()
            await gateway.handle_frame(session, raw_frame)
    except WebSocketDisconnect:
        return
    finally:
        await gateway.close(session)
