from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..utils.realtime import manager

router = APIRouter()


@router.websocket("/ws")
async def events(websocket: WebSocket):
    """Push-only channel; anything the client sends is ignored."""
    await manager.connect(websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)
