from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from livequiz.dependencies import get_coordinator
from livequiz.services.coordinator import SessionCoordinator

router = APIRouter()


@router.websocket("/ws")
async def quiz_socket(websocket: WebSocket, coordinator: SessionCoordinator = Depends(get_coordinator)):
    await websocket.accept()
    connection_id = await coordinator.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            await coordinator.handle_message(connection_id, raw)
    except WebSocketDisconnect:
        return
    finally:
        await coordinator.disconnect(connection_id)
