from fastapi import APIRouter, WebSocket
from config import settings

router = APIRouter()

@router.websocket(settings.WS_PATH)
async def notifications_ws(websocket: WebSocket):
    # Authentication, registration and cleanup live in the gatekeeper
    await websocket.app.state.gatekeeper.serve(websocket)
