from fastapi import APIRouter, Depends, HTTPException, Request, status
from models.user import User as UserModel
from realtime import ConnectionRegistry
from schemas.notification import BroadcastRequest, ConnectionsOut
from security import require_admin
from services.broadcaster import NotificationBroadcaster

router = APIRouter()

def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.registry

def get_broadcaster(request: Request) -> NotificationBroadcaster:
    return request.app.state.broadcaster

@router.post("/broadcast", status_code=status.HTTP_202_ACCEPTED)
async def broadcast_notification(
    body: BroadcastRequest,
    current_user: UserModel = Depends(require_admin),
    broadcaster: NotificationBroadcaster = Depends(get_broadcaster),
):
    """Queue a notification for every connected member of a role (admin only)"""
    role = body.role or broadcaster.admin_role
    if not broadcaster.submit(body.type, role, body.payload):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Notification queue is full")
    return {"queued": True, "type": body.type, "role": role}

@router.get("/connections", response_model=ConnectionsOut)
async def list_connections(
    current_user: UserModel = Depends(require_admin),
    registry: ConnectionRegistry = Depends(get_registry),
):
    """Users currently reachable over the websocket"""
    identities = sorted(registry.identities())
    return {"count": len(identities), "identities": identities}
