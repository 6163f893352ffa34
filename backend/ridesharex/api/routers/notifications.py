import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from ridesharex.api.dependencies import get_current_user, user_from_token
from ridesharex.db.session import get_db
from ridesharex.db import crud_notifications
from ridesharex.realtime.manager import manager
from ridesharex.schemas.workflow import NotificationOut

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def list_notifications(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
):
    items, total, unread = await crud_notifications.list_notifications_for_user(
        db,
        current_user.id,
        unread_only=unread_only,
        page=page,
        per_page=per_page,
    )
    return {
        "items": [NotificationOut.model_validate(n) for n in items],
        "total": total,
        "unread": unread,
        "page": page,
        "per_page": per_page,
    }


@router.patch("/read-all")
async def mark_all_notifications_read(
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    updated = await crud_notifications.mark_all_read(db, current_user.id)
    return {"success": True, "updated": updated}


@router.patch("/{notification_id}/read")
async def mark_notification_read(
    notification_id: int,
    db: AsyncSession = Depends(get_db),
    current_user=Depends(get_current_user),
):
    notification = await crud_notifications.mark_read(db, notification_id, current_user.id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"success": True, "data": NotificationOut.model_validate(notification)}


def _bearer_from_protocols(websocket: WebSocket) -> tuple[str | None, str | None]:
    """
    Token travels in Sec-WebSocket-Protocol as "bearer.<token>", never in
    the query string. Returns (token, subprotocol to echo back).
    """
    protocols = websocket.headers.get("sec-websocket-protocol", "")
    for proto in protocols.split(","):
        proto = proto.strip()
        if proto.startswith("bearer."):
            return proto[len("bearer."):], proto
    return None, None


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket, db: AsyncSession = Depends(get_db)):
    """
    Live notifications. Each connection joins the room user:{id}.
    """
    token, subprotocol = _bearer_from_protocols(websocket)
    user = await user_from_token(db, token) if token else None
    # release the DB connection; the socket may stay open for hours
    await db.close()
    if user is None:
        await websocket.close(code=4001, reason="Authentication required")
        return

    publisher = getattr(websocket.app.state, "connection_manager", manager)
    await websocket.accept(subprotocol=subprotocol)
    await publisher.connect(user.id, websocket)
    try:
        await websocket.send_json({"type": "connected", "data": {"user_id": user.id}})
        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.debug("Websocket closed for user %s", user.id)
    finally:
        await publisher.disconnect(user.id, websocket)
