import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from taskboard.database import get_db
from taskboard.schemas.common import MessageResponse, Pagination, clamp_page
from taskboard.schemas.notification import (
    DeletedCount,
    NotificationEnvelope,
    NotificationList,
    UnreadCount,
    UpdatedCount,
)
from taskboard.services.notification_service import count_unread
from taskboard.services.sse_registry import SSEChannel
from taskboard.utils.auth import bearer_scheme, get_current_identity, get_services
from taskboard.utils.permissions import Identity

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.get("", response_model=NotificationList)
async def get_user_notifications(
    page: int = Query(1),
    limit: int = Query(50),
    unread_only: bool = Query(False, alias="unreadOnly"),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    """Get notifications for the current user, newest first"""
    page, limit = clamp_page(page, limit, default_limit=50)
    notifications, total, unread = services.notifications.list_for_user(db, identity.id, page, limit, unread_only)
    return {
        "notifications": notifications,
        "unread_count": unread,
        "pagination": Pagination.build(page, limit, total),
    }


@router.get("/unread/count", response_model=UnreadCount)
async def get_unread_count(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)):
    return {"unread_count": count_unread(db, identity.id)}


@router.get("/stream")
async def notification_stream(
    request: Request,
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    """
    Server-Sent Events feed of the caller's notifications.

    EventSource cannot set headers, so the token comes in the query string;
    an Authorization header is accepted as well.
    """
    if not token:
        credentials = await bearer_scheme(request)
        token = credentials.credentials if credentials else None
    identity = services.auth.authenticate(db, token)
    db.close()

    registry = services.registry
    channel = SSEChannel(identity.id)
    heartbeat = services.settings.SSE_HEARTBEAT_SECONDS

    async def event_source():
        # Registered only once streaming starts so the finally below always pairs with it
        registry.register(identity.id, channel)
        try:
            async for frame in channel.frames(heartbeat):
                yield frame
        finally:
            registry.unregister(identity.id, channel)

    return StreamingResponse(event_source(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.put("/read/all", response_model=UpdatedCount)
async def mark_all_notifications_read(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    updated = services.notifications.mark_all_as_read(db, identity.id)
    return {"message": "All notifications marked as read", "updated_count": updated}


@router.get("/{notification_id}", response_model=NotificationEnvelope)
async def get_notification(
    notification_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    notification = services.notifications.get_owned(
        db, identity, notification_id, "Access denied. You can only view your own notifications."
    )
    return {"notification": notification}


@router.put("/{notification_id}/read", response_model=NotificationEnvelope)
async def mark_notification_read(
    notification_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    notification = services.notifications.get_owned(
        db, identity, notification_id, "Access denied. You can only mark your own notifications as read."
    )
    notification = services.notifications.mark_as_read(db, notification)
    return {"message": "Notification marked as read", "notification": notification}


@router.delete("/{notification_id}", response_model=MessageResponse)
async def delete_notification(
    notification_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    notification = services.notifications.get_owned(
        db, identity, notification_id, "Access denied. You can only delete your own notifications."
    )
    services.notifications.delete(db, notification)
    return {"message": "Notification deleted successfully"}


@router.delete("", response_model=DeletedCount)
async def delete_all_notifications(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    services=Depends(get_services),
):
    deleted = services.notifications.delete_all(db, identity.id)
    return {"message": "All notifications deleted successfully", "deleted_count": deleted}
