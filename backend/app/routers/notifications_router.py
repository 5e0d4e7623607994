from fastapi import APIRouter, Depends, Query

from app.core.auth import get_current_caller
from app.core.firebase import get_db
from app.models.notification_model import NotificationPreferences, SendNotificationRequest
from app.models.user_model import Caller
from app.services.notification_service import (
    NotificationDispatcher,
    get_dispatcher,
    list_notifications,
    mark_all_read,
    mark_read,
    unread_count,
    update_preferences,
)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.post("/send")
async def send_push_notification(
    payload: SendNotificationRequest,
    caller: Caller = Depends(get_current_caller),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = await dispatcher.notify(payload.user_id, payload.title, payload.body, payload.type, payload.data)
    return result.model_dump(by_alias=True)


@router.put("/preferences")
async def update_notification_preferences(
    preferences: NotificationPreferences,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_db),
):
    update_preferences(db, caller.uid, preferences)
    return {"success": True, "message": "Notification preferences updated"}


@router.get("/")
async def get_notifications(
    limit: int = Query(default=50, ge=1, le=200),
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_db),
):
    return list_notifications(db, caller.uid, limit)


@router.get("/unread-count")
async def get_unread_count(caller: Caller = Depends(get_current_caller), db=Depends(get_db)):
    return {"count": unread_count(db, caller.uid)}


@router.patch("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_db),
):
    mark_read(db, caller.uid, notification_id)
    return {"success": True, "message": "Marked as read"}


@router.post("/read-all")
async def mark_all_notifications_read(caller: Caller = Depends(get_current_caller), db=Depends(get_db)):
    updated = await mark_all_read(db, caller.uid)
    return {"success": True, "updated": updated}
