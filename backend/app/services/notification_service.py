# services/notification_service.py
import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from fastapi import Depends
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from app.core.errors import DeviceNotRegistered, InvalidArgument, NotFoundError, UpstreamError
from app.core.firebase import get_db
from app.models.notification_model import (
    NOTIFICATION_TYPES,
    NotificationPreferences,
    NotificationRecord,
    NotifyResult,
    channel_for,
)
from app.models.payment_model import utcnow
from app.models.user_model import UserProfile
from app.services.push_relay import ExpoPushClient
from app.utils.firebase import commit_batch, firestore_run

logger = logging.getLogger("airrands.notifications")


def notifications_ref(db, user_id: str):
    return db.collection("users").document(user_id).collection("notifications")


class NotificationDispatcher:
    """
    Delivers one notification to one user.

    Push is best-effort: relay failures are logged and dropped. The in-app
    record under users/{uid}/notifications is the source of truth for badges,
    so a failure to write it propagates to the caller.
    """

    def __init__(self, db, push_client: Optional[ExpoPushClient] = None):
        self.db = db
        self.push_client = push_client or ExpoPushClient()

    async def notify(
        self,
        user_id: str,
        title: str,
        body: str,
        category: str = "general",
        payload: Optional[Dict[str, Any]] = None,
    ) -> NotifyResult:
        if not user_id or not title or not body:
            raise InvalidArgument("User ID, title, and body are required")
        if category not in NOTIFICATION_TYPES:
            raise InvalidArgument(f"Unknown notification type: {category}")
        payload = dict(payload or {})

        user_ref = self.db.collection("users").document(user_id)
        user_doc = await firestore_run(user_ref.get)
        user = user_doc.to_dict() if user_doc.exists else {}
        if not user_doc.exists:
            logger.warning(f"Notifying unknown user {user_id}; storing in-app record only")

        profile = UserProfile.model_validate({
            **user,
            "id": user_id,
            "notificationPreferences": user.get("notificationPreferences") or {},
        })
        preferences = profile.notification_preferences
        push_token = profile.expo_push_token

        pushed = False
        message = "Notification sent successfully"
        if not preferences.allows(category):
            message = "Push skipped (disabled by user)"
        elif not push_token:
            message = "No push token available"
        else:
            pushed = await self._push(user_ref, push_token, title, body, category, payload)
            if not pushed:
                message = "Push delivery failed; in-app notification stored"

        record = NotificationRecord(
            user_id=user_id,
            type=category,
            title=title,
            body=body,
            data=payload,
        )
        data = record.to_firestore()
        data.pop("id", None)
        _, ref = await firestore_run(notifications_ref(self.db, user_id).add, data)

        return NotifyResult(pushed=pushed, notification_id=ref.id, message=message)

    async def _push(self, user_ref, token, title, body, category, payload) -> bool:
        try:
            await self.push_client.send(
                token,
                title,
                body,
                data={**payload, "type": category},
                channel_id=channel_for(category),
            )
            return True
        except DeviceNotRegistered:
            logger.info(f"Clearing dead push token for {user_ref.id}")
            try:
                await firestore_run(user_ref.update, {"expoPushToken": None, "tokenUpdatedAt": utcnow()})
            except Exception as e:
                logger.error(f"Failed to clear push token for {user_ref.id}: {e}")
        except UpstreamError as e:
            logger.error(f"Push notification errors for {user_ref.id}: {e}")
        except Exception as e:
            logger.error(f"Unexpected push failure for {user_ref.id}: {e}", exc_info=True)
        return False

    async def notify_safely(self, user_id: str, title: str, body: str, category: str = "general",
                            payload: Optional[Dict[str, Any]] = None) -> Optional[NotifyResult]:
        """For follow-ups to a committed state change: never raises."""
        try:
            return await self.notify(user_id, title, body, category, payload)
        except Exception as e:
            logger.error(f"Notification to {user_id} failed: {e}", exc_info=True)
            return None

    async def send_to_many(self, user_ids: Iterable[str], title: str, body: str, category: str = "general",
                           payload: Optional[Dict[str, Any]] = None) -> Dict[str, Optional[NotifyResult]]:
        """Fan-out; one recipient failing does not affect the others."""
        recipients = list(dict.fromkeys(uid for uid in user_ids if uid))
        results = await asyncio.gather(
            *(self.notify_safely(uid, title, body, category, payload) for uid in recipients)
        )
        return dict(zip(recipients, results))


# ========================================
# READ / PREFERENCE HELPERS
# ========================================
def list_notifications(db, user_id: str, limit: int = 50) -> List[dict]:
    query = (
        notifications_ref(db, user_id)
        .order_by("createdAt", direction=firestore.Query.DESCENDING)
        .limit(limit)
    )
    return [{"id": doc.id, **doc.to_dict()} for doc in query.stream()]


def unread_count(db, user_id: str) -> int:
    query = notifications_ref(db, user_id).where(filter=FieldFilter("read", "==", False))
    return sum(1 for _ in query.stream())


def mark_read(db, user_id: str, notification_id: str):
    ref = notifications_ref(db, user_id).document(notification_id)
    if not ref.get().exists:
        raise NotFoundError("Notification not found")
    ref.update({"read": True, "readAt": utcnow()})


async def mark_all_read(db, user_id: str) -> int:
    unread = list(notifications_ref(db, user_id).where(filter=FieldFilter("read", "==", False)).stream())
    if not unread:
        return 0
    now = utcnow()
    batch = db.batch()
    for doc in unread:
        batch.update(doc.reference, {"read": True, "readAt": now})
    await commit_batch(batch, "notifications")
    return len(unread)


def update_preferences(db, user_id: str, preferences: NotificationPreferences):
    """A caller may only touch their own preferences; user_id comes from the auth context."""
    db.collection("users").document(user_id).set(
        {"notificationPreferences": preferences.model_dump(), "updatedAt": utcnow()},
        merge=True,
    )


# ========================================
# FASTAPI DEPENDENCIES
# ========================================
def get_push_client() -> ExpoPushClient:
    return ExpoPushClient()


def get_dispatcher(db=Depends(get_db), push_client: ExpoPushClient = Depends(get_push_client)) -> NotificationDispatcher:
    return NotificationDispatcher(db, push_client)


__all__ = [
    "NotificationDispatcher",
    "get_dispatcher",
    "get_push_client",
    "list_notifications",
    "mark_all_read",
    "mark_read",
    "unread_count",
    "update_preferences",
]
