# models/notification_model.py
from pydantic import BaseModel, Field
from typing import Any, Dict, Literal, Optional
from datetime import datetime

from app.models.payment_model import FirestoreModel, utcnow

NotificationType = Literal["payment", "verification", "order", "message", "errand", "general"]
NOTIFICATION_TYPES = ("payment", "verification", "order", "message", "errand", "general")

# Category -> preference flag the user can switch off.
PREFERENCE_KEYS = {
    "payment": "payments",
    "order": "orders",
    "message": "messages",
    "errand": "errands",
}

# Category -> Android notification channel registered by the mobile app.
CHANNELS = {
    "order": "orders",
    "message": "messages",
    "payment": "payments",
    "errand": "errands",
}


def preference_key(category: str) -> str:
    return PREFERENCE_KEYS.get(category, "general")


def channel_for(category: str) -> str:
    return CHANNELS.get(category, "default")


class NotificationPreferences(BaseModel):
    orders: bool = True
    messages: bool = True
    payments: bool = True
    errands: bool = True
    general: bool = True

    def allows(self, category: str) -> bool:
        return getattr(self, preference_key(category))


class NotificationRecord(FirestoreModel):
    """In-app notification; lives under users/{uid}/notifications."""
    id: Optional[str] = None
    user_id: str
    type: NotificationType = "general"
    title: str
    body: str
    read: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    read_at: Optional[datetime] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class SendNotificationRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    title: Optional[str] = None
    body: Optional[str] = None
    type: str = "general"
    data: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


class NotifyResult(BaseModel):
    success: bool = True
    pushed: bool = False
    notification_id: Optional[str] = Field(default=None, serialization_alias="notificationId")
    message: str = "Notification sent successfully"
