from pydantic import BaseModel, Field
from typing import Optional

from app.models.payment_model import FirestoreModel
from app.models.notification_model import NotificationPreferences


class UserProfile(FirestoreModel):
    """Generic profile shared by buyers, sellers and runners."""

    # ---------------- Profile ----------------
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: Optional[str] = None
    is_online: bool = False

    # ---------------- Push ----------------
    expo_push_token: Optional[str] = None
    notification_preferences: NotificationPreferences = Field(default_factory=NotificationPreferences)

    # ---------------- Verification ----------------
    verification_status: Optional[str] = None


class Caller(BaseModel):
    """The authenticated identity behind one request. Passed explicitly, never global."""
    uid: str
    email: Optional[str] = None
    is_admin: bool = False
