# core/auth.py
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from firebase_admin import auth
from typing import Optional
import logging

from app.core.errors import Unauthenticated, PermissionDenied
from app.core.firebase import get_db, init_firebase
from app.models.user_model import Caller

logger = logging.getLogger("airrands")
bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Caller:
    """
    Returns the authenticated caller for this request.
    Raises 401 if the Firebase ID token is missing or invalid.
    """
    if not credentials:
        raise Unauthenticated()

    # Token checks need the default Firebase app even before any store access
    init_firebase()
    try:
        decoded = auth.verify_id_token(credentials.credentials)
    except Exception as e:
        logger.warning(f"Token verification failed: {e}")
        raise Unauthenticated("Invalid authentication token")

    uid = decoded.get("uid")
    if not uid:
        raise Unauthenticated("Invalid token payload")

    return Caller(uid=uid, email=decoded.get("email"), is_admin=bool(decoded.get("admin")))


def is_admin(db, caller: Caller) -> bool:
    if caller.is_admin:
        return True
    return db.collection("admins").document(caller.uid).get().exists


async def require_admin(
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_db),
) -> Caller:
    """
    Guard for dashboard routes: caller must carry the `admin` claim
    or have a document in the `admins` collection.
    """
    if not is_admin(db, caller):
        logger.warning(f"Admin route refused for {caller.uid}")
        raise PermissionDenied()
    return caller.model_copy(update={"is_admin": True})
