import json
import base64
import logging
import threading
from functools import lru_cache

from firebase_admin import credentials, initialize_app, get_app, firestore
from app.core.config import settings

logger = logging.getLogger("airrands")
_init_lock = threading.Lock()


def init_firebase():
    with _init_lock:
        try:
            get_app()
        except ValueError:
            _initialize_app()


def _initialize_app():
    if settings.FIREBASE_CREDENTIALS_B64:
        try:
            decoded_json = base64.b64decode(settings.FIREBASE_CREDENTIALS_B64).decode("utf-8")
            service_account_info = json.loads(decoded_json)
        except Exception as e:
            raise RuntimeError(f"Failed to decode or parse FIREBASE_CREDENTIALS_B64: {e}")

        project_id = service_account_info.get("project_id")
        if not project_id:
            raise ValueError("'project_id' missing in Firebase service account JSON")

        initialize_app(credentials.Certificate(service_account_info))
        logger.info(f"Firebase Admin SDK initialized | Project: {project_id}")
        return

    if settings.GOOGLE_APPLICATION_CREDENTIALS:
        initialize_app(credentials.Certificate(settings.GOOGLE_APPLICATION_CREDENTIALS))
    else:
        # Application default credentials (Cloud Run, emulator, gcloud auth)
        initialize_app()
    logger.info("Firebase Admin SDK initialized")


@lru_cache(maxsize=1)
def get_db():
    """
    Lazily initialise Firebase and return the shared Firestore client.
    Used as a FastAPI dependency so tests can override it.
    """
    init_firebase()
    try:
        db = firestore.client()
        logger.info("Firestore client ready")
        return db
    except Exception as e:
        logger.error(f"Failed to initialize Firestore client: {e}")
        raise


__all__ = ["get_db", "init_firebase"]
