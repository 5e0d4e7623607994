# core/config.py
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ────────────────────────────────
    # 1. APP & ENVIRONMENT
    # ────────────────────────────────
    PROJECT_NAME: str = "Airrands"
    ENVIRONMENT: str = Field(default="development")
    DEBUG: bool = Field(default=True)
    BACKEND_URL: str = "http://127.0.0.1:8000"
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "https://admin.airrands.com",
    ]

    # ────────────────────────────────
    # 2. FIREBASE / FIRESTORE
    # ────────────────────────────────
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = Field(
        default=None,
        description="Path to Firebase service account JSON",
    )
    FIREBASE_CREDENTIALS_B64: Optional[str] = Field(
        default=None,
        description="Base64-encoded Firebase service account JSON",
    )

    # ────────────────────────────────
    # 3. PAYSTACK
    # ────────────────────────────────
    PAYSTACK_SECRET_KEY: str = Field(...)
    PAYSTACK_BASE_URL: str = "https://api.paystack.co"

    # ────────────────────────────────
    # 4. PUSH RELAY (Expo)
    # ────────────────────────────────
    EXPO_PUSH_URL: str = "https://exp.host/--/api/v2/push/send"
    EXPO_ACCESS_TOKEN: Optional[str] = None
    HTTP_TIMEOUT_SECONDS: float = 15.0

    # ────────────────────────────────
    # 5. TASK QUEUE (Celery)
    # ────────────────────────────────
    CELERY_BROKER_URL: str = Field(default="redis://localhost:6379/0")
    CELERY_RESULT_BACKEND: str = Field(default="redis://localhost:6379/0")
    ENABLE_TRIGGER_WATCHERS: bool = False

    # ────────────────────────────────
    # 6. EMAIL (Resend)
    # ────────────────────────────────
    RESEND_API_KEY: Optional[str] = None
    EMAIL_FROM: str = "Airrands <no-reply@airrands.com>"

    class Config:
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"


# Create singleton
settings = Settings()
