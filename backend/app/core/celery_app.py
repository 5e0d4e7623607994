from celery import Celery
from app.core.config import settings

celery_app = Celery(
    "airrands",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND
)

# Auto-discover tasks
celery_app.autodiscover_tasks(packages=["app.tasks"], related_name="notification_tasks")

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    broker_connection_retry_on_startup=True,
    task_acks_late=True,
    worker_prefetch_multiplier=4,
)
