import asyncio
import logging
from celery import shared_task
from google.api_core.exceptions import GoogleAPICallError

from app.core.firebase import get_db
from app.services.notification_service import NotificationDispatcher
from app.services.triggers import handle_errand_created, handle_message_created, handle_order_updated

logger = logging.getLogger("airrands.tasks")

RETRY_POLICY = dict(
    bind=True,
    max_retries=3,
    # Store outages are retried; bad input is not
    autoretry_for=(GoogleAPICallError,),
    # Exponential backoff: 60s, 120s, 240s
    retry_backoff=60,
    retry_jitter=True,
)


def _dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(get_db())


@shared_task(**RETRY_POLICY)
def order_status_changed_task(self, order_id: str, before: dict, after: dict):
    """Wrapper to run the async order trigger in a sync Celery worker."""
    asyncio.run(handle_order_updated(_dispatcher(), order_id, before, after))


@shared_task(**RETRY_POLICY)
def message_created_task(self, chat_id: str, message_id: str, message: dict):
    dispatcher = _dispatcher()
    asyncio.run(handle_message_created(dispatcher.db, dispatcher, chat_id, message_id, message))


@shared_task(**RETRY_POLICY)
def errand_created_task(self, errand_id: str, errand: dict):
    dispatcher = _dispatcher()
    results = asyncio.run(handle_errand_created(dispatcher.db, dispatcher, errand_id, errand))
    logger.info(f"Errand {errand_id} fan-out: {sum(1 for r in results.values() if r)} of {len(results)} delivered")
