import logging
import threading
from typing import Dict, List

from app.core.celery_app import celery_app
from app.services.listeners import Subscription
from app.tasks.notification_tasks import errand_created_task, message_created_task, order_status_changed_task

logger = logging.getLogger("airrands.triggers")

ORDER_FIELDS = ("status", "buyerId", "userId")
MESSAGE_FIELDS = ("senderId", "senderName", "text")
ERRAND_FIELDS = ("title", "buyerId")


def _pick(data: dict, fields) -> dict:
    return {key: data.get(key) for key in fields if data.get(key) is not None}


class OrderStatusWatcher:
    """Remembers each order's last status so a change can be reported as before/after."""

    def __init__(self, enqueue=None):
        self.enqueue = enqueue or order_status_changed_task.delay
        self._last: Dict[str, dict] = {}
        self._lock = threading.Lock()

    def __call__(self, docs, changes, read_time):
        for change in changes:
            doc = change.document
            after = _pick(doc.to_dict() or {}, ORDER_FIELDS)
            with self._lock:
                if change.type.name == "REMOVED":
                    self._last.pop(doc.id, None)
                    continue
                before = self._last.get(doc.id)
                self._last[doc.id] = after
            if change.type.name == "MODIFIED" and before is not None and before.get("status") != after.get("status"):
                self.enqueue(doc.id, before, after)


class CreatedDocumentWatcher:
    """Enqueues a task for every document added after the initial snapshot."""

    def __init__(self, enqueue):
        self.enqueue = enqueue
        self._primed = False

    def __call__(self, docs, changes, read_time):
        if not self._primed:
            self._primed = True
            return
        for change in changes:
            if change.type.name == "ADDED":
                self.enqueue(change.document)


def _enqueue_message(doc):
    chat_id = doc.reference.parent.parent.id
    message_created_task.delay(chat_id, doc.id, _pick(doc.to_dict() or {}, MESSAGE_FIELDS))


def _enqueue_errand(doc):
    errand_created_task.delay(doc.id, _pick(doc.to_dict() or {}, ERRAND_FIELDS))


def start_trigger_watchers(db) -> List[Subscription]:
    """
    Watch orders, chat messages and errands and hand each relevant change to
    a Celery task. The caller owns the returned subscriptions and must close them.
    """
    subscriptions = [
        Subscription(db.collection("orders").on_snapshot(OrderStatusWatcher()), "orders-trigger"),
        Subscription(db.collection_group("messages").on_snapshot(CreatedDocumentWatcher(_enqueue_message)), "messages-trigger"),
        Subscription(db.collection("errands").on_snapshot(CreatedDocumentWatcher(_enqueue_errand)), "errands-trigger"),
    ]
    logger.info(f"Order, message and errand trigger watchers started | celery app: {celery_app.main}")
    return subscriptions
