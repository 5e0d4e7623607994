# services/listeners.py
"""
Live read-side projections (badge counts, pending queues).

Every watch is wrapped in a Subscription that its owner must close. Callbacks
receive derived data only; nothing here writes business state.
"""
import logging
import threading
from typing import Callable, Dict, List, Optional

from google.cloud.firestore_v1.base_query import FieldFilter

logger = logging.getLogger("airrands.listeners")


class Subscription:
    """Handle for one Firestore snapshot listener."""

    def __init__(self, watch, name: str = "listener"):
        self._watch = watch
        self._lock = threading.Lock()
        self.name = name
        self.closed = False

    def close(self):
        with self._lock:
            if self.closed:
                return
            self.closed = True
        try:
            self._watch.unsubscribe()
        except Exception as e:
            logger.warning(f"Unsubscribe of {self.name} failed: {e}")
        logger.debug(f"Listener {self.name} closed")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


class ListenerGroup:
    """Subscriptions owned by one screen or session; closed together."""

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    def add(self, subscription: Subscription) -> Subscription:
        self._subscriptions.append(subscription)
        return subscription

    @property
    def active(self) -> int:
        return sum(1 for sub in self._subscriptions if not sub.closed)

    def close_all(self):
        for sub in self._subscriptions:
            sub.close()
        self._subscriptions.clear()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close_all()
        return False


def watch_query(query, on_change: Callable[[List[Dict]], None], name: str = "query") -> Subscription:
    """Call `on_change` with the full result set every time it changes."""
    holder: Dict[str, Optional[Subscription]] = {"sub": None}

    def _callback(docs, changes, read_time):
        sub = holder["sub"]
        if sub is not None and sub.closed:
            return
        try:
            on_change([{"id": doc.id, **(doc.to_dict() or {})} for doc in docs])
        except Exception as e:
            logger.error(f"Listener {name} callback failed: {e}", exc_info=True)

    watch = query.on_snapshot(_callback)
    holder["sub"] = Subscription(watch, name)
    return holder["sub"]


def watch_count(query, on_count: Callable[[int], None], name: str = "count") -> Subscription:
    return watch_query(query, lambda rows: on_count(len(rows)), name)


# ========================================
# CANNED QUERIES
# ========================================
def pending_payments_query(db):
    return db.collection("payments").where(filter=FieldFilter("status", "==", "pending"))


def pending_verifications_query(db):
    return db.collection("verification").where(filter=FieldFilter("status", "==", "pending"))


def unread_notifications_query(db, user_id: str):
    return (
        db.collection("users").document(user_id).collection("notifications")
        .where(filter=FieldFilter("read", "==", False))
    )


def buyer_pending_orders_query(db, buyer_id: str):
    return (
        db.collection("orders")
        .where(filter=FieldFilter("buyerId", "==", buyer_id))
        .where(filter=FieldFilter("status", "==", "pending"))
    )
