# services/triggers.py
import logging
from typing import Optional, Tuple

from google.cloud.firestore_v1.base_query import FieldFilter

from app.utils.firebase import firestore_run

logger = logging.getLogger("airrands.triggers")

ORDER_STATUS_COPY = {
    "preparing": ("Order Update", "Your order #{order_id} is being prepared"),
    "ready": ("Order Ready!", "Your order #{order_id} is ready for pickup"),
    "delivered": ("Order Delivered", "Your order #{order_id} has been delivered"),
    "cancelled": ("Order Cancelled", "Your order #{order_id} has been cancelled"),
}


def order_status_message(order_id: str, before: dict, after: dict) -> Optional[Tuple[str, str]]:
    """Title/body for a status change, or None when the buyer need not hear about it."""
    if (before or {}).get("status") == (after or {}).get("status"):
        return None
    copy = ORDER_STATUS_COPY.get((after or {}).get("status"))
    if not copy:
        return None
    title, body = copy
    return title, body.format(order_id=order_id)


async def handle_order_updated(dispatcher, order_id: str, before: dict, after: dict):
    """Tell the buyer about a status change. Store failures propagate so the worker can retry."""
    message = order_status_message(order_id, before, after)
    if not message:
        return None

    buyer_id = after.get("buyerId") or after.get("userId")
    if not buyer_id:
        logger.info(f"Order {order_id} changed status but has no buyer")
        return None

    title, body = message
    return await dispatcher.notify(
        buyer_id, title, body, "order", {"orderId": order_id, "status": after.get("status")}
    )


async def handle_message_created(db, dispatcher, chat_id: str, message_id: str, message: dict):
    """Notify every chat participant except the sender."""
    chat_doc = await firestore_run(db.collection("chats").document(chat_id).get)
    if not chat_doc.exists:
        logger.warning(f"Message {message_id} posted to missing chat {chat_id}")
        return {}

    sender_id = message.get("senderId")
    recipients = [uid for uid in (chat_doc.to_dict().get("participants") or []) if uid != sender_id]
    return await dispatcher.send_to_many(
        recipients,
        f"Message from {message.get('senderName') or 'Someone'}",
        message.get("text") or "New message received",
        "message",
        {"chatId": chat_id, "messageId": message_id},
    )


async def handle_errand_created(db, dispatcher, errand_id: str, errand: dict):
    """Fan a new errand out to every runner currently online."""
    query = (
        db.collection("users")
        .where(filter=FieldFilter("role", "==", "runner"))
        .where(filter=FieldFilter("isOnline", "==", True))
    )
    runners = await firestore_run(lambda: [doc.id for doc in query.stream()])
    logger.info(f"Errand {errand_id} → {len(runners)} online runners")

    return await dispatcher.send_to_many(
        runners,
        "New Errand Request",
        f"New errand request: {errand.get('title') or 'Help needed'}",
        "errand",
        {"errandId": errand_id, "buyerId": errand.get("buyerId")},
    )
