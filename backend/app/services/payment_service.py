# services/payment_service.py
import logging
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Tuple

from app.core.errors import ConflictError, InvalidArgument, NotFoundError, ServiceError
from app.core.paystack import format_naira, kobo_to_naira
from app.models.payment_model import (
    TERMINAL_STATUSES,
    GatewayOutcome,
    OrderRecord,
    PaymentDecision,
    PaymentRecord,
    SubmittedPayment,
    utcnow,
)
from app.models.review_model import BulkResult
from app.models.user_model import Caller
from app.utils.firebase import commit_batch, firestore_run

logger = logging.getLogger("airrands.payments")

DECISIONS = ("approved", "rejected")

ORDER_EFFECTS = {
    "approved": {"paid": True, "paymentStatus": "approved", "status": "preparing"},
    "rejected": {"paid": False, "paymentStatus": "rejected", "status": "cancelled"},
}

# Gateway-originated paymentStatus written onto the order
GATEWAY_ORDER_STATUS = {"success": "completed", "failed": "failed"}


def _validate_decision(decision: str):
    if decision not in DECISIONS:
        raise InvalidArgument("Status must be 'approved' or 'rejected'")


def _amount_minor(payment_data: dict) -> int:
    """
    Kobo amount of a client submission. `amountMinor` wins; a bare `amount`
    is read as naira and must convert to a whole number of kobo.
    """
    raw = payment_data.get("amountMinor")
    try:
        if raw is not None:
            if isinstance(raw, bool) or int(raw) != Decimal(str(raw)):
                raise InvalidArgument("amountMinor must be a whole number of kobo")
            minor = int(raw)
        elif payment_data.get("amount") is not None:
            minor_exact = Decimal(str(payment_data["amount"])) * 100
            if minor_exact != minor_exact.to_integral_value():
                raise InvalidArgument("amount has more than two decimal places")
            minor = int(minor_exact)
        else:
            raise InvalidArgument("Payment amount is required")
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidArgument("Payment amount must be numeric")

    if minor <= 0:
        raise InvalidArgument("Payment amount must be positive")
    return minor


def _gateway_amount(raw) -> Optional[int]:
    """Kobo amount from a gateway event, or None when it is not a whole non-negative number."""
    if raw is None:
        return 0
    if isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        return None
    if not value.is_finite() or value != value.to_integral_value() or value < 0:
        return None
    return int(value)


# ========================================
# CLIENT SUBMISSION
# ========================================
async def submit_payment(db, caller: Caller, payment_data: dict, order_data: dict) -> SubmittedPayment:
    """
    Create a pending payment and its pending order in one batch.
    Both ids are allocated up front so each document carries the other's id.
    """
    if not payment_data or not order_data:
        raise InvalidArgument("Payment and order data are required")

    amount_minor = _amount_minor(payment_data)
    product_name = order_data.get("productName")
    if not product_name:
        raise InvalidArgument("orderData.productName is required")

    payment_ref = db.collection("payments").document()
    order_ref = db.collection("orders").document()
    now = utcnow()

    payment = PaymentRecord(
        id=payment_ref.id,
        reference=payment_data.get("reference"),
        amount_minor=amount_minor,
        amount=kobo_to_naira(amount_minor),
        currency=payment_data.get("currency") or "NGN",
        status="pending",
        user_id=caller.uid,
        user_name=payment_data.get("userName"),
        user_email=payment_data.get("userEmail") or caller.email,
        order_id=order_ref.id,
        payment_method=payment_data.get("paymentMethod") or "paystack",
        description=f"Payment for order: {product_name}",
        metadata=payment_data.get("metadata") or {},
        created_at=now,
        updated_at=now,
    )
    order = OrderRecord(
        id=order_ref.id,
        payment_id=payment_ref.id,
        paid=False,
        payment_status="pending",
        status="pending",
        buyer_id=caller.uid,
        seller_id=order_data.get("sellerId"),
        runner_id=order_data.get("runnerId"),
        product_name=product_name,
        created_at=now,
        updated_at=now,
    )

    # Server-owned fields override anything the client sent under the same key
    batch = db.batch()
    batch.set(payment_ref, {**payment_data, **payment.to_firestore()})
    batch.set(order_ref, {**order_data, **order.to_firestore()})
    await commit_batch(batch, "payment submission")

    logger.info(f"Payment {payment_ref.id} submitted for review | order {order_ref.id} | {format_naira(amount_minor)}")
    return SubmittedPayment(payment_id=payment_ref.id, order_id=order_ref.id)


# ========================================
# GATEWAY WEBHOOK
# ========================================
async def record_gateway_result(db, event_data: dict) -> GatewayOutcome:
    """
    Apply one verified Paystack event.

    Payments from the webhook are keyed by gateway reference, so a redelivered
    event finds its own record and writes nothing. This path is informational:
    it never marks an order paid and never overrides an admin decision.
    """
    event = event_data.get("event")
    data = event_data.get("data") or {}

    if event == "transfer.success":
        return await _record_transfer(db, data)
    if event not in ("charge.success", "charge.failed"):
        logger.info(f"Unhandled event type: {event}")
        return GatewayOutcome(event=event, outcome="ignored")

    reference = data.get("reference")
    if not reference:
        logger.warning(f"{event} without reference ignored")
        return GatewayOutcome(event=event, outcome="ignored")

    metadata = data.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    order_id = metadata.get("orderId")
    user_id = metadata.get("userId")
    status = "success" if event == "charge.success" else "failed"
    amount_minor = _gateway_amount(data.get("amount"))
    if amount_minor is None:
        logger.warning(f"{event} for {reference} has invalid amount {data.get('amount')!r}; ignored")
        return GatewayOutcome(event=event, outcome="ignored", reference=reference)
    customer_email = (data.get("customer") or {}).get("email")
    gateway_response = data.get("gateway_response")

    payment_ref = db.collection("payments").document(reference)
    existing = await firestore_run(payment_ref.get)
    if existing.exists:
        logger.info(f"Webhook already processed for {reference}")
        return GatewayOutcome(event=event, outcome="duplicate", reference=reference)

    now = utcnow()
    payment = PaymentRecord(
        id=reference,
        reference=reference,
        amount_minor=amount_minor,
        amount=kobo_to_naira(amount_minor),
        currency=data.get("currency") or "NGN",
        status=status,
        user_id=user_id,
        user_email=customer_email,
        order_id=order_id,
        payment_method=data.get("channel") or "paystack",
        metadata=metadata,
        verification_source="webhook",
        error=gateway_response if status == "failed" else None,
        created_at=now,
        updated_at=now,
    )

    batch = db.batch()
    batch.create(payment_ref, payment.to_firestore())

    order_updated = False
    if order_id:
        order_ref = db.collection("orders").document(order_id)
        order_doc = await firestore_run(order_ref.get)
        if not order_doc.exists:
            logger.warning(f"Webhook {reference} references missing order {order_id}")
        else:
            update = {"updatedAt": now}
            if status == "success":
                update.update({
                    "paymentVerified": True,
                    "verificationDate": now,
                    "paymentDetails": {
                        "amountMinor": amount_minor,
                        "amount": kobo_to_naira(amount_minor),
                        "reference": reference,
                        "customerEmail": customer_email,
                        "verificationSource": "webhook",
                    },
                })
            else:
                update["paymentError"] = gateway_response

            if order_doc.to_dict().get("paymentStatus") in TERMINAL_STATUSES:
                logger.info(f"Order {order_id} already decided by admin; payment status left as is")
            else:
                update["paymentStatus"] = GATEWAY_ORDER_STATUS[status]

            batch.update(order_ref, update)
            order_updated = True

    try:
        await commit_batch(batch, "gateway payment")
    except ConflictError:
        # Lost a race with a concurrent redelivery of the same reference
        logger.info(f"Webhook for {reference} raced a duplicate delivery")
        return GatewayOutcome(event=event, outcome="duplicate", reference=reference)

    log = logger.info if status == "success" else logger.warning
    log(f"Payment {status.upper()} → {reference} | {format_naira(amount_minor)} | user {user_id}")

    return GatewayOutcome(
        event=event,
        outcome="recorded",
        reference=reference,
        user_id=user_id,
        order_id=order_id,
        order_updated=order_updated,
        status=status,
        amount_minor=amount_minor,
        error=gateway_response if status == "failed" else None,
    )


async def _record_transfer(db, data: dict) -> GatewayOutcome:
    reference = data.get("reference")
    if not reference:
        return GatewayOutcome(event="transfer.success", outcome="ignored")

    transfer_ref = db.collection("transfers").document(reference)
    if (await firestore_run(transfer_ref.get)).exists:
        return GatewayOutcome(event="transfer.success", outcome="duplicate", reference=reference)

    amount_minor = _gateway_amount(data.get("amount"))
    if amount_minor is None:
        logger.warning(f"transfer.success for {reference} has invalid amount {data.get('amount')!r}; ignored")
        return GatewayOutcome(event="transfer.success", outcome="ignored", reference=reference)
    metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    batch = db.batch()
    batch.create(transfer_ref, {
        "reference": reference,
        "amountMinor": amount_minor,
        "amount": kobo_to_naira(amount_minor),
        "status": "success",
        "recipient": data.get("recipient"),
        "metadata": metadata,
        "createdAt": utcnow(),
    })
    try:
        await commit_batch(batch, "transfer")
    except ConflictError:
        return GatewayOutcome(event="transfer.success", outcome="duplicate", reference=reference)

    logger.info(f"Transfer confirmed: {reference}")
    return GatewayOutcome(event="transfer.success", outcome="recorded", reference=reference,
                          status="success", amount_minor=amount_minor)


async def notify_gateway_result(dispatcher, outcome: GatewayOutcome):
    """Buyer-facing follow-up to a recorded charge. Best-effort."""
    if outcome.outcome != "recorded" or not outcome.user_id or outcome.event not in ("charge.success", "charge.failed"):
        return

    amount = format_naira(outcome.amount_minor or 0)
    payload = {"orderId": outcome.order_id, "amountMinor": outcome.amount_minor, "reference": outcome.reference}
    if outcome.status == "success":
        await dispatcher.notify_safely(
            outcome.user_id,
            "Payment Successful",
            f"Your payment of {amount} has been confirmed.",
            "payment",
            payload,
        )
    else:
        payload["error"] = outcome.error
        await dispatcher.notify_safely(
            outcome.user_id,
            "Payment Failed",
            f"Your payment of {amount} was unsuccessful. Please try again.",
            "payment",
            payload,
        )


# ========================================
# ADMIN DECISIONS
# ========================================
async def decide_payment(db, payment_id: str, decision: str, reviewer_id: Optional[str] = None) -> PaymentDecision:
    """
    Approve or reject a payment and move its order in the same batch.

    Only pending payments are actionable. Both updates are conditioned on the
    snapshots we read, so two admins acting at once cannot both win. An order
    that already carries an admin decision is never approved again. A missing
    order is skipped; the payment decision still lands.
    """
    _validate_decision(decision)
    if not payment_id:
        raise InvalidArgument("Valid payment ID is required")

    payment_ref = db.collection("payments").document(payment_id)
    snap = await firestore_run(payment_ref.get)
    if not snap.exists:
        raise NotFoundError("Payment not found")

    payment = snap.to_dict()
    current = payment.get("status")
    if current in TERMINAL_STATUSES:
        raise ConflictError(f"Payment already {current}")
    if current != "pending":
        raise ConflictError(f"Only pending payments can be decided (payment is {current})")

    now = utcnow()
    update = {"status": decision, "updatedAt": now}
    if reviewer_id:
        update.update({"reviewedBy": reviewer_id, "reviewedAt": now})

    batch = db.batch()
    batch.update(payment_ref, update, option=db.write_option(last_update_time=snap.update_time))

    order_id = payment.get("orderId")
    order = {}
    order_updated = False
    if order_id:
        order_ref = db.collection("orders").document(order_id)
        order_doc = await firestore_run(order_ref.get)
        if order_doc.exists:
            order = order_doc.to_dict()
            order_decided = order.get("paymentStatus")
            if decision == "approved" and order.get("status") == "cancelled":
                raise ConflictError(f"Order {order_id} is cancelled")
            if order_decided in TERMINAL_STATUSES:
                if decision == "approved":
                    raise ConflictError(f"Order {order_id} is already {order_decided}")
                logger.info(f"Order {order_id} already {order_decided}; order left as is")
            else:
                batch.update(
                    order_ref,
                    {**ORDER_EFFECTS[decision], "updatedAt": now},
                    option=db.write_option(last_update_time=order_doc.update_time),
                )
                order_updated = True
        else:
            logger.warning(f"Payment {payment_id} links to missing order {order_id}; order update skipped")

    await commit_batch(batch, "payment decision")
    logger.info(f"Payment {payment_id} {decision} by {reviewer_id or 'admin'} | order {order_id or '-'}")

    return PaymentDecision(
        payment_id=payment_id,
        status=decision,
        user_id=payment.get("userId") or order.get("buyerId"),
        order_id=order_id,
        order_updated=order_updated,
        seller_id=order.get("sellerId"),
        product_name=order.get("productName"),
        amount_minor=payment.get("amountMinor"),
    )


async def notify_payment_decision(dispatcher, decision: PaymentDecision):
    """Tell the buyer (and on approval, the seller). Never raises."""
    product = decision.product_name or "your order"
    payload = {"paymentId": decision.payment_id, "orderId": decision.order_id, "status": decision.status}

    if decision.user_id:
        if decision.status == "approved":
            title, body = "Payment Approved", f"Your payment for {product} has been approved. Your order is being prepared."
        else:
            title, body = "Payment Rejected", f"Your payment for {product} was rejected and the order has been cancelled."
        await dispatcher.notify_safely(decision.user_id, title, body, "payment", payload)

    if decision.status == "approved" and decision.order_updated and decision.seller_id:
        await dispatcher.notify_safely(
            decision.seller_id,
            "New Paid Order",
            f"Payment for {product} has been confirmed. Start preparing the order.",
            "order",
            payload,
        )


async def bulk_decide_payments(
    db, payment_ids: Iterable[str], decision: str, reviewer_id: Optional[str] = None
) -> Tuple[BulkResult, List[PaymentDecision]]:
    """Apply one decision to many payments independently; failures are collected, not raised."""
    _validate_decision(decision)

    result = BulkResult()
    decisions: List[PaymentDecision] = []
    for payment_id in dict.fromkeys(payment_ids):
        try:
            decisions.append(await decide_payment(db, payment_id, decision, reviewer_id))
            result.succeeded.append(payment_id)
        except ServiceError as e:
            result.failed[payment_id] = e.message
        except Exception as e:
            logger.error(f"Bulk decision failed for payment {payment_id}: {e}", exc_info=True)
            result.failed[payment_id] = "Internal error"

    logger.info(f"Bulk {decision}: {result.success_count} ok, {result.failure_count} failed")
    return result, decisions
