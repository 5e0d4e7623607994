from fastapi import APIRouter, BackgroundTasks, Depends
from google.cloud.firestore_v1.base_query import FieldFilter
from typing import Dict, Any
import asyncio
import logging

from app.core.auth import require_admin
from app.core.firebase import get_db
from app.models.review_model import BulkDecisionRequest, DecisionRequest
from app.models.user_model import Caller
from app.services.listeners import pending_payments_query, pending_verifications_query
from app.services.notification_service import NotificationDispatcher, get_dispatcher
from app.services.payment_service import bulk_decide_payments, decide_payment, notify_payment_decision
from app.services.verification_service import (
    bulk_decide_verifications,
    decide_verification,
    notify_verification_decision,
)
from app.utils.firebase import count_documents

logger = logging.getLogger("airrands.admin")
router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/dashboard/summary", response_model=Dict[str, Any])
async def get_dashboard_summary(admin: Caller = Depends(require_admin), db=Depends(get_db)):
    """Totals per collection plus the review queues. Only pending items are actionable."""
    pending_role = FieldFilter("verificationStatus", "==", "pending")
    queries = {
        "totalRunners": db.collection("runners"),
        "pendingRunners": db.collection("runners").where(filter=pending_role),
        "totalSellers": db.collection("sellers"),
        "pendingSellers": db.collection("sellers").where(filter=pending_role),
        "totalPayments": db.collection("payments"),
        "pendingPayments": pending_payments_query(db),
        "totalVerifications": db.collection("verification"),
        "pendingVerifications": pending_verifications_query(db),
    }
    counts = await asyncio.gather(*(count_documents(query) for query in queries.values()))
    return dict(zip(queries, counts))


# ========================================
# PAYMENTS
# ========================================
@router.post("/payments/{payment_id}/decision")
async def decide_payment_route(
    payment_id: str,
    payload: DecisionRequest,
    background_tasks: BackgroundTasks,
    admin: Caller = Depends(require_admin),
    db=Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    decision = await decide_payment(db, payment_id, payload.status, reviewer_id=admin.uid)
    background_tasks.add_task(notify_payment_decision, dispatcher, decision)
    return {"success": True, "message": f"Payment {decision.status} successfully"}


@router.post("/payments/bulk-decision")
async def bulk_decide_payments_route(
    payload: BulkDecisionRequest,
    background_tasks: BackgroundTasks,
    admin: Caller = Depends(require_admin),
    db=Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result, decisions = await bulk_decide_payments(db, payload.ids, payload.status, reviewer_id=admin.uid)
    for decision in decisions:
        background_tasks.add_task(notify_payment_decision, dispatcher, decision)
    return result.to_response()


# ========================================
# IDENTITY VERIFICATIONS
# ========================================
@router.post("/verifications/{verification_id}/decision")
async def decide_verification_route(
    verification_id: str,
    payload: DecisionRequest,
    background_tasks: BackgroundTasks,
    admin: Caller = Depends(require_admin),
    db=Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    decision = await decide_verification(
        db, verification_id, payload.status, payload.reviewer_notes, reviewer_id=admin.uid
    )
    background_tasks.add_task(notify_verification_decision, dispatcher, decision)
    return {"success": True, "message": f"Verification {decision.status} successfully"}


@router.post("/verifications/bulk-decision")
async def bulk_decide_verifications_route(
    payload: BulkDecisionRequest,
    background_tasks: BackgroundTasks,
    admin: Caller = Depends(require_admin),
    db=Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result, decisions = await bulk_decide_verifications(db, payload.ids, payload.status, reviewer_id=admin.uid)
    for decision in decisions:
        background_tasks.add_task(notify_verification_decision, dispatcher, decision)
    return result.to_response()
