# services/verification_service.py
import asyncio
import logging
from typing import Iterable, List, Optional, Tuple

from pydantic import ValidationError

from app.core.errors import ConflictError, InvalidArgument, NotFoundError, ServiceError
from app.models.payment_model import TERMINAL_STATUSES, utcnow
from app.models.review_model import (
    BULK_REVIEWER_NOTES,
    ROLE_COLLECTIONS,
    BulkResult,
    VerificationDecision,
    VerificationRecord,
)
from app.services.email_service import send_verification_status_email
from app.utils.firebase import commit_batch, firestore_run

logger = logging.getLogger("airrands.verification")


async def decide_verification(
    db,
    verification_id: str,
    decision: str,
    reviewer_notes: Optional[str] = None,
    reviewer_id: Optional[str] = None,
) -> VerificationDecision:
    """
    Approve or reject an identity verification.

    The verification document, the generic user profile and the role profile
    (sellers/runners) are written in one batch so their statuses never diverge.
    """
    if decision not in ("approved", "rejected"):
        raise InvalidArgument("Status must be 'approved' or 'rejected'")
    if not verification_id:
        raise InvalidArgument("Verification ID is required")

    verification_ref = db.collection("verification").document(verification_id)
    snap = await firestore_run(verification_ref.get)
    if not snap.exists:
        raise NotFoundError("Verification not found")

    verification = snap.to_dict()
    current = verification.get("status")
    if current in TERMINAL_STATUSES:
        raise ConflictError(f"Verification already {current}")

    try:
        record = VerificationRecord.model_validate({**verification, "id": verification_id})
    except ValidationError:
        raise InvalidArgument(f"Verification {verification_id} has no valid user/role")
    user_id, role = record.user_id, record.user_role
    role_collection = ROLE_COLLECTIONS[role]

    user_ref = db.collection("users").document(user_id)
    user_doc = await firestore_run(user_ref.get)
    if not user_doc.exists:
        raise NotFoundError("User not found")

    now = utcnow()
    update = {"status": decision, "reviewedAt": now}
    if reviewer_notes:
        update["reviewerNotes"] = reviewer_notes
    if reviewer_id:
        update["reviewedBy"] = reviewer_id

    batch = db.batch()
    batch.update(verification_ref, update, option=db.write_option(last_update_time=snap.update_time))
    batch.update(user_ref, {"verificationStatus": decision, "updatedAt": now})
    batch.set(
        db.collection(role_collection).document(user_id),
        {"verificationStatus": decision, "updatedAt": now},
        merge=True,
    )
    await commit_batch(batch, "verification decision")

    logger.info(f"Verification {verification_id} ({role} {user_id}) {decision}")
    return VerificationDecision(
        verification_id=verification_id,
        status=decision,
        user_id=user_id,
        user_role=role,
        user_email=record.user_email or user_doc.to_dict().get("email"),
        reviewer_notes=reviewer_notes,
    )


async def notify_verification_decision(dispatcher, decision: VerificationDecision):
    """In-app/push notification plus a status e-mail. Never raises."""
    if decision.status == "approved":
        title = "Verification Approved"
        body = f"Your NIN verification was approved. You can now start working as a {decision.user_role}."
    else:
        title = "Verification Rejected"
        body = "Your NIN verification was not approved. Please review the requirements and submit again."
    if decision.reviewer_notes and decision.reviewer_notes != BULK_REVIEWER_NOTES:
        body = f"{body}\nNotes: {decision.reviewer_notes}"

    await dispatcher.notify_safely(
        decision.user_id,
        title,
        body,
        "verification",
        {"verificationId": decision.verification_id, "status": decision.status},
    )

    if decision.user_email:
        try:
            await asyncio.to_thread(
                send_verification_status_email,
                decision.user_email, decision.status, decision.user_role, decision.reviewer_notes,
            )
        except Exception as e:
            logger.error(f"Verification e-mail to {decision.user_email} failed: {e}")


async def bulk_decide_verifications(
    db, verification_ids: Iterable[str], decision: str, reviewer_id: Optional[str] = None
) -> Tuple[BulkResult, List[VerificationDecision]]:
    if decision not in ("approved", "rejected"):
        raise InvalidArgument("Status must be 'approved' or 'rejected'")

    result = BulkResult()
    decisions: List[VerificationDecision] = []
    for verification_id in dict.fromkeys(verification_ids):
        try:
            decisions.append(
                await decide_verification(db, verification_id, decision, BULK_REVIEWER_NOTES, reviewer_id)
            )
            result.succeeded.append(verification_id)
        except ServiceError as e:
            result.failed[verification_id] = e.message
        except Exception as e:
            logger.error(f"Bulk decision failed for verification {verification_id}: {e}", exc_info=True)
            result.failed[verification_id] = "Internal error"

    return result, decisions
