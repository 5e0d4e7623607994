# routers/payment_router.py
from fastapi import APIRouter, Depends
import logging

from app.core.auth import get_current_caller
from app.core.errors import InternalError, InvalidArgument, UpstreamError
from app.core.firebase import get_db
from app.models.payment_model import PaymentSubmission, VerifyTransactionRequest
from app.models.user_model import Caller
from app.services.payment_service import submit_payment
from app.services.paystack import PaystackClient

router = APIRouter(prefix="/payments", tags=["Payments"])
logger = logging.getLogger("airrands.payments")


def get_paystack_client() -> PaystackClient:
    return PaystackClient()


@router.post("/verify")
async def verify_transaction(
    payload: VerifyTransactionRequest,
    caller: Caller = Depends(get_current_caller),
    paystack: PaystackClient = Depends(get_paystack_client),
):
    """Ask Paystack whether a transaction reference settled."""
    if not payload.reference:
        raise InvalidArgument("Transaction reference is required")

    try:
        data = await paystack.verify_transaction(payload.reference)
    except UpstreamError as e:
        logger.error(f"Paystack verification error for {payload.reference} (caller {caller.uid}): {e}")
        raise InternalError("Failed to verify transaction")

    if data.get("status") == "success":
        return {"success": True, "data": data, "message": "Transaction verified successfully"}

    return {
        "success": False,
        "data": data,
        "message": f"Transaction failed: {data.get('gateway_response') or 'Unknown error'}",
    }


@router.post("/submit")
async def submit(
    payload: PaymentSubmission,
    caller: Caller = Depends(get_current_caller),
    db=Depends(get_db),
):
    """Create a pending payment and its order for admin review."""
    result = await submit_payment(db, caller, payload.payment_data, payload.order_data)
    return result.model_dump(by_alias=True)
