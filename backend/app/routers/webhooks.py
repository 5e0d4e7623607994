# routers/webhooks.py
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
import json
import logging

from app.core.config import settings
from app.core.firebase import get_db
from app.core.paystack import SIGNATURE_HEADER, verify_signature
from app.services.notification_service import NotificationDispatcher, get_dispatcher
from app.services.payment_service import notify_gateway_result, record_gateway_result

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
logger = logging.getLogger("airrands.webhooks")


@router.post("/paystack", status_code=status.HTTP_200_OK)
async def paystack_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    db=Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    # 1. Signature first; nothing is read or written before it passes
    body = await request.body()
    if not verify_signature(body, request.headers.get(SIGNATURE_HEADER), settings.PAYSTACK_SECRET_KEY):
        client = request.client.host if request.client else "unknown"
        logger.warning(f"Invalid Paystack webhook signature from {client}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    try:
        event_data = json.loads(body)
    except json.JSONDecodeError:
        logger.error("Invalid JSON in Paystack webhook")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON")
    if not isinstance(event_data, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid event envelope")

    # 2. Record; store failures propagate so Paystack redelivers
    outcome = await record_gateway_result(db, event_data)

    # 3. Notify after the response, best-effort
    if outcome.outcome == "recorded":
        background_tasks.add_task(notify_gateway_result, dispatcher, outcome)

    return {"status": outcome.outcome}
