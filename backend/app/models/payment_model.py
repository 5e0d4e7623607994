# models/payment_model.py
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import Any, Dict, Literal, Optional, Union
from datetime import datetime, timezone

PaymentStatus = Literal["pending", "success", "failed", "approved", "rejected"]
OrderStatus = Literal["pending", "preparing", "ready", "delivered", "cancelled"]

# Admin decisions are terminal: nothing moves a record out of these.
TERMINAL_STATUSES = ("approved", "rejected")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FirestoreModel(BaseModel):
    """Documents are stored with camelCase keys the mobile and admin apps read."""

    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "extra": "allow",
    }

    def to_firestore(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class PaymentRecord(FirestoreModel):
    """One payment attempt, either client-submitted or gateway-reported."""
    id: str
    reference: Optional[str] = None
    amount_minor: int = Field(..., ge=0, description="Amount in kobo")
    amount: Union[int, float] = Field(..., description="Major-unit display mirror")
    currency: str = "NGN"
    status: PaymentStatus = "pending"

    user_id: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    order_id: Optional[str] = None
    payment_method: str = "paystack"
    description: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    verification_source: Optional[str] = None
    error: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class OrderRecord(FirestoreModel):
    id: str
    payment_id: Optional[str] = None
    paid: bool = False
    payment_status: str = "pending"
    status: OrderStatus = "pending"

    buyer_id: Optional[str] = None
    seller_id: Optional[str] = None
    runner_id: Optional[str] = None
    product_name: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# ========================================
# REQUEST / RESPONSE SHAPES
# ========================================
class PaymentSubmission(BaseModel):
    payment_data: Optional[Dict[str, Any]] = Field(default=None, alias="paymentData")
    order_data: Optional[Dict[str, Any]] = Field(default=None, alias="orderData")

    model_config = {"populate_by_name": True}


class VerifyTransactionRequest(BaseModel):
    reference: Optional[str] = None


class SubmittedPayment(BaseModel):
    success: bool = True
    payment_id: str = Field(..., serialization_alias="paymentId")
    order_id: str = Field(..., serialization_alias="orderId")
    message: str = "Payment submitted for review. Order will be processed after payment approval."


class PaymentDecision(BaseModel):
    """What an admin decision changed; drives the follow-up notifications."""
    payment_id: str
    status: Literal["approved", "rejected"]
    user_id: Optional[str] = None
    order_id: Optional[str] = None
    order_updated: bool = False
    seller_id: Optional[str] = None
    product_name: Optional[str] = None
    amount_minor: Optional[int] = None


class GatewayOutcome(BaseModel):
    """Result of applying one webhook event."""
    event: Optional[str] = None
    outcome: Literal["recorded", "duplicate", "ignored"]
    reference: Optional[str] = None
    user_id: Optional[str] = None
    order_id: Optional[str] = None
    order_updated: bool = False
    status: Optional[str] = None
    amount_minor: Optional[int] = None
    error: Optional[str] = None
