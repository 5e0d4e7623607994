# models/review_model.py
from pydantic import BaseModel, Field
from typing import Dict, List, Literal, Optional
from datetime import datetime

from app.models.payment_model import FirestoreModel

Decision = Literal["approved", "rejected"]
VerificationStatus = Literal["pending", "approved", "rejected"]
UserRole = Literal["seller", "runner"]

ROLE_COLLECTIONS = {"seller": "sellers", "runner": "runners"}
BULK_REVIEWER_NOTES = "Bulk processed"


class VerificationRecord(FirestoreModel):
    """Identity (NIN) verification submitted by a seller or runner."""
    id: str
    user_id: str
    user_role: UserRole
    user_email: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageURL")
    status: VerificationStatus = "pending"
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    reviewer_notes: Optional[str] = None
    reviewed_by: Optional[str] = None


class DecisionRequest(BaseModel):
    status: str
    reviewer_notes: Optional[str] = Field(default=None, alias="reviewerNotes")

    model_config = {"populate_by_name": True}


class BulkDecisionRequest(BaseModel):
    ids: List[str] = Field(default_factory=list)
    status: str


class VerificationDecision(BaseModel):
    verification_id: str
    status: Decision
    user_id: str
    user_role: UserRole
    user_email: Optional[str] = None
    reviewer_notes: Optional[str] = None


class BulkResult(BaseModel):
    """Per-item outcome of a bulk decision. Partial failure is expected."""
    succeeded: List[str] = Field(default_factory=list)
    failed: Dict[str, str] = Field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)

    def to_response(self) -> dict:
        return {
            "success": self.failure_count == 0,
            "successCount": self.success_count,
            "failureCount": self.failure_count,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "message": f"{self.success_count} processed, {self.failure_count} failed",
        }
