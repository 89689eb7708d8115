from beanie import Document, Indexed
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class SignatureApproval(BaseModel):
    approved: bool = False
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None


class ApprovalStatus(BaseModel):
    notary: SignatureApproval = Field(default_factory=SignatureApproval)
    user: SignatureApproval = Field(default_factory=SignatureApproval)


class RequestSignature(Document):
    document_id: Indexed(str, unique=True) = Field(..., description="Notarization document being co-signed")
    signature_image: Optional[str] = Field(None, description="URL of the uploaded signature image")
    approval_status: ApprovalStatus = Field(default_factory=ApprovalStatus)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_co_signed(self) -> bool:
        return self.approval_status.notary.approved and self.approval_status.user.approved

    class Settings:
        name = "request_signatures"
