from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class DocumentStatusEnum(str, Enum):
    pending = "pending"
    processing = "processing"
    ready_to_sign = "readyToSign"
    pending_signature = "pendingSignature"
    accepted = "accepted"
    rejected = "rejected"


class ActionEnum(str, Enum):
    accept = "accept"
    reject = "reject"


class MintStatusEnum(str, Enum):
    none = "none"
    minting = "minting"
    minted = "minted"
    failed = "failed"


class RequesterInfo(BaseModel):
    full_name: str = Field(..., alias="fullName", description="Full name of the requester")
    citizen_id: str = Field(..., alias="citizenId", description="Citizen ID of the requester")
    phone_number: str = Field(..., alias="phoneNumber", description="Phone number of the requester")
    email: str = Field(..., description="Email of the requester")

    class Config:
        populate_by_name = True


class NotarizationFieldInfo(BaseModel):
    id: Optional[str] = None
    name: str
    name_en: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None

    class Config:
        extra = "allow"


class NotarizationServiceInfo(BaseModel):
    id: Optional[str] = None
    name: str
    code: Optional[str] = None
    field_id: Optional[str] = Field(None, alias="fieldId")
    price: Optional[int] = Field(None, ge=0)
    required_documents: List[str] = Field(default_factory=list)
    description: Optional[str] = None

    class Config:
        populate_by_name = True
        extra = "allow"


class UploadedFile(BaseModel):
    """File bytes handed from the HTTP layer to the services."""
    filename: str
    content: bytes
    content_type: Optional[str] = None


class ForwardStatusRequest(BaseModel):
    action: ActionEnum
    feedback: Optional[str] = None


class ApproveSignatureByNotaryRequest(BaseModel):
    document_id: str = Field(..., alias="documentId")

    class Config:
        populate_by_name = True


class PaginatedResponse(BaseModel):
    results: List[Dict[str, Any]]
    page: int
    limit: int
    total_pages: int
    total_results: int
