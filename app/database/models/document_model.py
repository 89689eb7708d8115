from beanie import Document, Indexed
from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field

from app.schemas.notarization_schema import DocumentStatusEnum, MintStatusEnum


class RequesterInfoRecord(BaseModel):
    full_name: str
    citizen_id: str
    phone_number: str
    email: str


class StoredFile(BaseModel):
    """An uploaded original kept in file storage."""
    filename: str
    custom_name: Optional[str] = None
    file_id: Optional[str] = None
    storage_path: str
    url: Optional[str] = None
    content_type: Optional[str] = None
    size: int = 0


class OutputFile(BaseModel):
    """A notary-produced file; carries its mint record once minted."""
    filename: str
    storage_path: Optional[str] = None
    url: Optional[str] = None
    metadata_uri: Optional[str] = None
    mint_address: Optional[str] = None
    metadata_address: Optional[str] = None
    transaction_signature: Optional[str] = None
    minted_at: Optional[datetime] = None


class NotarizationDocument(Document):
    user_id: Indexed(str) = Field(..., description="Account that uploaded the request")
    requester_info: RequesterInfoRecord
    notarization_field: Dict[str, Any] = Field(default_factory=dict)
    notarization_service: Dict[str, Any] = Field(default_factory=dict)
    amount: int = Field(..., gt=0, description="Number of notarized copies requested")
    files: List[StoredFile] = Field(default_factory=list)
    status: Indexed(str) = Field(default=DocumentStatusEnum.pending.value)
    output_files: List[OutputFile] = Field(default_factory=list)
    feedback: Optional[str] = None
    payment_id: Optional[str] = None
    mint_status: str = Field(default=MintStatusEnum.none.value)
    mint_error: Optional[str] = None
    minting_started_at: Optional[datetime] = None
    stale_flagged_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_minted(self) -> bool:
        return bool(self.output_files) and all(f.mint_address for f in self.output_files)

    class Settings:
        name = "notarization_documents"

    class Config:
        populate_by_name = True
        json_encoders = {datetime: lambda v: v.isoformat()}
