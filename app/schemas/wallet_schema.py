from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field


class NFTItemCreate(BaseModel):
    mint_address: str = Field(..., alias="mintAddress")
    metadata_uri: str = Field(..., alias="metadataUri")
    filename: str
    amount: int = Field(default=1, ge=0)
    metadata_address: Optional[str] = Field(None, alias="metadataAddress")
    transaction_signature: Optional[str] = Field(None, alias="transactionSignature")
    program_id: Optional[str] = Field(None, alias="programId")
    owner: Optional[str] = None
    explorer_link: Optional[str] = Field(None, alias="explorerLink")
    solscan_link: Optional[str] = Field(None, alias="solscanLink")
    ipfs_link: Optional[str] = Field(None, alias="ipfsLink")
    document_id: Optional[str] = Field(None, alias="documentId")

    class Config:
        populate_by_name = True


class TransferRequest(BaseModel):
    to_user_email: EmailStr = Field(..., alias="toUserEmail")
    mint_address: str = Field(..., alias="mintAddress")
    amount: int

    class Config:
        populate_by_name = True


class PurchaseRequest(BaseModel):
    item_id: str = Field(..., alias="itemId")
    amount: int = Field(..., gt=0)

    class Config:
        populate_by_name = True


class DecreaseRequest(BaseModel):
    item_ids: List[str] = Field(..., alias="itemIds", min_length=1)

    class Config:
        populate_by_name = True
