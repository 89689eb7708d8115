from beanie import Document, Indexed
from pydantic import Field
from datetime import datetime
from typing import Optional

from app.schemas.payment_schema import PaymentStatusEnum


class Payment(Document):
    order_code: Indexed(int, unique=True) = Field(..., description="Gateway correlation id, random and bounded")
    amount: int = Field(..., gt=0)
    description: str
    status: str = Field(default=PaymentStatusEnum.pending.value)
    user_id: Indexed(str)
    document_id: Optional[str] = Field(None, description="Notarization document paid for")
    session_id: Optional[str] = Field(None, description="Notarization session paid for")
    wallet_item_id: Optional[str] = Field(None, description="Wallet item whose copies were purchased")
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None
    checkout_url: Optional[str] = None
    gateway_status: Optional[str] = Field(None, description="Last status verified with the gateway")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "payments"

    class Config:
        json_encoders = {datetime: lambda v: v.isoformat()}
