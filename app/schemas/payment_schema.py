from enum import Enum
from typing import Optional, Dict
from pydantic import BaseModel, Field


class PaymentStatusEnum(str, Enum):
    pending = "pending"
    success = "success"
    cancelled = "cancelled"


class GatewayStatusEnum(str, Enum):
    """Statuses reported by the payment gateway for a checkout link."""
    pending = "PENDING"
    processing = "PROCESSING"
    paid = "PAID"
    cancelled = "CANCELLED"
    expired = "EXPIRED"
    skipped = "SKIPPED"


class PaymentCreate(BaseModel):
    amount: int = Field(..., gt=0, description="Amount to charge")
    description: str = Field(..., min_length=1, max_length=255)
    user_id: Optional[str] = Field(None, alias="userId", description="Defaults to the caller")
    session_id: Optional[str] = Field(None, alias="sessionId")

    class Config:
        populate_by_name = True


class PaymentCallback(BaseModel):
    status: Optional[str] = Field(None, description="Status reported by the gateway redirect or webhook")


class ReconciliationStats(BaseModel):
    total: int
    processed: int
    skipped: int
    failed: int


class ReconciliationResult(BaseModel):
    message: str
    stats: ReconciliationStats
