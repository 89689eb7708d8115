from typing import List, Dict, Any
from pydantic import BaseModel, Field


class DecryptRequest(BaseModel):
    ciphertext: str = Field(..., description="Base64 ciphertext returned by encrypt-upload")
    key_ref: str = Field(..., alias="keyRef")
    access_control_conditions: Dict[str, Any] = Field(..., alias="accessControlConditions")

    class Config:
        populate_by_name = True


class AccessLinkRequest(BaseModel):
    cid: str = Field(..., min_length=1)
    expires_in_seconds: int = Field(default=60, gt=0, le=24 * 3600, alias="expiresInSeconds")

    class Config:
        populate_by_name = True
