from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from typing import Dict, Optional
import logging

from app.core.auth_dependencies import get_current_active_user
from app.core.service_dependencies import get_nft_service
from app.schemas.encryption_schema import DecryptRequest
from app.services.nft_service import NFTService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/encryption", tags=["Encryption"])


# Encrypts a file under a wallet-balance access policy and pins the ciphertext
@router.post("/encrypt-upload", status_code=status.HTTP_201_CREATED)
async def encrypt_upload(
    file: UploadFile = File(...),
    walletAddress: Optional[str] = Form(None),
    current_user: Dict = Depends(get_current_active_user),
    service: NFTService = Depends(get_nft_service),
):
    contents = await file.read()
    return await service.encrypt_and_upload(contents, file.filename or "file", walletAddress)


# Decrypts a ciphertext once its access-control conditions hold
@router.post("/decrypt")
async def decrypt(
    request: DecryptRequest,
    current_user: Dict = Depends(get_current_active_user),
    service: NFTService = Depends(get_nft_service),
):
    return await service.decrypt(request.ciphertext, request.key_ref, request.access_control_conditions)
