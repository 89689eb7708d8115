from fastapi import APIRouter, Depends, Query
from typing import Dict, Optional

from app.core.auth_dependencies import get_current_active_user
from app.core.service_dependencies import get_nft_service
from app.schemas.encryption_schema import AccessLinkRequest
from app.services.nft_service import NFTService

router = APIRouter(prefix="/nft", tags=["NFT"])

private_ipfs_router = APIRouter(prefix="/private-ipfs", tags=["Private IPFS"])


# On-chain and off-chain metadata of a minted document NFT
@router.get("/metadata/{mint_address}")
async def get_nft_metadata(
    mint_address: str,
    current_user: Dict = Depends(get_current_active_user),
    service: NFTService = Depends(get_nft_service),
):
    return await service.get_nft_metadata(mint_address)


# Looks up a ledger transaction by signature
@router.get("/transaction/{signature}")
async def get_transaction(
    signature: str,
    current_user: Dict = Depends(get_current_active_user),
    service: NFTService = Depends(get_nft_service),
):
    return await service.get_transaction(signature)


# Balance of an address; defaults to the platform wallet
@router.get("/balance")
async def get_balance(
    address: Optional[str] = Query(None),
    current_user: Dict = Depends(get_current_active_user),
    service: NFTService = Depends(get_nft_service),
):
    return await service.get_balance(address)


# Short-lived download link for a privately pinned file
@private_ipfs_router.post("/access-link")
async def create_access_link(
    request: AccessLinkRequest,
    current_user: Dict = Depends(get_current_active_user),
    service: NFTService = Depends(get_nft_service),
):
    return await service.create_access_link(request.cid, request.expires_in_seconds)
