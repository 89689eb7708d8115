from fastapi import APIRouter, Depends, status
from typing import Dict
import logging

from app.core.auth_dependencies import get_current_active_user, require_roles
from app.core.service_dependencies import get_wallet_service
from app.helpers.response_builder import build_payment_response, build_wallet_response
from app.schemas.wallet_schema import DecreaseRequest, NFTItemCreate, PurchaseRequest, TransferRequest
from app.services.wallet_service import WalletService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/userWallet", tags=["Wallet"])


# Returns the caller's wallet, creating an empty one on first access
@router.get("/wallet")
async def get_wallet(
    current_user: Dict = Depends(get_current_active_user),
    service: WalletService = Depends(get_wallet_service),
):
    wallet = await service.get_wallet(current_user["id"])
    return build_wallet_response(wallet)


# Moves copies of an NFT from the caller to another user
@router.post("/wallet/transfer")
async def transfer_nft(
    request: TransferRequest,
    current_user: Dict = Depends(get_current_active_user),
    service: WalletService = Depends(get_wallet_service),
):
    return await service.transfer_nft(current_user["id"], request.to_user_email, request.mint_address, request.amount)


# Buys extra copies of a held NFT; copies are credited before the payment settles
@router.post("/wallet/purchase", status_code=status.HTTP_201_CREATED)
async def purchase_document(
    request: PurchaseRequest,
    current_user: Dict = Depends(get_current_active_user),
    service: WalletService = Depends(get_wallet_service),
):
    result = await service.purchase_document(current_user["id"], current_user["email"], request.item_id, request.amount)
    return {
        "payment": build_payment_response(result["payment"]),
        "item": result["item"].model_dump(),
    }


# Consumes one copy per listed item id, all or nothing
@router.post("/wallet/decrease")
async def decrease_nft_amount(
    request: DecreaseRequest,
    current_user: Dict = Depends(get_current_active_user),
    service: WalletService = Depends(get_wallet_service),
):
    wallet = await service.decrease_nft_amount(current_user["id"], request.item_ids)
    return build_wallet_response(wallet)


# Adds an NFT to a user's wallet (admin)
@router.post("/wallet/{user_id}/nft", status_code=status.HTTP_201_CREATED)
async def add_nft_to_wallet(
    user_id: str,
    request: NFTItemCreate,
    current_user: Dict = Depends(require_roles("admin")),
    service: WalletService = Depends(get_wallet_service),
):
    item = await service.add_nft_to_wallet(user_id, request.model_dump(by_alias=False))
    return item.model_dump()
