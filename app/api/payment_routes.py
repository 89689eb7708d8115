from fastapi import APIRouter, Depends, status
from typing import Dict, Optional
import logging

from app.core.auth_dependencies import get_current_active_user, require_roles
from app.core.errors import AccessDeniedError
from app.core.service_dependencies import get_payment_service
from app.helpers.response_builder import build_document_response, build_payment_response
from app.schemas.payment_schema import PaymentCallback, PaymentCreate, ReconciliationResult
from app.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def _check_owner(payment, current_user: Dict):
    if payment.user_id != current_user["id"] and current_user.get("role") != "admin":
        raise AccessDeniedError("You do not have access to this payment")


# Creates a pending payment and requests a checkout link for it.
# Document payments are opened by the workflow on acceptance, never here.
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_payment(
    request: PaymentCreate,
    current_user: Dict = Depends(get_current_active_user),
    service: PaymentService = Depends(get_payment_service),
):
    user_id = current_user["id"]
    if request.user_id and request.user_id != user_id and current_user.get("role") != "admin":
        raise AccessDeniedError("Payments can only be created for your own account")
    payment = await service.create_payment(
        amount=request.amount,
        description=request.description,
        user_id=request.user_id or user_id,
        session_id=request.session_id,
    )
    return build_payment_response(payment)


# Gateway redirect / webhook; the status is always re-verified with the gateway
@router.post("/callback/{order_code}")
async def payment_callback(
    order_code: int,
    body: Optional[PaymentCallback] = None,
    service: PaymentService = Depends(get_payment_service),
):
    return await service.handle_payment_callback(order_code, body.status if body else None)


# Reconciles every stored payment against the gateway (admin)
@router.post("/update-all", response_model=ReconciliationResult)
async def update_all_payments(
    current_user: Dict = Depends(require_roles("admin")),
    service: PaymentService = Depends(get_payment_service),
):
    return await service.update_all_payments()


# Returns a stored payment
@router.get("/{payment_id}")
async def get_payment(
    payment_id: str,
    current_user: Dict = Depends(get_current_active_user),
    service: PaymentService = Depends(get_payment_service),
):
    payment = await service.get_payment_by_id(payment_id)
    _check_owner(payment, current_user)
    return build_payment_response(payment)


# Returns the stored status alongside the status the gateway reports
@router.get("/{payment_id}/status")
async def get_payment_status(
    payment_id: str,
    current_user: Dict = Depends(get_current_active_user),
    service: PaymentService = Depends(get_payment_service),
):
    _check_owner(await service.get_payment_by_id(payment_id), current_user)
    return await service.get_payment_status(payment_id)


# Requests a new checkout link for a pending payment
@router.post("/{payment_id}/checkout-link")
async def retry_checkout_link(
    payment_id: str,
    current_user: Dict = Depends(get_current_active_user),
    service: PaymentService = Depends(get_payment_service),
):
    _check_owner(await service.get_payment_by_id(payment_id), current_user)
    payment = await service.retry_checkout_link(payment_id)
    return build_payment_response(payment)


# Re-runs minting for a settled payment whose mint did not complete (admin)
@router.post("/{payment_id}/mint")
async def retry_mint(
    payment_id: str,
    current_user: Dict = Depends(require_roles("admin")),
    service: PaymentService = Depends(get_payment_service),
):
    document = await service.retry_mint(payment_id)
    return build_document_response(document)
