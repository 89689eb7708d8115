import asyncio
import logging
import random
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional

from pymongo.errors import DuplicateKeyError

from app.clients import Collaborators
from app.core.config import settings
from app.core.errors import (
    AppError,
    ConflictError,
    ExternalServiceError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from app.database.models import NotarizationDocument, Payment
from app.schemas.notarization_schema import MintStatusEnum
from app.schemas.payment_schema import GatewayStatusEnum, PaymentStatusEnum
from app.utils.notarization_utils import document_payment_amount, to_object_id

logger = logging.getLogger(__name__)

# gateway order codes must stay below 2^53 / 10
ORDER_CODE_MAX = 9007199254740991 // 10
MAX_ORDER_CODE_ATTEMPTS = 5

_rng = random.SystemRandom()

SessionHook = Callable[[Payment], Awaitable[Any]]


def draw_order_code() -> int:
    return _rng.randint(1, ORDER_CODE_MAX)


class PaymentService:
    def __init__(self, collaborators: Collaborators, minting_service=None, reconcile_delay: Optional[float] = None):
        self.gateway = collaborators.payments
        self.minting = minting_service
        self.reconcile_delay = settings.PAYMENT_RECONCILE_DELAY_SECONDS if reconcile_delay is None else reconcile_delay
        self._session_hook: Optional[SessionHook] = None

    def register_session_hook(self, hook: Optional[SessionHook]):
        self._session_hook = hook

    async def create_payment(
        self,
        amount: int,
        description: str,
        user_id: str,
        document_id: Optional[str] = None,
        session_id: Optional[str] = None,
        wallet_item_id: Optional[str] = None,
        return_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> Payment:
        if not isinstance(amount, int) or amount <= 0:
            raise ValidationError("amount must be a positive integer")
        if not description or not description.strip():
            raise ValidationError("description is required")

        client_url = (settings.CLIENT_URL or "").split(",")[0].strip()
        payment = None
        for attempt in range(1, MAX_ORDER_CODE_ATTEMPTS + 1):
            candidate = Payment(
                order_code=draw_order_code(),
                amount=amount,
                description=description.strip(),
                user_id=user_id,
                document_id=document_id,
                session_id=session_id,
                wallet_item_id=wallet_item_id,
                return_url=return_url or f"{client_url}/payment/success",
                cancel_url=cancel_url or f"{client_url}/payment/cancel",
            )
            try:
                await candidate.insert()
                payment = candidate
                break
            except DuplicateKeyError:
                logger.warning(f"Order code collision on attempt {attempt}; drawing again")

        if payment is None:
            raise InternalError("Could not allocate a unique order code")

        logger.info(f"Created pending payment {payment.id} (order {payment.order_code}) for user {user_id}")
        await self._request_link(payment)
        return payment

    async def _request_link(self, payment: Payment):
        try:
            link = await self.gateway.create_link(
                order_code=payment.order_code,
                amount=payment.amount,
                description=payment.description,
                return_url=payment.return_url,
                cancel_url=payment.cancel_url,
            )
        except ExternalServiceError:
            logger.error(f"Checkout link for payment {payment.id} failed; record kept as pending")
            raise
        except Exception as e:
            logger.error(f"Checkout link for payment {payment.id} failed: {e}")
            raise ExternalServiceError(f"Payment link creation failed: {e}") from e

        payment.checkout_url = link.checkout_url
        payment.updated_at = datetime.utcnow()
        await Payment.get_motor_collection().update_one(
            {"_id": payment.id},
            {"$set": {"checkout_url": payment.checkout_url, "updated_at": payment.updated_at}},
        )

    async def get_payment_by_id(self, payment_id: str) -> Payment:
        payment = await Payment.get(to_object_id(payment_id, "Payment"))
        if not payment:
            raise NotFoundError("Payment not found")
        return payment

    async def retry_checkout_link(self, payment_id: str) -> Payment:
        payment = await self.get_payment_by_id(payment_id)
        if payment.status != PaymentStatusEnum.pending.value:
            raise ConflictError(f"Payment is already {payment.status}")
        await self._request_link(payment)
        return payment

    async def get_payment_status(self, payment_id: str) -> Dict[str, Any]:
        payment = await self.get_payment_by_id(payment_id)
        if not payment.checkout_url:
            gateway_status = GatewayStatusEnum.skipped.value
        else:
            gateway_status = await self.gateway.get_status(payment.order_code)
        return {
            "payment_id": str(payment.id),
            "order_code": payment.order_code,
            "status": payment.status,
            "gateway_status": gateway_status,
        }

    async def _swap_status(self, payment: Payment, target: str, gateway_status: str) -> bool:
        result = await Payment.get_motor_collection().update_one(
            {"_id": payment.id, "status": PaymentStatusEnum.pending.value},
            {"$set": {"status": target, "gateway_status": gateway_status, "updated_at": datetime.utcnow()}},
        )
        return result.modified_count == 1

    async def _settlement_document(self, payment: Payment) -> NotarizationDocument:
        """The document this payment settles, or ConflictError.

        Only the payment the workflow opened for the document, at the
        document's price, can release its mint.
        """
        document = await NotarizationDocument.get(to_object_id(payment.document_id))
        if document is None:
            raise NotFoundError("Document not found")
        if document.payment_id != str(payment.id):
            logger.warning(f"Payment {payment.id} is not the settlement payment of document {document.id}")
            raise ConflictError("Payment is not the settlement payment of this document")
        expected = document_payment_amount(document)
        if payment.amount != expected:
            logger.warning(f"Payment {payment.id} amount {payment.amount} does not match document price {expected}")
            raise ConflictError("Payment amount does not match the document price")
        return document

    async def _run_mint_hook(self, payment: Payment):
        if payment.document_id:
            if self.minting is None:
                logger.warning(f"No minting service wired; payment {payment.id} settled without mint")
                return
            document = await self._settlement_document(payment)
            await self.minting.mint_document(str(document.id), payment.user_id)
        elif payment.session_id:
            if self._session_hook is None:
                logger.info(f"No session hook registered; skipping post-payment step for session {payment.session_id}")
                return
            await self._session_hook(payment)
        else:
            logger.debug(f"Payment {payment.id} has no mint step")

    async def _settle(self, payment: Payment, verified: str) -> str:
        """Apply a gateway-verified status. Returns the resulting payment status."""
        if verified == GatewayStatusEnum.paid.value:
            if not await self._swap_status(payment, PaymentStatusEnum.success.value, verified):
                raise ConflictError("Payment was already settled")
            logger.info(f"Payment {payment.id} (order {payment.order_code}) marked success")
            await self._run_mint_hook(payment)
            return PaymentStatusEnum.success.value

        if verified == GatewayStatusEnum.cancelled.value:
            if not await self._swap_status(payment, PaymentStatusEnum.cancelled.value, verified):
                raise ConflictError("Payment was already settled")
            logger.info(f"Payment {payment.id} (order {payment.order_code}) cancelled")
            return PaymentStatusEnum.cancelled.value

        await Payment.get_motor_collection().update_one(
            {"_id": payment.id}, {"$set": {"gateway_status": verified}}
        )
        return payment.status

    async def handle_payment_callback(self, order_code: int, reported_status: Optional[str] = None) -> Dict[str, Any]:
        payment = await Payment.find_one(Payment.order_code == order_code)
        if not payment:
            raise NotFoundError("Payment not found")
        if payment.status != PaymentStatusEnum.pending.value:
            raise ConflictError(f"Payment is already {payment.status}")

        verified = (await self.gateway.get_status(order_code)).upper()
        if reported_status and reported_status.upper() != verified:
            logger.warning(f"Callback for order {order_code} reported {reported_status} but gateway says {verified}")

        status = await self._settle(payment, verified)
        return {"order_code": order_code, "status": status, "gateway_status": verified}

    async def _needs_mint(self, payment: Payment) -> bool:
        if not payment.document_id:
            return False
        document = await NotarizationDocument.get(to_object_id(payment.document_id))
        return (
            document is not None
            and document.payment_id == str(payment.id)
            and document.mint_status != MintStatusEnum.minted.value
        )

    async def retry_mint(self, payment_id: str):
        payment = await self.get_payment_by_id(payment_id)
        if payment.status != PaymentStatusEnum.success.value:
            raise ConflictError("Only successful payments can be minted")
        if not payment.document_id:
            raise ValidationError("Payment is not linked to a document")
        document = await self._settlement_document(payment)
        return await self.minting.mint_document(str(document.id), payment.user_id)

    async def update_all_payments(self) -> Dict[str, Any]:
        payments = await Payment.find_all().to_list()
        stats = {"total": len(payments), "processed": 0, "skipped": 0, "failed": 0}

        for payment in payments:
            queried = False
            try:
                if not payment.checkout_url:
                    stats["skipped"] += 1
                    continue

                if payment.status == PaymentStatusEnum.success.value:
                    if await self._needs_mint(payment):
                        await self._run_mint_hook(payment)
                        stats["processed"] += 1
                    else:
                        stats["skipped"] += 1
                    continue

                if payment.status != PaymentStatusEnum.pending.value:
                    stats["skipped"] += 1
                    continue

                queried = True
                verified = (await self.gateway.get_status(payment.order_code)).upper()
                await self._settle(payment, verified)
                stats["processed"] += 1
            except AppError as e:
                stats["failed"] += 1
                logger.error(f"Reconciliation of payment {payment.id} failed: {e.message}")
            except Exception as e:
                stats["failed"] += 1
                logger.error(f"Unexpected error reconciling payment {payment.id}: {e}")

            if queried:
                await asyncio.sleep(self.reconcile_delay)

        logger.info(f"Payment reconciliation finished: {stats}")
        return {"message": "Payment reconciliation completed", "stats": stats}
