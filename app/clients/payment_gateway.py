"""PayOS hosted-checkout adapter."""

import hashlib
import hmac
import logging
from typing import Any, Dict, Optional
import httpx

from app.clients.interfaces import PaymentGateway, PaymentLink
from app.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)


def sign_payment_request(checksum_key: str, amount: int, cancel_url: str, description: str, order_code: int, return_url: str) -> str:
    # PayOS signs the alphabetically sorted query-string form of these five fields
    data = (
        f"amount={amount}&cancelUrl={cancel_url}&description={description}"
        f"&orderCode={order_code}&returnUrl={return_url}"
    )
    return hmac.new(checksum_key.encode("utf-8"), data.encode("utf-8"), hashlib.sha256).hexdigest()


class PayOSGateway(PaymentGateway):
    def __init__(
        self,
        http: httpx.AsyncClient,
        client_id: Optional[str],
        api_key: Optional[str],
        checksum_key: Optional[str],
        base_url: str = "https://api-merchant.payos.vn",
    ):
        self.http = http
        self.client_id = client_id
        self.api_key = api_key
        self.checksum_key = checksum_key
        self.base_url = base_url.rstrip("/")

        if not (client_id and api_key and checksum_key):
            logger.warning("PayOS credentials not configured; payment link creation will fail")

    def _headers(self) -> Dict[str, str]:
        return {
            "x-client-id": self.client_id or "",
            "x-api-key": self.api_key or "",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not (self.client_id and self.api_key and self.checksum_key):
            raise ExternalServiceError("Payment gateway is not configured")
        try:
            response = await self.http.request(method, f"{self.base_url}{path}", headers=self._headers(), json=json)
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"PayOS request {method} {path} failed: {e}")
            raise ExternalServiceError(f"Payment gateway request failed: {e}") from e

        if response.status_code >= 400 or body.get("code") != "00":
            logger.error(f"PayOS error: HTTP {response.status_code} - {body.get('desc')}")
            raise ExternalServiceError(f"Payment gateway error: {body.get('desc') or response.status_code}")
        return body.get("data") or {}

    async def create_link(self, order_code: int, amount: int, description: str, return_url: str, cancel_url: str) -> PaymentLink:
        payload = {
            "orderCode": order_code,
            "amount": amount,
            "description": description,
            "returnUrl": return_url,
            "cancelUrl": cancel_url,
            "signature": sign_payment_request(self.checksum_key or "", amount, cancel_url, description, order_code, return_url),
        }
        data = await self._request("POST", "/v2/payment-requests", json=payload)
        checkout_url = data.get("checkoutUrl")
        if not checkout_url:
            raise ExternalServiceError("Payment gateway returned no checkout URL")
        logger.info(f"Created PayOS checkout link for order {order_code}")
        return PaymentLink(checkout_url=checkout_url, payment_link_id=data.get("paymentLinkId"))

    async def get_status(self, order_code: int) -> str:
        data = await self._request("GET", f"/v2/payment-requests/{order_code}")
        return str(data.get("status") or "").upper()
