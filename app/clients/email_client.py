"""
Transactional email over an HTTP email API.

The provider is any JSON endpoint accepting ``{from, to, subject, text}`` with a
bearer token (Resend, Mailgun-compatible relays, an internal mailer, ...).
"""

import logging
from typing import Any, Dict, Optional
import httpx

from app.clients.interfaces import EmailSender
from app.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)


# template name -> (subject, body); bodies are str.format templates
TEMPLATES: Dict[str, tuple] = {
    "nft_transfer": (
        "You received a notarized document",
        "Hello! {amount} copy(ies) of the notarized document '{filename}' "
        "have been transferred to your wallet.",
    ),
    "nft_payment": (
        "Complete your document purchase",
        "You requested {amount} copy(ies) of '{filename}'. "
        "Complete the payment here: {checkout_url}",
    ),
    "payment_link": (
        "Your notarization is ready for payment",
        "Your document '{document_id}' has been accepted. "
        "Please complete the payment of {payment_amount} here: {checkout_url}",
    ),
    "document_rejected": (
        "Your notarization request was rejected",
        "Your document '{document_id}' was rejected. Reason: {feedback}",
    ),
}


def render_template(template: str, data: Dict[str, Any]) -> tuple:
    if template not in TEMPLATES:
        raise ValueError(f"Unknown email template: {template}")
    subject, body = TEMPLATES[template]
    return subject, body.format(**data)


def _mask_email(email: str) -> str:
    name, _, domain = (email or "").partition("@")
    return f"{name[:2]}***@{domain}" if domain else "<invalid>"


class HttpEmailSender(EmailSender):
    """Service for sending templated email via an HTTP email API."""

    def __init__(self, http: httpx.AsyncClient, api_url: Optional[str], api_key: Optional[str], sender: str):
        self.http = http
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender

        if self.api_url and self.api_key:
            logger.info("Email service initialized successfully")
        else:
            logger.warning(
                "Email credentials not configured. Set EMAIL_API_URL "
                "and EMAIL_API_KEY environment variables"
            )

    async def send(self, to: str, template: str, data: Dict[str, Any]) -> None:
        if not self.api_url or not self.api_key:
            raise ExternalServiceError("Email service not initialized. Please configure EMAIL_API_URL and EMAIL_API_KEY")

        subject, text = render_template(template, data)
        logger.info(f"Sending '{template}' email to {_mask_email(to)}")

        try:
            response = await self.http.post(
                self.api_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                json={"from": self.sender, "to": [to], "subject": subject, "text": text},
            )
        except httpx.HTTPError as e:
            logger.error(f"HTTP error sending email: {str(e)}")
            raise ExternalServiceError(f"Failed to send email: {str(e)}") from e

        if response.status_code >= 400:
            logger.error(f"Email API error: HTTP {response.status_code} - {response.text[:200]}")
            raise ExternalServiceError(f"Email API error: HTTP {response.status_code}")
