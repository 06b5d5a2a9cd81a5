import httpx
from dataclasses import dataclass
from typing import Optional, List, Dict
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class EmailResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class ResendEmailClient:
    """Resend REST API client."""

    def __init__(self, api_key: Optional[str] = None, api_url: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key if api_key is not None else settings.resend_api_key
        self.api_url = api_url or settings.resend_api_url
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def send(self, to: str, subject: str, html: str, text: str,
                   tags: Optional[List[Dict[str, str]]] = None) -> EmailResult:
        """
        Send one email.

        Args:
            to: Recipient address
            subject: Subject line
            html: HTML body
            text: Plain text body
            tags: Resend tags ({"name", "value"} pairs)

        Returns:
            EmailResult: Provider message id on success, error text otherwise
        """
        if not self.configured:
            logger.warning(f"Email to {to} skipped: RESEND_API_KEY is not configured")
            return EmailResult(success=False, error="Email provider not configured")

        payload = {
            "from": settings.from_email,
            "to": [to],
            "subject": subject,
            "html": html,
            "text": text,
            "reply_to": settings.reply_to_email,
            "tags": tags or []
        }

        try:
            async with httpx.AsyncClient(
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json"
                },
                timeout=10.0,
                transport=self.transport
            ) as client:
                response = await client.post(self.api_url, json=payload)

            if response.status_code >= 400:
                logger.error(f"Resend rejected email to {to}: {response.status_code} {response.text}")
                return EmailResult(success=False, error=f"Provider returned {response.status_code}")

            return EmailResult(success=True, message_id=response.json().get("id"))
        except httpx.HTTPError as e:
            logger.error(f"Email send failed for {to}: {e}")
            return EmailResult(success=False, error=str(e))


email_client = ResendEmailClient()
