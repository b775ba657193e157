from typing import Any, Dict, Optional

import httpx

from app.config.settings import settings
from app.utils.errors import TransientIOError
from app.utils.logging import get_logger

logger = get_logger()


class EmailSender:
    """Transactional e-mail through the Brevo HTTP API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        sender_address: Optional[str] = None,
        sender_name: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.BREVO_API_KEY
        self.api_url = api_url or settings.BREVO_API_URL
        self.sender_address = sender_address or settings.EMAIL_SENDER_ADDRESS
        self.sender_name = sender_name or settings.EMAIL_SENDER_NAME
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT_SECONDS

    def _build_payload(self, to: str, subject: str, html: str) -> Dict[str, Any]:
        return {
            "sender": {"email": self.sender_address, "name": self.sender_name},
            "to": [{"email": to}],
            "subject": subject,
            "htmlContent": html,
        }

    async def send_email(self, to: str, subject: str, html: str) -> Dict[str, Any]:
        """
        Send one e-mail.

        Raises:
            TransientIOError: missing credentials, network failure or a non-2xx reply
        """
        if not self.api_key:
            raise TransientIOError(
                "Brevo API key is not configured", error_code="EMAIL_NOT_CONFIGURED"
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.api_url,
                    headers={
                        "api-key": self.api_key,
                        "accept": "application/json",
                        "content-type": "application/json",
                    },
                    json=self._build_payload(to, subject, html),
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransientIOError(
                f"Brevo rejected e-mail: {e.response.status_code} - {e.response.text}",
                error_code="EMAIL_SEND_FAILED",
            )
        except httpx.RequestError as e:
            raise TransientIOError(
                f"Brevo request failed: {e}", error_code="EMAIL_SEND_FAILED"
            )

        logger.info(f"E-mail '{subject}' sent to {to}")
        return response.json() if response.content else {}


class SmsSender:
    """Text messages through the iProg SMS API."""

    def __init__(
        self,
        api_token: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.api_token = api_token if api_token is not None else settings.IPROG_API_KEY
        self.api_url = api_url or settings.IPROG_SMS_URL
        self.timeout = timeout or settings.NOTIFICATION_TIMEOUT_SECONDS

    async def send_sms(self, to: str, message: str) -> Dict[str, Any]:
        """
        Send one SMS.

        Raises:
            TransientIOError: missing credentials or recipient, network failure or a non-2xx reply
        """
        if not to or not message:
            raise TransientIOError(
                "Recipient number and message are required",
                error_code="SMS_INVALID_PAYLOAD",
            )
        if not self.api_token:
            raise TransientIOError(
                "iProg API token is not configured", error_code="SMS_NOT_CONFIGURED"
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.api_url,
                    json={
                        "api_token": self.api_token,
                        "phone_number": to,
                        "message": message,
                    },
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransientIOError(
                f"iProg rejected SMS: {e.response.status_code} - {e.response.text}",
                error_code="SMS_SEND_FAILED",
            )
        except httpx.RequestError as e:
            raise TransientIOError(
                f"iProg request failed: {e}", error_code="SMS_SEND_FAILED"
            )

        logger.info(f"SMS sent to {to}")
        return response.json() if response.content else {}


class NotificationGateway:
    """E-mail and SMS transports behind one object so services can swap both in tests."""

    def __init__(
        self,
        email_sender: Optional[EmailSender] = None,
        sms_sender: Optional[SmsSender] = None,
    ):
        self.email_sender = email_sender or EmailSender()
        self.sms_sender = sms_sender or SmsSender()

    async def send_email(self, to: str, subject: str, html: str) -> Dict[str, Any]:
        return await self.email_sender.send_email(to, subject, html)

    async def send_sms(self, to: str, message: str) -> Dict[str, Any]:
        return await self.sms_sender.send_sms(to, message)
