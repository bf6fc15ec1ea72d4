"""Outbound message senders used by channel test delivery.

This module provides:
- DeliveryResult: Result dataclass for a send attempt
- EmailSender / SmsSender: Protocols the test-delivery driver depends on
- SmtpEmailSender: SMTP-based email sender
- HttpSmsSender: SMS sender that posts to an HTTP gateway (Twilio/SNS relay)
"""

import logging
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Any, Protocol

import aiosmtplib
import httpx

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    """Result of a send attempt.

    Attributes:
        success: Whether the message was accepted
        response_code: HTTP status code or SMTP response code (if applicable)
        error_message: Error message if the send failed
    """

    success: bool
    response_code: int | None = None
    error_message: str | None = None


class EmailSender(Protocol):
    async def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        template_name: str | None = None,
        template_data: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> DeliveryResult: ...


class SmsSender(Protocol):
    async def send_sms(
        self,
        to: str,
        message: str,
        provider: str,
        provider_config: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> DeliveryResult: ...


class SmtpEmailSender:
    """SMTP-based email sender.

    Templates are rendered by the caller; template_name and template_data are
    carried as message headers so downstream tooling can correlate them.
    """

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
    ):
        """Initialize the SMTP sender.

        Args:
            smtp_host: SMTP server hostname
            smtp_port: SMTP server port
            sender: Sender email address
            username: SMTP authentication username (optional)
            password: SMTP authentication password (optional)
            use_tls: Whether to use STARTTLS (default: True)
        """
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls

    async def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        template_name: str | None = None,
        template_data: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> DeliveryResult:
        """Send an HTML email.

        Returns:
            DeliveryResult with success=True and response_code=250 on success,
            or success=False with error_message on failure
        """
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = to
        if template_name:
            message["X-Alert-Template"] = template_name

        text_lines = [subject]
        for key, value in (template_data or {}).items():
            text_lines.append(f"{key}: {value}")
        message.set_content("\n".join(text_lines))
        message.add_alternative(html, subtype="html")

        try:
            await aiosmtplib.send(
                message=message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
            )
        except aiosmtplib.SMTPException as e:
            logger.warning("SMTP delivery to %s failed: %s", to, e)
            return DeliveryResult(success=False, error_message=str(e))

        logger.debug("Email delivered to %s (metadata=%s)", to, metadata)
        return DeliveryResult(success=True, response_code=250)


class HttpSmsSender:
    """SMS sender that relays messages through an HTTP gateway.

    The gateway receives the provider name and its configuration and is
    responsible for talking to Twilio or AWS SNS.
    """

    def __init__(
        self,
        gateway_url: str,
        api_token: str | None = None,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.gateway_url = gateway_url
        self.api_token = api_token
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def send_sms(
        self,
        to: str,
        message: str,
        provider: str,
        provider_config: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> DeliveryResult:
        payload = {
            "to": to,
            "message": message,
            "provider": provider,
            "provider_config": provider_config,
            "metadata": metadata or {},
        }
        headers = {}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(self.gateway_url, json=payload, headers=headers)
                response.raise_for_status()
                return DeliveryResult(success=True, response_code=response.status_code)
        except httpx.TimeoutException:
            return DeliveryResult(success=False, error_message="Request timed out")
        except httpx.HTTPStatusError as e:
            return DeliveryResult(
                success=False,
                response_code=e.response.status_code,
                error_message=str(e),
            )
        except httpx.RequestError as e:
            return DeliveryResult(success=False, error_message=str(e))
