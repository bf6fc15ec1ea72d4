"""Channel test delivery.

Sends a synthetic test message over a configured channel and reports the
outcome as a ChannelTestResult. The driver never raises: transport errors,
timeouts and non-2xx responses are all reported as failed results, and every
result carries the wall-clock time spent on the attempt.

Usage:
    from alertrouter.channels.delivery import ChannelTestDriver

    driver = ChannelTestDriver(email_sender=sender, store=session)
    result = await driver.test(channel)
    if not result.success:
        print(result.message, result.details)
"""

import base64
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

import httpx
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from alertrouter.channels.models import ChannelTestResult, ChannelType, NotificationChannel
from alertrouter.channels.senders import EmailSender, SmsSender

CHANNEL_TEST_TIMEOUT_SECONDS = 10.0
USER_AGENT = "AlertRouter-Test/1.0"
TEST_EMAIL_SUBJECT = "Test Alert Notification"
TEST_EMAIL_TEMPLATE = "test_notification"
SLACK_TEST_COLOR = "good"

TestHandler = Callable[[NotificationChannel], Awaitable[ChannelTestResult]]


class ChannelTestDriver:
    """Sends test messages over each supported channel type.

    Email and SMS go through injected senders, webhook and Slack are posted
    with httpx, and push/in-app only check that the store is reachable.
    """

    def __init__(
        self,
        email_sender: EmailSender | None = None,
        sms_sender: SmsSender | None = None,
        store: AsyncSession | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: logging.Logger | None = None,
    ):
        """Initialize the driver.

        Args:
            email_sender: Sender used for email channel tests
            sms_sender: Sender used for SMS channel tests
            store: Session used for push/in-app reachability checks
            transport: Optional httpx transport (tests pass httpx.MockTransport)
            logger: Optional logger, defaults to the module logger
        """
        self._email_sender = email_sender
        self._sms_sender = sms_sender
        self._store = store
        self._transport = transport
        self._logger = logger or logging.getLogger(__name__)
        self._handlers: dict[ChannelType, TestHandler] = {
            ChannelType.EMAIL: self._test_email,
            ChannelType.WEBHOOK: self._test_webhook,
            ChannelType.SLACK: self._test_slack,
            ChannelType.SMS: self._test_sms,
            ChannelType.PUSH: self._test_store_backed,
            ChannelType.IN_APP: self._test_store_backed,
        }

    async def test(self, channel: NotificationChannel) -> ChannelTestResult:
        """Send a test message over the channel.

        Args:
            channel: Channel to exercise (persisted or not)

        Returns:
            ChannelTestResult; response_time_ms is always populated
        """
        started = time.monotonic()
        try:
            handler = self._handlers.get(ChannelType(channel.channel_type))
        except ValueError:
            handler = None

        if handler is None:
            result = ChannelTestResult(
                success=False,
                message=f"Unsupported channel type: {channel.channel_type}",
            )
        else:
            try:
                result = await handler(channel)
            except httpx.TimeoutException:
                result = ChannelTestResult(
                    success=False,
                    message=f"Request timed out after {CHANNEL_TEST_TIMEOUT_SECONDS:g}s",
                )
            except Exception as e:
                self._logger.warning(
                    "Channel test for %s (%s) failed: %s", channel.id, channel.channel_type, e
                )
                result = ChannelTestResult(success=False, message=f"Test failed: {e}")

        result.response_time_ms = int((time.monotonic() - started) * 1000)
        return result

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=CHANNEL_TEST_TIMEOUT_SECONDS, transport=self._transport)

    async def _test_email(self, channel: NotificationChannel) -> ChannelTestResult:
        recipients = channel.configuration.get("recipients") or []
        if not recipients:
            return ChannelTestResult(success=False, message="No email recipients configured")
        if self._email_sender is None:
            return ChannelTestResult(success=False, message="Email sender is not configured")

        test_time = _utc_now_iso()
        html = (
            "<h2>Test Alert Notification</h2>"
            f"<p>This is a test message for notification channel <strong>{channel.name}</strong>.</p>"
            f"<p>Sent at {test_time}.</p>"
        )
        try:
            delivery = await self._email_sender.send_email(
                recipients[0],
                TEST_EMAIL_SUBJECT,
                html,
                template_name=TEST_EMAIL_TEMPLATE,
                template_data={"channel_name": channel.name, "test_time": test_time},
                metadata={"test": True, "channel_id": channel.id},
            )
        except Exception as e:
            return ChannelTestResult(success=False, message=f"Email test failed: {e}")
        if not delivery.success:
            return ChannelTestResult(
                success=False, message=f"Email test failed: {delivery.error_message}"
            )
        return ChannelTestResult(
            success=True,
            message=f"Test email sent to {recipients[0]}",
            details={"recipient": recipients[0]},
        )

    async def _test_sms(self, channel: NotificationChannel) -> ChannelTestResult:
        config = channel.configuration
        phone_numbers = config.get("phone_numbers") or []
        if not phone_numbers:
            return ChannelTestResult(success=False, message="No phone numbers configured")
        if self._sms_sender is None:
            return ChannelTestResult(success=False, message="SMS sender is not configured")

        try:
            delivery = await self._sms_sender.send_sms(
                phone_numbers[0],
                f"Test alert from notification channel {channel.name}",
                config.get("provider", ""),
                config.get("provider_config") or {},
                metadata={"test": True, "channel_id": channel.id},
            )
        except Exception as e:
            return ChannelTestResult(success=False, message=f"SMS test failed: {e}")
        if not delivery.success:
            return ChannelTestResult(
                success=False, message=f"SMS test failed: {delivery.error_message}"
            )
        return ChannelTestResult(
            success=True,
            message=f"Test SMS sent to {phone_numbers[0]}",
            details={"phone_number": phone_numbers[0]},
        )

    async def _test_store_backed(self, channel: NotificationChannel) -> ChannelTestResult:
        if self._store is None:
            return ChannelTestResult(success=False, message="Notification store is not configured")

        await self._store.execute(text("SELECT 1"))
        label = "Push" if channel.channel_type == ChannelType.PUSH else "In-app"
        return ChannelTestResult(
            success=True,
            message=f"{label} notification channel is reachable",
            details={
                "note": f"{label} notifications are stored for delivery to subscribed clients"
            },
        )

    async def _test_webhook(self, channel: NotificationChannel) -> ChannelTestResult:
        config = channel.configuration
        payload = {
            "test": True,
            "channel_id": channel.id,
            "channel_name": channel.name,
            "timestamp": _utc_now_iso(),
            "message": "This is a test message from the alert notification system",
        }
        headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
        headers.update(config.get("headers") or {})
        _apply_authentication(headers, config.get("authentication"))

        async with self._client() as client:
            response = await client.request(
                config.get("method", "POST"), config["url"], json=payload, headers=headers
            )

        if not response.is_success:
            return ChannelTestResult(
                success=False,
                message=f"Webhook returned {response.status_code}: {response.reason_phrase}",
                details={
                    "status": response.status_code,
                    "status_text": response.reason_phrase,
                    "headers": dict(response.headers),
                },
            )
        return ChannelTestResult(
            success=True,
            message="Webhook test successful",
            details={"status": response.status_code, "status_text": response.reason_phrase},
        )

    async def _test_slack(self, channel: NotificationChannel) -> ChannelTestResult:
        config = channel.configuration
        now = datetime.now(tz=timezone.utc)
        payload: dict[str, Any] = {
            "text": "Test Alert Notification",
            "attachments": [
                {
                    "color": SLACK_TEST_COLOR,
                    "title": "Notification channel test",
                    "text": f"This is a test message for notification channel {channel.name}.",
                    "fields": [
                        {"title": "Channel", "value": channel.name, "short": True},
                        {"title": "Test Time", "value": now.isoformat(), "short": True},
                    ],
                    "footer": "Alert Notification System",
                    "ts": int(now.timestamp()),
                }
            ],
            "username": config.get("username") or "Alert System",
            "icon_emoji": config.get("icon_emoji") or ":test_tube:",
        }
        if config.get("channel"):
            payload["channel"] = config["channel"]

        async with self._client() as client:
            response = await client.post(config["webhook_url"], json=payload)

        if not response.is_success:
            return ChannelTestResult(
                success=False,
                message=f"Slack webhook returned {response.status_code}: {response.reason_phrase}",
                details={"status": response.status_code},
            )
        return ChannelTestResult(
            success=True,
            message="Slack test message sent",
            details={"status": response.status_code, "response": response.text},
        )


def _apply_authentication(headers: dict[str, str], auth: dict[str, Any] | None) -> None:
    if not auth:
        return
    auth_type = auth.get("type")
    if auth_type == "bearer" and auth.get("token"):
        headers["Authorization"] = f"Bearer {auth['token']}"
    elif auth_type == "basic" and auth.get("username") is not None:
        raw = f"{auth['username']}:{auth.get('password', '')}".encode()
        headers["Authorization"] = f"Basic {base64.b64encode(raw).decode()}"
    elif auth_type == "api_key" and auth.get("api_key_header"):
        headers[auth["api_key_header"]] = str(auth.get("api_key_value", ""))


def _utc_now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat()
