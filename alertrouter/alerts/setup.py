"""Alerting component wiring.

Builds the channel registry, severity router and alert service from a
database session and Settings. Components are constructed per call; nothing
is cached at module level.

Usage:
    from alertrouter.alerts.setup import build_components

    async with async_session() as session:
        components = build_components(session)
        result = await components.router.route_alert(alert)
"""

import logging
from dataclasses import dataclass

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from alertrouter.alerts.repository import AlertRepository
from alertrouter.alerts.routing import SeverityRouter
from alertrouter.alerts.service import AlertService
from alertrouter.channels.delivery import ChannelTestDriver
from alertrouter.channels.registry import ChannelRegistry
from alertrouter.channels.repository import ChannelRepository
from alertrouter.channels.senders import HttpSmsSender, SmtpEmailSender
from alertrouter.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


@dataclass
class AlertingComponents:
    """Everything the HTTP layer needs for one unit of work."""

    registry: ChannelRegistry
    router: SeverityRouter
    service: AlertService


def build_email_sender(config: Settings) -> SmtpEmailSender | None:
    """Create the SMTP sender if SMTP is configured."""
    if not config.smtp_host:
        return None
    return SmtpEmailSender(
        smtp_host=config.smtp_host,
        smtp_port=config.smtp_port,
        sender=config.smtp_sender,
        username=config.smtp_username,
        password=config.smtp_password,
        use_tls=config.smtp_use_tls,
    )


def build_sms_sender(
    config: Settings, transport: httpx.AsyncBaseTransport | None = None
) -> HttpSmsSender | None:
    """Create the SMS gateway sender if a gateway URL is configured."""
    if not config.sms_gateway_url:
        return None
    return HttpSmsSender(
        gateway_url=config.sms_gateway_url,
        api_token=config.sms_gateway_token,
        transport=transport,
    )


def build_components(
    session: AsyncSession,
    config: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AlertingComponents:
    """Wire repositories, driver, registry, router and service together.

    Args:
        session: Database session shared by all repositories
        config: Settings to read SMTP/SMS/timezone from (defaults to module settings)
        transport: Optional httpx transport for outbound HTTP (tests)

    Returns:
        AlertingComponents bound to the session
    """
    config = config or default_settings

    email_sender = build_email_sender(config)
    sms_sender = build_sms_sender(config, transport)
    if email_sender is None:
        logger.debug("SMTP not configured; email channel tests will fail")
    if sms_sender is None:
        logger.debug("SMS gateway not configured; SMS channel tests will fail")

    driver = ChannelTestDriver(
        email_sender=email_sender,
        sms_sender=sms_sender,
        store=session,
        transport=transport,
    )
    registry = ChannelRegistry(ChannelRepository(session), driver)

    alert_repo = AlertRepository(session)
    router = SeverityRouter(alert_repo, timezone=config.business_timezone)
    service = AlertService(alert_repo, router=router)

    return AlertingComponents(registry=registry, router=router, service=service)
