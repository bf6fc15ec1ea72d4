"""Tests for application settings."""

import httpx

from alertrouter.alerts.setup import build_email_sender, build_sms_sender
from alertrouter.channels.senders import HttpSmsSender, SmtpEmailSender
from alertrouter.config import Settings


def test_defaults(monkeypatch):
    """Outbound senders are off unless configured."""
    monkeypatch.delenv("SMTP_HOST", raising=False)
    monkeypatch.delenv("SMS_GATEWAY_URL", raising=False)
    monkeypatch.delenv("BUSINESS_TIMEZONE", raising=False)

    config = Settings(_env_file=None)

    assert config.smtp_host is None
    assert config.smtp_port == 587
    assert config.sms_gateway_url is None
    assert config.business_timezone == "UTC"
    assert build_email_sender(config) is None
    assert build_sms_sender(config) is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PORT", "2525")
    monkeypatch.setenv("SMS_GATEWAY_URL", "https://sms.example.com/send")
    monkeypatch.setenv("BUSINESS_TIMEZONE", "Europe/London")

    config = Settings(_env_file=None)

    assert config.smtp_port == 2525
    assert config.business_timezone == "Europe/London"
    assert isinstance(build_email_sender(config), SmtpEmailSender)
    assert isinstance(
        build_sms_sender(config, transport=httpx.MockTransport(lambda r: httpx.Response(200))),
        HttpSmsSender,
    )
