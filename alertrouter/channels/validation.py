"""Channel configuration validation.

Validation is a pure function of (channel_type, configuration): it performs no
I/O, never raises and never mutates its input. Findings are returned as data in
a ValidationResult; warnings never make a configuration invalid.

Usage:
    from alertrouter.channels.validation import validate_channel_configuration

    result = validate_channel_configuration("email", {"recipients": ["ops@example.com"]})
    if not result.is_valid:
        print(result.errors)
"""

import re
from collections.abc import Callable, Mapping
from typing import Any
from urllib.parse import urlparse

from alertrouter.channels.models import ChannelType, ValidationResult

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{6,14}$")
PHONE_STRIP_PATTERN = re.compile(r"[\s\-()]")

MAX_RECOMMENDED_EMAIL_RECIPIENTS = 50
WEBHOOK_METHODS = ("POST", "PUT", "PATCH")
SMS_PROVIDERS = ("twilio", "aws_sns")
SLACK_WEBHOOK_HOST = "hooks.slack.com"

Validator = Callable[[Mapping[str, Any], list[str], list[str]], None]


def _validate_email(config: Mapping[str, Any], errors: list[str], warnings: list[str]) -> None:
    recipients = config.get("recipients") or []
    if not isinstance(recipients, list | tuple) or len(recipients) == 0:
        errors.append("At least one email recipient is required")
        return

    for index, email in enumerate(recipients):
        if not isinstance(email, str) or not EMAIL_PATTERN.match(email):
            errors.append(f"Invalid email address at index {index}: {email}")

    if len(recipients) > MAX_RECOMMENDED_EMAIL_RECIPIENTS:
        warnings.append("Large number of recipients may impact delivery performance")


def _is_parseable_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _validate_webhook(config: Mapping[str, Any], errors: list[str], warnings: list[str]) -> None:
    url = config.get("url")
    if not url:
        errors.append("Webhook URL is required")
    elif not isinstance(url, str) or not _is_parseable_url(url):
        errors.append("Invalid webhook URL format")

    if config.get("method") not in WEBHOOK_METHODS:
        errors.append("HTTP method must be POST, PUT, or PATCH")

    auth = config.get("authentication")
    if not auth:
        return
    if not isinstance(auth, Mapping):
        errors.append("Webhook authentication must be an object")
        return

    auth_type = auth.get("type")
    if auth_type == "bearer":
        if not auth.get("token"):
            errors.append("Bearer token is required for bearer authentication")
    elif auth_type == "basic":
        if not auth.get("username") or not auth.get("password"):
            errors.append("Username and password are required for basic authentication")
    elif auth_type == "api_key":
        if not auth.get("api_key_header") or not auth.get("api_key_value"):
            errors.append("API key header and value are required for API key authentication")
    else:
        warnings.append(f"Unknown webhook authentication type: {auth_type}")


def _validate_slack(config: Mapping[str, Any], errors: list[str], warnings: list[str]) -> None:
    webhook_url = config.get("webhook_url")
    if not webhook_url:
        errors.append("Slack webhook URL is required")
    elif SLACK_WEBHOOK_HOST not in str(webhook_url):
        warnings.append("Webhook URL does not appear to be a valid Slack webhook")

    channel = config.get("channel")
    if channel and not str(channel).startswith(("#", "@")):
        warnings.append("Channel name should start with # for channels or @ for direct messages")


def _validate_sms(config: Mapping[str, Any], errors: list[str], warnings: list[str]) -> None:
    phone_numbers = config.get("phone_numbers") or []
    if not isinstance(phone_numbers, list | tuple) or len(phone_numbers) == 0:
        errors.append("At least one phone number is required")
    else:
        for index, phone in enumerate(phone_numbers):
            normalized = PHONE_STRIP_PATTERN.sub("", str(phone))
            if not PHONE_PATTERN.match(normalized):
                errors.append(f"Invalid phone number at index {index}: {phone}")

    if config.get("provider") not in SMS_PROVIDERS:
        errors.append('SMS provider must be either "twilio" or "aws_sns"')

    if not config.get("provider_config"):
        errors.append("Provider configuration is required")


def _validate_nothing(config: Mapping[str, Any], errors: list[str], warnings: list[str]) -> None:
    # Push and in-app delivery need no transport settings.
    return None


VALIDATORS: dict[ChannelType, Validator] = {
    ChannelType.EMAIL: _validate_email,
    ChannelType.WEBHOOK: _validate_webhook,
    ChannelType.SLACK: _validate_slack,
    ChannelType.SMS: _validate_sms,
    ChannelType.PUSH: _validate_nothing,
    ChannelType.IN_APP: _validate_nothing,
}


def validate_channel_configuration(
    channel_type: ChannelType | str, configuration: Mapping[str, Any] | None
) -> ValidationResult:
    """Validate a channel configuration payload for the given channel type.

    Args:
        channel_type: Discriminant selecting the configuration shape
        configuration: The configuration payload to check (not modified)

    Returns:
        ValidationResult with is_valid, errors and warnings
    """
    errors: list[str] = []
    warnings: list[str] = []

    try:
        resolved_type = ChannelType(channel_type)
    except ValueError:
        errors.append(f"Unsupported channel type: {channel_type}")
        return ValidationResult(is_valid=False, errors=errors, warnings=warnings)

    if configuration is None:
        configuration = {}
    if not isinstance(configuration, Mapping):
        errors.append("Channel configuration must be an object")
        return ValidationResult(is_valid=False, errors=errors, warnings=warnings)

    VALIDATORS[resolved_type](configuration, errors, warnings)

    return ValidationResult(is_valid=len(errors) == 0, errors=errors, warnings=warnings)
