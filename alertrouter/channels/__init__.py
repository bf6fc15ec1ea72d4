"""Notification channel package.

This package provides:
- Channel models and per-type configuration shapes
- Configuration validation
- Outbound email/SMS senders
- Test delivery over every channel type
- ChannelRegistry for CRUD, testing and usage statistics
"""

from alertrouter.channels.delivery import CHANNEL_TEST_TIMEOUT_SECONDS, ChannelTestDriver
from alertrouter.channels.models import (
    ChannelTestResult,
    ChannelType,
    ChannelUsageStats,
    DailyChannelStats,
    DeliveryStatus,
    NotificationChannel,
    ValidationResult,
)
from alertrouter.channels.registry import ChannelRegistry
from alertrouter.channels.repository import ChannelRepository
from alertrouter.channels.senders import DeliveryResult, HttpSmsSender, SmtpEmailSender
from alertrouter.channels.validation import validate_channel_configuration

__all__ = [
    # Models
    "ChannelTestResult",
    "ChannelType",
    "ChannelUsageStats",
    "DailyChannelStats",
    "DeliveryStatus",
    "NotificationChannel",
    "ValidationResult",
    # Validation
    "validate_channel_configuration",
    # Senders
    "DeliveryResult",
    "HttpSmsSender",
    "SmtpEmailSender",
    # Delivery
    "CHANNEL_TEST_TIMEOUT_SECONDS",
    "ChannelTestDriver",
    # Registry
    "ChannelRegistry",
    "ChannelRepository",
]
