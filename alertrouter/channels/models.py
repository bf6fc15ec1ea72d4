"""Notification channel models.

Channel configuration is a closed set of shapes selected by ``channel_type``.
Each shape is a TypedDict so stored JSON can be passed around unchanged while
still documenting the fields each transport reads.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal, TypedDict


class ChannelType(str, Enum):
    """Supported delivery mechanisms."""

    EMAIL = "email"
    WEBHOOK = "webhook"
    SLACK = "slack"
    SMS = "sms"
    PUSH = "push"
    IN_APP = "in_app"


class DeliveryStatus(str, Enum):
    """Delivery state of a row in alert_notifications."""

    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    RETRYING = "retrying"


SUCCESSFUL_DELIVERY_STATUSES: frozenset[str] = frozenset(
    {DeliveryStatus.SENT.value, DeliveryStatus.DELIVERED.value}
)


class EmailChannelConfig(TypedDict, total=False):
    recipients: list[str]
    template: str
    include_context: bool


class WebhookAuthentication(TypedDict, total=False):
    type: Literal["bearer", "basic", "api_key"]
    token: str
    username: str
    password: str
    api_key_header: str
    api_key_value: str


class WebhookChannelConfig(TypedDict, total=False):
    url: str
    method: Literal["POST", "PUT", "PATCH"]
    headers: dict[str, str]
    authentication: WebhookAuthentication


class SlackChannelConfig(TypedDict, total=False):
    webhook_url: str
    channel: str
    username: str
    icon_emoji: str


class SMSChannelConfig(TypedDict, total=False):
    phone_numbers: list[str]
    provider: Literal["twilio", "aws_sns"]
    provider_config: dict[str, Any]


class PushChannelConfig(TypedDict, total=False):
    sound: str
    badge: bool


class InAppChannelConfig(TypedDict, total=False):
    persist_days: int


ChannelConfiguration = (
    EmailChannelConfig
    | WebhookChannelConfig
    | SlackChannelConfig
    | SMSChannelConfig
    | PushChannelConfig
    | InAppChannelConfig
)


@dataclass
class NotificationChannel:
    """A configured delivery mechanism owned by a team.

    Attributes:
        id: Channel identifier (None before the row is written)
        team_id: Owning team
        name: Display name, unique per team
        channel_type: Discriminant selecting the configuration shape
        configuration: Type-specific settings (see the *ChannelConfig shapes)
        enabled: Whether alerts may be delivered through this channel
        max_notifications_per_hour: Rate limit per hour
        max_notifications_per_day: Rate limit per day
        created_by: User that created the channel
        description: Optional free text
    """

    team_id: str | None
    name: str
    channel_type: ChannelType
    configuration: dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    max_notifications_per_hour: int = 50
    max_notifications_per_day: int = 200
    created_by: str | None = None
    description: str | None = None
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class ValidationResult:
    """Outcome of validating a channel configuration."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class ChannelTestResult:
    """Outcome of sending a synthetic test message over a channel.

    Attributes:
        success: Whether the transport accepted the test message
        message: Human-readable summary
        response_time_ms: Wall-clock time spent on the attempt
        details: Transport-specific extras (HTTP status, notes, ...)
    """

    success: bool
    message: str
    response_time_ms: int = 0
    details: dict[str, Any] | None = None


@dataclass
class DailyChannelStats:
    date: str
    total: int = 0
    successful: int = 0
    failed: int = 0


@dataclass
class ChannelUsageStats:
    """Delivery statistics for one channel over a time window."""

    total_notifications: int = 0
    successful_deliveries: int = 0
    failed_deliveries: int = 0
    success_rate: float = 0.0
    average_delivery_time_ms: float = 0.0
    daily_stats: list[DailyChannelStats] = field(default_factory=list)
