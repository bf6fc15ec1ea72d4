"""Notification channel registry.

CRUD and operational helpers for notification channels. Every write path
validates the configuration first and raises ChannelValidationError before
touching the store, so an invalid channel is never persisted.

Usage:
    from alertrouter.channels.registry import ChannelRegistry

    registry = ChannelRegistry(ChannelRepository(session), ChannelTestDriver(...))
    channel = await registry.create_channel(
        team_id="team-1",
        name="Ops email",
        channel_type="email",
        configuration={"recipients": ["ops@example.com"]},
        created_by="user-1",
    )
    result = await registry.test_channel(channel.id)
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

from alertrouter.channels.delivery import ChannelTestDriver
from alertrouter.channels.models import (
    SUCCESSFUL_DELIVERY_STATUSES,
    ChannelTestResult,
    ChannelType,
    ChannelUsageStats,
    DailyChannelStats,
    DeliveryStatus,
    NotificationChannel,
)
from alertrouter.channels.repository import ChannelRepository
from alertrouter.channels.validation import validate_channel_configuration
from alertrouter.exceptions import ChannelNotFoundError, ChannelValidationError

UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "description",
        "channel_type",
        "configuration",
        "enabled",
        "max_notifications_per_hour",
        "max_notifications_per_day",
    }
)

# Columns that cannot be cleared; a null for one of them leaves it unchanged
NON_NULLABLE_FIELDS = UPDATABLE_FIELDS - {"description"}


class ChannelRegistry:
    """Manages notification channels for teams."""

    def __init__(
        self,
        repository: ChannelRepository,
        driver: ChannelTestDriver,
        logger: logging.Logger | None = None,
    ):
        self._repository = repository
        self._driver = driver
        self._logger = logger or logging.getLogger(__name__)

    async def create_channel(
        self,
        team_id: str | None,
        name: str,
        channel_type: ChannelType | str,
        configuration: dict[str, Any],
        created_by: str | None = None,
        description: str | None = None,
        enabled: bool = True,
        max_notifications_per_hour: int = 50,
        max_notifications_per_day: int = 200,
    ) -> NotificationChannel:
        """Validate and persist a new channel.

        Raises:
            ChannelValidationError: If the configuration is invalid
        """
        _ensure_valid(channel_type, configuration)

        channel = NotificationChannel(
            team_id=team_id,
            name=name,
            channel_type=ChannelType(channel_type),
            configuration=dict(configuration),
            enabled=enabled,
            max_notifications_per_hour=max_notifications_per_hour,
            max_notifications_per_day=max_notifications_per_day,
            created_by=created_by,
            description=description,
        )
        channel = await self._repository.insert_channel(channel)
        self._logger.info(
            "Created %s channel %s (%s) for team %s",
            channel.channel_type.value,
            channel.id,
            channel.name,
            channel.team_id,
        )
        return channel

    async def update_channel(
        self, channel_id: str, updates: dict[str, Any]
    ) -> NotificationChannel:
        """Apply a partial update to a channel.

        When the type or configuration changes, the merged result is validated
        before anything is written. Unknown keys are ignored, as are nulls for
        fields other than the description.

        Raises:
            ChannelNotFoundError: If the channel does not exist
            ChannelValidationError: If the merged configuration is invalid
        """
        existing = await self._repository.get_channel(channel_id)
        if existing is None:
            raise ChannelNotFoundError(channel_id)

        changes = {
            key: value
            for key, value in updates.items()
            if key in UPDATABLE_FIELDS and not (value is None and key in NON_NULLABLE_FIELDS)
        }
        if "configuration" in changes or "channel_type" in changes:
            merged_type = changes.get("channel_type", existing.channel_type)
            merged_config = changes.get("configuration", existing.configuration)
            _ensure_valid(merged_type, merged_config)
            if "channel_type" in changes:
                changes["channel_type"] = ChannelType(merged_type)

        updated = replace(existing, **changes)
        updated = await self._repository.update_channel(updated)
        self._logger.info("Updated channel %s (%s)", channel_id, ", ".join(sorted(changes)))
        return updated

    async def delete_channel(self, channel_id: str) -> bool:
        deleted = await self._repository.delete_channel(channel_id)
        if deleted:
            self._logger.info("Deleted channel %s", channel_id)
        return deleted

    async def get_channel(self, channel_id: str) -> NotificationChannel | None:
        return await self._repository.get_channel(channel_id)

    async def list_channels(self, team_id: str | None = None) -> list[NotificationChannel]:
        return await self._repository.list_channels(team_id)

    async def get_channels_by_type(
        self, channel_type: ChannelType | str, team_id: str | None = None
    ) -> list[NotificationChannel]:
        return await self._repository.list_channels_by_type(ChannelType(channel_type), team_id)

    async def test_channel(self, channel_id: str) -> ChannelTestResult:
        """Send a test message over a stored channel.

        A missing channel is reported as a failed result, not raised.
        """
        channel = await self._repository.get_channel(channel_id)
        if channel is None:
            return ChannelTestResult(success=False, message="Channel not found")
        return await self._driver.test(channel)

    async def test_channel_configuration(self, channel: NotificationChannel) -> ChannelTestResult:
        """Send a test message over a channel that has not been saved."""
        return await self._driver.test(channel)

    async def toggle_channel(self, channel_id: str, enabled: bool) -> NotificationChannel:
        """Enable or disable a channel.

        Raises:
            ChannelNotFoundError: If the channel does not exist
        """
        if not await self._repository.set_enabled(channel_id, enabled):
            raise ChannelNotFoundError(channel_id)
        channel = await self._repository.get_channel(channel_id)
        if channel is None:
            raise ChannelNotFoundError(channel_id)
        self._logger.info("Channel %s %s", channel_id, "enabled" if enabled else "disabled")
        return channel

    async def duplicate_channel(self, channel_id: str, new_name: str) -> NotificationChannel:
        """Copy a channel under a new name. The copy always starts disabled.

        Raises:
            ChannelNotFoundError: If the source channel does not exist
        """
        source = await self._repository.get_channel(channel_id)
        if source is None:
            raise ChannelNotFoundError(channel_id)

        return await self.create_channel(
            team_id=source.team_id,
            name=new_name,
            channel_type=source.channel_type,
            configuration=dict(source.configuration),
            created_by=source.created_by,
            description=f"Copy of {source.name}",
            enabled=False,
            max_notifications_per_hour=source.max_notifications_per_hour,
            max_notifications_per_day=source.max_notifications_per_day,
        )

    async def get_channel_usage_stats(self, channel_id: str, days: int = 30) -> ChannelUsageStats:
        """Summarize delivery outcomes for a channel over the last ``days`` days.

        Args:
            channel_id: Channel to summarize
            days: Size of the window ending now

        Returns:
            ChannelUsageStats with success_rate as a percentage and daily_stats
            keyed by UTC date in ascending order
        """
        since = datetime.now(tz=timezone.utc) - timedelta(days=days)
        rows = await self._repository.get_notifications_since(channel_id, since)
        return summarize_deliveries(rows)


def summarize_deliveries(rows: list[dict[str, Any]]) -> ChannelUsageStats:
    """Aggregate alert_notifications rows into ChannelUsageStats."""
    total = len(rows)
    successful = 0
    failed = 0
    latencies_ms: list[float] = []
    daily: dict[str, DailyChannelStats] = {}

    for row in rows:
        created_at = row["created_at"]
        day_key = created_at.astimezone(timezone.utc).date().isoformat()
        day = daily.setdefault(day_key, DailyChannelStats(date=day_key))
        day.total += 1

        if row["status"] in SUCCESSFUL_DELIVERY_STATUSES:
            successful += 1
            day.successful += 1
        elif row["status"] == DeliveryStatus.FAILED.value:
            failed += 1
            day.failed += 1

        if row["sent_at"] is not None:
            latencies_ms.append((row["sent_at"] - created_at).total_seconds() * 1000)

    return ChannelUsageStats(
        total_notifications=total,
        successful_deliveries=successful,
        failed_deliveries=failed,
        success_rate=(successful / total * 100) if total else 0.0,
        average_delivery_time_ms=(sum(latencies_ms) / len(latencies_ms)) if latencies_ms else 0.0,
        daily_stats=[daily[key] for key in sorted(daily)],
    )


def _ensure_valid(channel_type: ChannelType | str, configuration: Any) -> None:
    result = validate_channel_configuration(channel_type, configuration)
    if not result.is_valid:
        raise ChannelValidationError(result.errors, result.warnings)
