"""Tests for ChannelRegistry."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from alertrouter.channels.models import (
    ChannelTestResult,
    ChannelType,
    NotificationChannel,
)
from alertrouter.channels.registry import ChannelRegistry, summarize_deliveries
from alertrouter.channels.repository import ChannelRepository
from alertrouter.exceptions import ChannelNotFoundError, ChannelValidationError

EMAIL_CONFIG = {"recipients": ["ops@example.com"]}


def _registry(db_session, driver=None) -> ChannelRegistry:
    if driver is None:
        driver = MagicMock()
        driver.test = AsyncMock(return_value=ChannelTestResult(success=True, message="ok"))
    return ChannelRegistry(ChannelRepository(db_session), driver)


class TestCreateChannel:
    """Tests for creating channels."""

    @pytest.mark.asyncio
    async def test_create_valid_channel(self, db_session):
        registry = _registry(db_session)

        channel = await registry.create_channel(
            team_id="team-1",
            name="Ops email",
            channel_type="email",
            configuration=EMAIL_CONFIG,
            created_by="user-1",
        )

        assert channel.id is not None
        assert channel.channel_type == ChannelType.EMAIL
        stored = await registry.get_channel(channel.id)
        assert stored.configuration == EMAIL_CONFIG
        assert stored.max_notifications_per_hour == 50
        assert stored.max_notifications_per_day == 200
        assert stored.enabled is True

    @pytest.mark.asyncio
    async def test_invalid_channel_is_never_stored(self):
        """Validation failure raises before the repository is touched."""
        repository = AsyncMock(spec=ChannelRepository)
        registry = ChannelRegistry(repository, MagicMock())

        with pytest.raises(ChannelValidationError) as exc_info:
            await registry.create_channel(
                team_id="team-1",
                name="Broken",
                channel_type="email",
                configuration={"recipients": []},
            )

        assert exc_info.value.errors == ["At least one email recipient is required"]
        repository.insert_channel.assert_not_called()

    @pytest.mark.asyncio
    async def test_validation_error_is_value_error(self):
        registry = ChannelRegistry(AsyncMock(spec=ChannelRepository), MagicMock())

        with pytest.raises(ValueError):
            await registry.create_channel(
                team_id="team-1", name="x", channel_type="pager", configuration={}
            )


class TestUpdateChannel:
    """Tests for updating channels."""

    @pytest.mark.asyncio
    async def test_update_name_only(self, db_session):
        registry = _registry(db_session)
        channel = await registry.create_channel("team-1", "Ops", "email", EMAIL_CONFIG)

        updated = await registry.update_channel(channel.id, {"name": "Ops (primary)"})

        assert updated.name == "Ops (primary)"
        assert (await registry.get_channel(channel.id)).name == "Ops (primary)"

    @pytest.mark.asyncio
    async def test_invalid_configuration_update_rejected(self, db_session):
        """The merged configuration is validated before writing."""
        registry = _registry(db_session)
        channel = await registry.create_channel("team-1", "Ops", "email", EMAIL_CONFIG)

        with pytest.raises(ChannelValidationError):
            await registry.update_channel(channel.id, {"configuration": {"recipients": ["bad"]}})

        stored = await registry.get_channel(channel.id)
        assert stored.configuration == EMAIL_CONFIG

    @pytest.mark.asyncio
    async def test_type_change_validates_against_stored_configuration(self, db_session):
        """Changing only the type validates the existing configuration for the new type."""
        registry = _registry(db_session)
        channel = await registry.create_channel("team-1", "Ops", "email", EMAIL_CONFIG)

        with pytest.raises(ChannelValidationError):
            await registry.update_channel(channel.id, {"channel_type": "webhook"})

    @pytest.mark.asyncio
    async def test_update_missing_channel(self, db_session):
        registry = _registry(db_session)

        with pytest.raises(ChannelNotFoundError):
            await registry.update_channel("missing", {"name": "x"})

    @pytest.mark.asyncio
    async def test_nulls_leave_required_fields_unchanged(self, db_session):
        registry = _registry(db_session)
        channel = await registry.create_channel(
            "team-1", "Ops", "email", EMAIL_CONFIG, description="Inbox"
        )

        updated = await registry.update_channel(
            channel.id,
            {
                "name": None,
                "configuration": None,
                "enabled": None,
                "max_notifications_per_hour": None,
                "description": None,
            },
        )

        assert updated.name == "Ops"
        assert updated.configuration == EMAIL_CONFIG
        assert updated.enabled is True
        assert updated.max_notifications_per_hour == 50
        assert updated.description is None


class TestChannelQueries:
    """Tests for listing, deleting and toggling."""

    @pytest.mark.asyncio
    async def test_list_newest_first_and_by_team(self, db_session):
        registry = _registry(db_session)
        first = await registry.create_channel("team-1", "First", "email", EMAIL_CONFIG)
        second = await registry.create_channel("team-1", "Second", "push", {})
        await registry.create_channel("team-2", "Other", "in_app", {})

        channels = await registry.list_channels("team-1")

        assert [c.id for c in channels] == [second.id, first.id]
        assert len(await registry.list_channels()) == 3

    @pytest.mark.asyncio
    async def test_get_channels_by_type(self, db_session):
        registry = _registry(db_session)
        await registry.create_channel("team-1", "Mail", "email", EMAIL_CONFIG)
        push = await registry.create_channel("team-1", "Push", "push", {})

        channels = await registry.get_channels_by_type(ChannelType.PUSH, "team-1")

        assert [c.id for c in channels] == [push.id]

    @pytest.mark.asyncio
    async def test_delete_is_hard_delete(self, db_session):
        registry = _registry(db_session)
        channel = await registry.create_channel("team-1", "Mail", "email", EMAIL_CONFIG)

        assert await registry.delete_channel(channel.id) is True
        assert await registry.get_channel(channel.id) is None
        assert await registry.delete_channel(channel.id) is False

    @pytest.mark.asyncio
    async def test_toggle(self, db_session):
        registry = _registry(db_session)
        channel = await registry.create_channel("team-1", "Mail", "email", EMAIL_CONFIG)

        toggled = await registry.toggle_channel(channel.id, False)

        assert toggled.enabled is False

    @pytest.mark.asyncio
    async def test_toggle_missing(self, db_session):
        registry = _registry(db_session)

        with pytest.raises(ChannelNotFoundError):
            await registry.toggle_channel("missing", True)


class TestDuplicateChannel:
    """Tests for duplicating channels."""

    @pytest.mark.asyncio
    async def test_copy_is_disabled(self, db_session):
        registry = _registry(db_session)
        source = await registry.create_channel(
            "team-1",
            "Mail",
            "email",
            EMAIL_CONFIG,
            max_notifications_per_hour=10,
            max_notifications_per_day=20,
        )

        copy = await registry.duplicate_channel(source.id, "Mail (copy)")

        assert copy.id != source.id
        assert copy.name == "Mail (copy)"
        assert copy.description == "Copy of Mail"
        assert copy.enabled is False
        assert copy.configuration == EMAIL_CONFIG
        assert copy.max_notifications_per_hour == 10
        assert copy.max_notifications_per_day == 20

    @pytest.mark.asyncio
    async def test_duplicate_missing(self, db_session):
        registry = _registry(db_session)

        with pytest.raises(ChannelNotFoundError):
            await registry.duplicate_channel("missing", "x")


class TestTestChannel:
    """Tests for test delivery through the registry."""

    @pytest.mark.asyncio
    async def test_missing_channel_reports_failure(self, db_session):
        registry = _registry(db_session)

        result = await registry.test_channel("missing")

        assert result.success is False
        assert result.message == "Channel not found"

    @pytest.mark.asyncio
    async def test_delegates_to_driver(self, db_session):
        driver = MagicMock()
        driver.test = AsyncMock(return_value=ChannelTestResult(success=True, message="sent"))
        registry = _registry(db_session, driver)
        channel = await registry.create_channel("team-1", "Mail", "email", EMAIL_CONFIG)

        result = await registry.test_channel(channel.id)

        assert result.success is True
        tested = driver.test.call_args.args[0]
        assert tested.id == channel.id
        assert tested.configuration == EMAIL_CONFIG

    @pytest.mark.asyncio
    async def test_unsaved_configuration(self, db_session):
        driver = MagicMock()
        driver.test = AsyncMock(return_value=ChannelTestResult(success=False, message="nope"))
        registry = _registry(db_session, driver)
        draft = NotificationChannel(
            team_id="team-1", name="Draft", channel_type=ChannelType.PUSH, configuration={}
        )

        result = await registry.test_channel_configuration(draft)

        assert result.success is False
        driver.test.assert_awaited_once_with(draft)


class TestUsageStats:
    """Tests for channel usage statistics."""

    @pytest.mark.asyncio
    async def test_usage_stats(self, db_session, add_notification):
        registry = _registry(db_session)
        channel = await registry.create_channel("team-1", "Mail", "email", EMAIL_CONFIG)
        now = datetime.now(tz=timezone.utc)
        yesterday = now - timedelta(days=1)

        await add_notification(
            channel.id, "sent", yesterday, sent_at=yesterday + timedelta(seconds=2)
        )
        await add_notification(channel.id, "delivered", now, sent_at=now + timedelta(seconds=4))
        await add_notification(channel.id, "failed", now)
        await add_notification(channel.id, "pending", now)
        # Outside the window
        await add_notification(channel.id, "sent", now - timedelta(days=40))

        stats = await registry.get_channel_usage_stats(channel.id, days=30)

        assert stats.total_notifications == 4
        assert stats.successful_deliveries == 2
        assert stats.failed_deliveries == 1
        assert stats.success_rate == pytest.approx(50.0)
        assert stats.average_delivery_time_ms == pytest.approx(3000.0)
        assert [day.date for day in stats.daily_stats] == sorted(
            {yesterday.date().isoformat(), now.date().isoformat()}
        )
        assert sum(day.total for day in stats.daily_stats) == 4

    def test_empty_summary(self):
        stats = summarize_deliveries([])

        assert stats.total_notifications == 0
        assert stats.success_rate == 0.0
        assert stats.average_delivery_time_ms == 0.0
        assert stats.daily_stats == []

    def test_days_keyed_by_utc_date(self):
        """A row created late in the evening west of UTC counts on the UTC date."""
        created = datetime(2026, 3, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5)))

        stats = summarize_deliveries([{"status": "sent", "created_at": created, "sent_at": None}])

        assert stats.daily_stats[0].date == "2026-03-02"
