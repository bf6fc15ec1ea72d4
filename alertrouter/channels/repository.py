"""Notification channel repository.

Persists channels in ``notification_channels`` (configuration stored as JSON
text) and reads delivery rows from ``alert_notifications`` for usage
statistics.

Usage:
    from alertrouter.channels.repository import ChannelRepository

    repo = ChannelRepository(session)
    channel = await repo.insert_channel(channel)
    rows = await repo.get_notifications_since(channel.id, since)
"""

import json
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from alertrouter.channels.models import ChannelType, NotificationChannel
from alertrouter.db.codecs import load_json, parse_timestamp, timestamp_params

_CHANNEL_COLUMNS = """
    id, team_id, name, description, channel_type, enabled, configuration,
    max_notifications_per_hour, max_notifications_per_day, created_by,
    created_at, updated_at
"""


def _row_to_channel(row) -> NotificationChannel:
    return NotificationChannel(
        id=str(row[0]),
        team_id=row[1],
        name=row[2],
        description=row[3],
        channel_type=ChannelType(row[4]),
        enabled=bool(row[5]),
        configuration=load_json(row[6], {}),
        max_notifications_per_hour=row[7],
        max_notifications_per_day=row[8],
        created_by=row[9],
        created_at=parse_timestamp(row[10]),
        updated_at=parse_timestamp(row[11]),
    )


class ChannelRepository:
    """Repository for notification channel database operations."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def insert_channel(self, channel: NotificationChannel) -> NotificationChannel:
        """Insert a channel and return it with id and timestamps populated."""
        now = datetime.now(tz=timezone.utc)
        channel_id = channel.id or str(uuid4())
        sql = text("""
            INSERT INTO notification_channels (
                id, team_id, name, description, channel_type, enabled, configuration,
                max_notifications_per_hour, max_notifications_per_day, created_by,
                created_at, updated_at
            ) VALUES (
                :id, :team_id, :name, :description, :channel_type, :enabled, :configuration,
                :max_per_hour, :max_per_day, :created_by,
                :created_at, :updated_at
            )
        """).bindparams(*timestamp_params("created_at", "updated_at"))
        await self.session.execute(
            sql,
            {
                "id": channel_id,
                "team_id": channel.team_id,
                "name": channel.name,
                "description": channel.description,
                "channel_type": ChannelType(channel.channel_type).value,
                "enabled": channel.enabled,
                "configuration": json.dumps(channel.configuration or {}),
                "max_per_hour": channel.max_notifications_per_hour,
                "max_per_day": channel.max_notifications_per_day,
                "created_by": channel.created_by,
                "created_at": now,
                "updated_at": now,
            },
        )
        await self.session.commit()

        channel.id = channel_id
        channel.created_at = now
        channel.updated_at = now
        return channel

    async def update_channel(self, channel: NotificationChannel) -> NotificationChannel:
        """Overwrite every mutable column of an existing channel."""
        now = datetime.now(tz=timezone.utc)
        sql = text("""
            UPDATE notification_channels
            SET team_id = :team_id,
                name = :name,
                description = :description,
                channel_type = :channel_type,
                enabled = :enabled,
                configuration = :configuration,
                max_notifications_per_hour = :max_per_hour,
                max_notifications_per_day = :max_per_day,
                updated_at = :updated_at
            WHERE id = :id
        """).bindparams(*timestamp_params("updated_at"))
        await self.session.execute(
            sql,
            {
                "id": channel.id,
                "team_id": channel.team_id,
                "name": channel.name,
                "description": channel.description,
                "channel_type": ChannelType(channel.channel_type).value,
                "enabled": channel.enabled,
                "configuration": json.dumps(channel.configuration or {}),
                "max_per_hour": channel.max_notifications_per_hour,
                "max_per_day": channel.max_notifications_per_day,
                "updated_at": now,
            },
        )
        await self.session.commit()

        channel.updated_at = now
        return channel

    async def delete_channel(self, channel_id: str) -> bool:
        """Hard-delete a channel.

        Returns:
            True if a row was deleted
        """
        sql = text("DELETE FROM notification_channels WHERE id = :id")
        result = await self.session.execute(sql, {"id": channel_id})
        await self.session.commit()
        return result.rowcount > 0

    async def get_channel(self, channel_id: str) -> NotificationChannel | None:
        sql = text(f"SELECT {_CHANNEL_COLUMNS} FROM notification_channels WHERE id = :id")
        result = await self.session.execute(sql, {"id": channel_id})
        row = result.fetchone()
        return _row_to_channel(row) if row else None

    async def list_channels(self, team_id: str | None = None) -> list[NotificationChannel]:
        """List channels, newest first, optionally restricted to one team."""
        if team_id is not None:
            sql = text(f"""
                SELECT {_CHANNEL_COLUMNS} FROM notification_channels
                WHERE team_id = :team_id
                ORDER BY created_at DESC
            """)
            result = await self.session.execute(sql, {"team_id": team_id})
        else:
            sql = text(f"""
                SELECT {_CHANNEL_COLUMNS} FROM notification_channels
                ORDER BY created_at DESC
            """)
            result = await self.session.execute(sql)
        return [_row_to_channel(row) for row in result.fetchall()]

    async def list_channels_by_type(
        self, channel_type: ChannelType, team_id: str | None = None
    ) -> list[NotificationChannel]:
        params: dict = {"channel_type": ChannelType(channel_type).value}
        if team_id is not None:
            params["team_id"] = team_id
            sql = text(f"""
                SELECT {_CHANNEL_COLUMNS} FROM notification_channels
                WHERE channel_type = :channel_type AND team_id = :team_id
                ORDER BY created_at DESC
            """)
        else:
            sql = text(f"""
                SELECT {_CHANNEL_COLUMNS} FROM notification_channels
                WHERE channel_type = :channel_type
                ORDER BY created_at DESC
            """)
        result = await self.session.execute(sql, params)
        return [_row_to_channel(row) for row in result.fetchall()]

    async def set_enabled(self, channel_id: str, enabled: bool) -> bool:
        """Flip the enabled flag.

        Returns:
            True if the channel exists
        """
        sql = text("""
            UPDATE notification_channels
            SET enabled = :enabled, updated_at = :updated_at
            WHERE id = :id
        """).bindparams(*timestamp_params("updated_at"))
        result = await self.session.execute(
            sql,
            {
                "id": channel_id,
                "enabled": enabled,
                "updated_at": datetime.now(tz=timezone.utc),
            },
        )
        await self.session.commit()
        return result.rowcount > 0

    async def get_notifications_since(
        self, channel_id: str, since: datetime
    ) -> list[dict[str, Any]]:
        """Get delivery rows for a channel created at or after ``since``.

        Returns:
            List of dicts with status, created_at and sent_at (parsed datetimes)
        """
        sql = text("""
            SELECT status, created_at, sent_at
            FROM alert_notifications
            WHERE channel_id = :channel_id AND created_at >= :since
            ORDER BY created_at ASC
        """).bindparams(*timestamp_params("since"))
        result = await self.session.execute(
            sql, {"channel_id": channel_id, "since": since}
        )
        return [
            {
                "status": row[0],
                "created_at": parse_timestamp(row[1]),
                "sent_at": parse_timestamp(row[2]),
            }
            for row in result.fetchall()
        ]
