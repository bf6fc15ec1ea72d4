import json
from datetime import datetime
from uuid import uuid4

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from alertrouter.db.codecs import timestamp_params
from alertrouter.db.database import get_session
from alertrouter.main import app

# SQLite-compatible schema mirroring alembic/versions/001_alerting_tables.py
SCHEMA = [
    """
    CREATE TABLE alert_rules (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        team_id TEXT NOT NULL,
        metric_name TEXT NOT NULL,
        severity TEXT NOT NULL,
        enabled INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE alerts (
        id TEXT PRIMARY KEY,
        team_id TEXT NOT NULL,
        alert_rule_id TEXT REFERENCES alert_rules(id),
        severity TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        metric_name TEXT NOT NULL,
        metric_value REAL,
        context TEXT NOT NULL DEFAULT '{}',
        tags TEXT NOT NULL DEFAULT '{}',
        status TEXT NOT NULL DEFAULT 'active',
        acknowledged_at TEXT,
        acknowledged_by TEXT,
        resolved_at TEXT,
        resolved_by TEXT,
        suppressed_until TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE alert_history (
        id TEXT PRIMARY KEY,
        alert_id TEXT NOT NULL REFERENCES alerts(id),
        event_type TEXT NOT NULL,
        event_description TEXT,
        previous_status TEXT,
        new_status TEXT,
        performed_by TEXT,
        metadata TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE notification_channels (
        id TEXT PRIMARY KEY,
        team_id TEXT,
        name TEXT NOT NULL,
        description TEXT,
        channel_type TEXT NOT NULL,
        enabled INTEGER NOT NULL DEFAULT 1,
        configuration TEXT NOT NULL DEFAULT '{}',
        max_notifications_per_hour INTEGER NOT NULL DEFAULT 50,
        max_notifications_per_day INTEGER NOT NULL DEFAULT 200,
        created_by TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE alert_notifications (
        id TEXT PRIMARY KEY,
        alert_id TEXT NOT NULL,
        channel_id TEXT NOT NULL,
        recipient TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        error_message TEXT,
        sent_at TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE alert_severity_routing (
        id TEXT PRIMARY KEY,
        team_id TEXT NOT NULL,
        severity TEXT NOT NULL,
        assigned_users TEXT NOT NULL DEFAULT '[]',
        assigned_channels TEXT NOT NULL DEFAULT '[]',
        initial_delay_minutes INTEGER NOT NULL DEFAULT 0,
        escalation_interval_minutes INTEGER NOT NULL DEFAULT 15,
        max_escalation_level INTEGER NOT NULL DEFAULT 3,
        business_hours_only INTEGER NOT NULL DEFAULT 0,
        weekend_escalation INTEGER NOT NULL DEFAULT 1,
        auto_acknowledge_minutes INTEGER,
        auto_resolve_minutes INTEGER,
        conditions TEXT NOT NULL DEFAULT '{}',
        enabled INTEGER NOT NULL DEFAULT 1,
        priority INTEGER NOT NULL DEFAULT 100,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE alert_assignments (
        id TEXT PRIMARY KEY,
        alert_id TEXT NOT NULL,
        assigned_to TEXT NOT NULL,
        assignment_reason TEXT NOT NULL,
        assignment_level INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE team_members (
        id TEXT PRIMARY KEY,
        team_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        role TEXT NOT NULL,
        full_name TEXT,
        email TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE on_call_schedules (
        id TEXT PRIMARY KEY,
        team_id TEXT NOT NULL,
        name TEXT NOT NULL,
        applicable_severities TEXT NOT NULL DEFAULT '[]',
        enabled INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE on_call_schedule_entries (
        id TEXT PRIMARY KEY,
        schedule_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        backup_user_id TEXT,
        is_primary INTEGER NOT NULL DEFAULT 1,
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL
    )
    """,
]


@pytest_asyncio.fixture
async def db_session():
    """In-memory SQLite database with every alerting table."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        for ddl in SCHEMA:
            await conn.execute(text(ddl))

    async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with async_session() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def client(db_session):
    """HTTP client with test database"""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def add_team_member(db_session):
    """Insert a team_members row."""

    async def _add(
        team_id: str,
        user_id: str,
        role: str,
        created_at: datetime,
        full_name: str | None = None,
    ) -> None:
        await db_session.execute(
            text("""
                INSERT INTO team_members (id, team_id, user_id, role, full_name, created_at)
                VALUES (:id, :team_id, :user_id, :role, :full_name, :created_at)
            """).bindparams(*timestamp_params("created_at")),
            {
                "id": str(uuid4()),
                "team_id": team_id,
                "user_id": user_id,
                "role": role,
                "full_name": full_name,
                "created_at": created_at,
            },
        )
        await db_session.commit()

    return _add


@pytest_asyncio.fixture
async def add_on_call_entry(db_session):
    """Insert an on-call schedule with a single entry and return the schedule id."""

    async def _add(
        team_id: str,
        user_id: str,
        start: datetime,
        end: datetime,
        backup_user_id: str | None = None,
        is_primary: bool = True,
        severities: list[str] | None = None,
        schedule_name: str = "Primary rotation",
        schedule_created_at: datetime | None = None,
    ) -> str:
        schedule_id = str(uuid4())
        await db_session.execute(
            text("""
                INSERT INTO on_call_schedules (
                    id, team_id, name, applicable_severities, enabled, created_at
                ) VALUES (:id, :team_id, :name, :severities, 1, :created_at)
            """).bindparams(*timestamp_params("created_at")),
            {
                "id": schedule_id,
                "team_id": team_id,
                "name": schedule_name,
                "severities": json.dumps(severities or []),
                "created_at": schedule_created_at or start,
            },
        )
        await db_session.execute(
            text("""
                INSERT INTO on_call_schedule_entries (
                    id, schedule_id, user_id, backup_user_id, is_primary, start_time, end_time
                ) VALUES (:id, :schedule_id, :user_id, :backup, :is_primary, :start, :end)
            """).bindparams(*timestamp_params("start", "end")),
            {
                "id": str(uuid4()),
                "schedule_id": schedule_id,
                "user_id": user_id,
                "backup": backup_user_id,
                "is_primary": is_primary,
                "start": start,
                "end": end,
            },
        )
        await db_session.commit()
        return schedule_id

    return _add


@pytest_asyncio.fixture
async def add_notification(db_session):
    """Insert an alert_notifications delivery row for a channel."""

    async def _add(
        channel_id: str,
        status: str,
        created_at: datetime,
        sent_at: datetime | None = None,
    ) -> None:
        await db_session.execute(
            text("""
                INSERT INTO alert_notifications (
                    id, alert_id, channel_id, status, sent_at, created_at
                ) VALUES (:id, :alert_id, :channel_id, :status, :sent_at, :created_at)
            """).bindparams(*timestamp_params("sent_at", "created_at")),
            {
                "id": str(uuid4()),
                "alert_id": str(uuid4()),
                "channel_id": channel_id,
                "status": status,
                "sent_at": sent_at,
                "created_at": created_at,
            },
        )
        await db_session.commit()

    return _add
