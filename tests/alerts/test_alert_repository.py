"""Tests for AlertRepository queries."""

from datetime import datetime, timedelta, timezone

import pytest

from alertrouter.alerts.models import Alert, Severity, SeverityRoutingRule, TeamRole
from alertrouter.alerts.repository import AlertRepository

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class TestOnCallLookup:
    """Tests for get_current_on_call_user."""

    @pytest.mark.asyncio
    async def test_nobody_on_call(self, db_session):
        repo = AlertRepository(db_session)

        assert await repo.get_current_on_call_user("team-1", Severity.HIGH, NOW) is None

    @pytest.mark.asyncio
    async def test_entry_window(self, db_session, add_on_call_entry):
        """Entries that ended or have not started are ignored."""
        repo = AlertRepository(db_session)
        hour = timedelta(hours=1)
        await add_on_call_entry("team-1", "past", NOW - 8 * hour, NOW - hour)
        await add_on_call_entry("team-1", "future", NOW + hour, NOW + 8 * hour)
        await add_on_call_entry("team-1", "current", NOW - hour, NOW + hour)

        on_call = await repo.get_current_on_call_user("team-1", Severity.HIGH, NOW)

        assert on_call.user_id == "current"

    @pytest.mark.asyncio
    async def test_primary_preferred_over_secondary(self, db_session, add_on_call_entry):
        repo = AlertRepository(db_session)
        start, end = NOW - timedelta(hours=1), NOW + timedelta(hours=1)
        await add_on_call_entry(
            "team-1", "secondary", start, end, is_primary=False,
            schedule_created_at=NOW - timedelta(days=10),
        )
        await add_on_call_entry(
            "team-1", "primary", start, end, backup_user_id="backup",
            schedule_created_at=NOW - timedelta(days=1),
        )

        on_call = await repo.get_current_on_call_user("team-1", Severity.HIGH, NOW)

        assert on_call.user_id == "primary"
        assert on_call.is_primary is True
        assert on_call.backup_user_id == "backup"

    @pytest.mark.asyncio
    async def test_oldest_schedule_wins_tie(self, db_session, add_on_call_entry):
        repo = AlertRepository(db_session)
        start, end = NOW - timedelta(hours=1), NOW + timedelta(hours=1)
        await add_on_call_entry(
            "team-1", "newer", start, end, schedule_created_at=NOW - timedelta(days=1)
        )
        await add_on_call_entry(
            "team-1", "older", start, end, schedule_created_at=NOW - timedelta(days=30)
        )

        on_call = await repo.get_current_on_call_user("team-1", Severity.HIGH, NOW)

        assert on_call.user_id == "older"

    @pytest.mark.asyncio
    async def test_applicable_severities(self, db_session, add_on_call_entry):
        repo = AlertRepository(db_session)
        start, end = NOW - timedelta(hours=1), NOW + timedelta(hours=1)
        await add_on_call_entry(
            "team-1", "critical-only", start, end, severities=["critical"],
            schedule_created_at=NOW - timedelta(days=30),
        )
        await add_on_call_entry(
            "team-1", "everything", start, end, schedule_created_at=NOW - timedelta(days=1)
        )

        critical = await repo.get_current_on_call_user("team-1", Severity.CRITICAL, NOW)
        low = await repo.get_current_on_call_user("team-1", Severity.LOW, NOW)

        assert critical.user_id == "critical-only"
        assert low.user_id == "everything"

    @pytest.mark.asyncio
    async def test_profile_joined_from_team_members(
        self, db_session, add_team_member, add_on_call_entry
    ):
        repo = AlertRepository(db_session)
        await add_team_member("team-1", "u1", "member", NOW, full_name="Ada Lovelace")
        await add_on_call_entry(
            "team-1",
            "u1",
            NOW - timedelta(hours=1),
            NOW + timedelta(hours=1),
            schedule_name="Weekday",
        )

        on_call = await repo.get_current_on_call_user("team-1", Severity.MEDIUM, NOW)

        assert on_call.full_name == "Ada Lovelace"
        assert on_call.schedule_name == "Weekday"

    @pytest.mark.asyncio
    async def test_other_team_ignored(self, db_session, add_on_call_entry):
        repo = AlertRepository(db_session)
        await add_on_call_entry("team-2", "u2", NOW - timedelta(hours=1), NOW + timedelta(hours=1))

        assert await repo.get_current_on_call_user("team-1", Severity.HIGH, NOW) is None


class TestRoutingRuleQueries:
    """Tests for routing rule persistence."""

    @pytest.mark.asyncio
    async def test_enabled_rules_by_priority(self, db_session):
        repo = AlertRepository(db_session)
        low = await repo.insert_routing_rule(
            SeverityRoutingRule(team_id="team-1", severity=Severity.HIGH, priority=50)
        )
        high = await repo.insert_routing_rule(
            SeverityRoutingRule(team_id="team-1", severity=Severity.HIGH, priority=5)
        )
        await repo.insert_routing_rule(
            SeverityRoutingRule(team_id="team-1", severity=Severity.HIGH, priority=1, enabled=False)
        )
        await repo.insert_routing_rule(
            SeverityRoutingRule(team_id="team-1", severity=Severity.LOW, priority=1)
        )

        rules = await repo.get_routing_rules("team-1", Severity.HIGH)

        assert [r.id for r in rules] == [high.id, low.id]

    @pytest.mark.asyncio
    async def test_json_columns_round_trip(self, db_session):
        repo = AlertRepository(db_session)
        rule = await repo.insert_routing_rule(
            SeverityRoutingRule(
                team_id="team-1",
                severity=Severity.CRITICAL,
                assigned_users=["u1", "u2"],
                assigned_channels=["c1"],
                conditions={"metric_name": "cpu", "required_tags": ["service"]},
                business_hours_only=True,
            )
        )

        stored = await repo.get_routing_rule(rule.id)

        assert stored.assigned_users == ["u1", "u2"]
        assert stored.assigned_channels == ["c1"]
        assert stored.conditions == {"metric_name": "cpu", "required_tags": ["service"]}
        assert stored.business_hours_only is True
        assert stored.weekend_escalation is True


class TestTeamMembers:
    """Tests for team member ordering."""

    @pytest.mark.asyncio
    async def test_members_in_join_order(self, db_session, add_team_member):
        repo = AlertRepository(db_session)
        await add_team_member("team-1", "late", "admin", NOW)
        await add_team_member("team-1", "early", "owner", NOW - timedelta(days=5))
        await add_team_member("team-2", "other", "member", NOW)

        members = await repo.get_team_members("team-1")

        assert [(m.user_id, m.role) for m in members] == [
            ("early", TeamRole.OWNER),
            ("late", TeamRole.ADMIN),
        ]


class TestTimestampBinding:
    """Timestamps with any UTC offset compare on the same instant."""

    @pytest.mark.asyncio
    async def test_on_call_window_in_local_offset(self, db_session, add_on_call_entry):
        repo = AlertRepository(db_session)
        cest = timezone(timedelta(hours=2))
        # 12:30-13:30 local is 10:30-11:30 UTC, so it ended before NOW
        await add_on_call_entry(
            "team-1", "ended", datetime(2026, 10, 19, 12, 30, tzinfo=cest),
            datetime(2026, 10, 19, 13, 30, tzinfo=cest),
        )
        await add_on_call_entry(
            "team-1", "current", datetime(2026, 10, 19, 13, 30, tzinfo=cest),
            datetime(2026, 10, 19, 15, 0, tzinfo=cest),
        )

        on_call = await repo.get_current_on_call_user("team-1", Severity.HIGH, NOW)

        assert on_call.user_id == "current"

    @pytest.mark.asyncio
    async def test_created_at_round_trip(self, db_session):
        repo = AlertRepository(db_session)
        created = datetime(2026, 10, 19, 13, 0, tzinfo=timezone(timedelta(hours=2)))
        alert = await repo.insert_alert(
            Alert(
                id=None,
                team_id="team-1",
                severity=Severity.LOW,
                title="Disk filling",
                metric_name="disk_used",
                created_at=created,
            )
        )

        stored = await repo.get_alert(alert.id)
        before = await repo.get_alerts_since(datetime(2026, 10, 19, 10, 59, tzinfo=timezone.utc))
        after = await repo.get_alerts_since(datetime(2026, 10, 19, 11, 1, tzinfo=timezone.utc))

        assert stored.created_at == datetime(2026, 10, 19, 11, 0, tzinfo=timezone.utc)
        assert stored.created_at.tzinfo is not None
        assert len(before) == 1
        assert after == []
