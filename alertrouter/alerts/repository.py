"""Alert repository module for database operations.

This module provides the AlertRepository class used by the severity router
and the alert lifecycle service. Key features:

- Severity routing rules (ordered by priority) and alert assignments
- Team members and on-call schedule lookup
- Transactional lifecycle transitions that write alert_history in the same
  transaction as the status change
- Batch rule evaluation via the store-side evaluate_alert_rule function

JSON columns (context, tags, conditions, user/channel lists) are stored as
text so the same SQL runs on PostgreSQL and SQLite.

Usage:
    from alertrouter.alerts.repository import AlertRepository

    repo = AlertRepository(session)
    rules = await repo.get_routing_rules(team_id, Severity.HIGH)
    changed = await repo.acknowledge_alert(alert_id, user_id, now)
"""

import json
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from alertrouter.alerts.models import (
    Alert,
    AlertAssignment,
    AlertRule,
    AlertStatus,
    AssignmentReason,
    OnCallUser,
    Severity,
    SeverityRoutingRule,
    TeamMember,
    TeamRole,
)
from alertrouter.db.codecs import load_json, parse_timestamp, timestamp_params

_RULE_COLUMNS = """
    id, team_id, severity, assigned_users, assigned_channels,
    initial_delay_minutes, escalation_interval_minutes, max_escalation_level,
    business_hours_only, weekend_escalation, auto_acknowledge_minutes,
    auto_resolve_minutes, conditions, enabled, priority, created_at, updated_at
"""

_ALERT_COLUMNS = """
    id, team_id, severity, title, metric_name, metric_value, context, tags,
    status, alert_rule_id, description, created_at, acknowledged_at,
    acknowledged_by, resolved_at, resolved_by, suppressed_until
"""


def _row_to_rule(row) -> SeverityRoutingRule:
    return SeverityRoutingRule(
        id=str(row[0]),
        team_id=row[1],
        severity=Severity(row[2]),
        assigned_users=load_json(row[3], []),
        assigned_channels=load_json(row[4], []),
        initial_delay_minutes=row[5],
        escalation_interval_minutes=row[6],
        max_escalation_level=row[7],
        business_hours_only=bool(row[8]),
        weekend_escalation=bool(row[9]),
        auto_acknowledge_minutes=row[10],
        auto_resolve_minutes=row[11],
        conditions=load_json(row[12], {}),
        enabled=bool(row[13]),
        priority=row[14],
        created_at=parse_timestamp(row[15]),
        updated_at=parse_timestamp(row[16]),
    )


def _row_to_alert(row) -> Alert:
    return Alert(
        id=str(row[0]),
        team_id=row[1],
        severity=Severity(row[2]),
        title=row[3],
        metric_name=row[4],
        metric_value=row[5],
        context=load_json(row[6], {}),
        tags=load_json(row[7], {}),
        status=AlertStatus(row[8]),
        alert_rule_id=row[9],
        description=row[10],
        created_at=parse_timestamp(row[11]),
        acknowledged_at=parse_timestamp(row[12]),
        acknowledged_by=row[13],
        resolved_at=parse_timestamp(row[14]),
        resolved_by=row[15],
        suppressed_until=parse_timestamp(row[16]),
    )


def _rule_params(rule: SeverityRoutingRule) -> dict[str, Any]:
    return {
        "id": rule.id,
        "team_id": rule.team_id,
        "severity": Severity(rule.severity).value,
        "assigned_users": json.dumps(list(rule.assigned_users)),
        "assigned_channels": json.dumps(list(rule.assigned_channels)),
        "initial_delay_minutes": rule.initial_delay_minutes,
        "escalation_interval_minutes": rule.escalation_interval_minutes,
        "max_escalation_level": rule.max_escalation_level,
        "business_hours_only": rule.business_hours_only,
        "weekend_escalation": rule.weekend_escalation,
        "auto_acknowledge_minutes": rule.auto_acknowledge_minutes,
        "auto_resolve_minutes": rule.auto_resolve_minutes,
        "conditions": json.dumps(rule.conditions or {}),
        "enabled": rule.enabled,
        "priority": rule.priority,
    }


class AlertRepository:
    """Repository for alerting database operations.

    Uses raw SQL with bound parameters; each public write commits.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    # ------------------------------------------------------------------
    # Severity routing rules
    # ------------------------------------------------------------------

    async def get_routing_rules(
        self, team_id: str, severity: Severity
    ) -> list[SeverityRoutingRule]:
        """Get enabled routing rules for a team and severity, ascending by priority."""
        sql = text(f"""
            SELECT {_RULE_COLUMNS}
            FROM alert_severity_routing
            WHERE team_id = :team_id AND severity = :severity AND enabled = :enabled
            ORDER BY priority ASC, created_at ASC
        """)
        result = await self.session.execute(
            sql,
            {"team_id": team_id, "severity": Severity(severity).value, "enabled": True},
        )
        return [_row_to_rule(row) for row in result.fetchall()]

    async def get_routing_rule(self, rule_id: str) -> SeverityRoutingRule | None:
        sql = text(f"SELECT {_RULE_COLUMNS} FROM alert_severity_routing WHERE id = :id")
        result = await self.session.execute(sql, {"id": rule_id})
        row = result.fetchone()
        return _row_to_rule(row) if row else None

    async def insert_routing_rule(self, rule: SeverityRoutingRule) -> SeverityRoutingRule:
        now = datetime.now(tz=timezone.utc)
        rule.id = rule.id or str(uuid4())
        sql = text("""
            INSERT INTO alert_severity_routing (
                id, team_id, severity, assigned_users, assigned_channels,
                initial_delay_minutes, escalation_interval_minutes, max_escalation_level,
                business_hours_only, weekend_escalation, auto_acknowledge_minutes,
                auto_resolve_minutes, conditions, enabled, priority, created_at, updated_at
            ) VALUES (
                :id, :team_id, :severity, :assigned_users, :assigned_channels,
                :initial_delay_minutes, :escalation_interval_minutes, :max_escalation_level,
                :business_hours_only, :weekend_escalation, :auto_acknowledge_minutes,
                :auto_resolve_minutes, :conditions, :enabled, :priority, :created_at, :updated_at
            )
        """).bindparams(*timestamp_params("created_at", "updated_at"))
        params = _rule_params(rule)
        params["created_at"] = now
        params["updated_at"] = now
        await self.session.execute(sql, params)
        await self.session.commit()

        rule.created_at = now
        rule.updated_at = now
        return rule

    async def update_routing_rule(self, rule: SeverityRoutingRule) -> SeverityRoutingRule:
        now = datetime.now(tz=timezone.utc)
        sql = text("""
            UPDATE alert_severity_routing
            SET team_id = :team_id,
                severity = :severity,
                assigned_users = :assigned_users,
                assigned_channels = :assigned_channels,
                initial_delay_minutes = :initial_delay_minutes,
                escalation_interval_minutes = :escalation_interval_minutes,
                max_escalation_level = :max_escalation_level,
                business_hours_only = :business_hours_only,
                weekend_escalation = :weekend_escalation,
                auto_acknowledge_minutes = :auto_acknowledge_minutes,
                auto_resolve_minutes = :auto_resolve_minutes,
                conditions = :conditions,
                enabled = :enabled,
                priority = :priority,
                updated_at = :updated_at
            WHERE id = :id
        """).bindparams(*timestamp_params("updated_at"))
        params = _rule_params(rule)
        params["updated_at"] = now
        await self.session.execute(sql, params)
        await self.session.commit()

        rule.updated_at = now
        return rule

    # ------------------------------------------------------------------
    # Assignments, team members and on-call
    # ------------------------------------------------------------------

    async def create_assignment(self, assignment: AlertAssignment) -> AlertAssignment:
        """Append an assignment row."""
        now = datetime.now(tz=timezone.utc)
        assignment.id = assignment.id or str(uuid4())
        sql = text("""
            INSERT INTO alert_assignments (
                id, alert_id, assigned_to, assignment_reason, assignment_level, created_at
            ) VALUES (
                :id, :alert_id, :assigned_to, :reason, :level, :created_at
            )
        """).bindparams(*timestamp_params("created_at"))
        try:
            await self.session.execute(
                sql,
                {
                    "id": assignment.id,
                    "alert_id": assignment.alert_id,
                    "assigned_to": assignment.assigned_to,
                    "reason": AssignmentReason(assignment.assignment_reason).value,
                    "level": assignment.assignment_level,
                    "created_at": now,
                },
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        assignment.created_at = now
        return assignment

    async def get_team_members(self, team_id: str) -> list[TeamMember]:
        """Get a team's members in the order they joined."""
        sql = text("""
            SELECT user_id, role FROM team_members
            WHERE team_id = :team_id
            ORDER BY created_at ASC, user_id ASC
        """)
        result = await self.session.execute(sql, {"team_id": team_id})
        return [TeamMember(user_id=row[0], role=TeamRole(row[1])) for row in result.fetchall()]

    async def get_current_on_call_user(
        self, team_id: str, severity: Severity, now: datetime
    ) -> OnCallUser | None:
        """Find the responder on call right now for a team and severity.

        A schedule with no applicable_severities covers every severity. Primary
        entries win over secondary ones, then the oldest schedule wins.

        Returns:
            OnCallUser, or None if nobody is on call
        """
        sql = text("""
            SELECT e.user_id, e.is_primary, s.name, e.backup_user_id,
                   m.full_name, m.email, s.applicable_severities
            FROM on_call_schedule_entries e
            JOIN on_call_schedules s ON s.id = e.schedule_id
            LEFT JOIN team_members m ON m.team_id = s.team_id AND m.user_id = e.user_id
            WHERE s.team_id = :team_id
              AND s.enabled = :enabled
              AND e.start_time <= :now
              AND e.end_time > :now
            ORDER BY e.is_primary DESC, s.created_at ASC
        """).bindparams(*timestamp_params("now"))
        result = await self.session.execute(
            sql,
            {
                "team_id": team_id,
                "enabled": True,
                "now": now,
            },
        )
        severity_value = Severity(severity).value
        for row in result.fetchall():
            severities = load_json(row[6], [])
            if severities and severity_value not in severities:
                continue
            return OnCallUser(
                user_id=row[0],
                is_primary=bool(row[1]),
                schedule_name=row[2],
                backup_user_id=row[3],
                full_name=row[4],
                email=row[5],
            )
        return None

    async def get_assignments_since(
        self, since: datetime, team_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Get assignments created since a point in time, joined with their alert.

        Returns:
            List of dicts with assignment_reason, severity, assigned_at and
            alert_created_at
        """
        params: dict = {"since": since}
        if team_id is not None:
            params["team_id"] = team_id
            sql = text("""
                SELECT a.assignment_reason, al.severity, a.created_at, al.created_at
                FROM alert_assignments a
                JOIN alerts al ON al.id = a.alert_id
                WHERE a.created_at >= :since AND al.team_id = :team_id
            """).bindparams(*timestamp_params("since"))
        else:
            sql = text("""
                SELECT a.assignment_reason, al.severity, a.created_at, al.created_at
                FROM alert_assignments a
                JOIN alerts al ON al.id = a.alert_id
                WHERE a.created_at >= :since
            """).bindparams(*timestamp_params("since"))
        result = await self.session.execute(sql, params)
        return [
            {
                "assignment_reason": row[0],
                "severity": row[1],
                "assigned_at": parse_timestamp(row[2]),
                "alert_created_at": parse_timestamp(row[3]),
            }
            for row in result.fetchall()
        ]

    async def get_user_assignments(self, user_id: str, status: str = "active") -> list[dict]:
        """Get alerts assigned to a user, newest assignment first.

        Args:
            user_id: Assignee
            status: "active", "acknowledged" or "all"

        Returns:
            List of dicts describing the assignment and its alert
        """
        params: dict = {"user_id": user_id}
        if status == "all":
            sql = text("""
                SELECT a.id, a.alert_id, a.assignment_reason, a.assignment_level, a.created_at,
                       al.title, al.severity, al.status, al.team_id
                FROM alert_assignments a
                JOIN alerts al ON al.id = a.alert_id
                WHERE a.assigned_to = :user_id
                ORDER BY a.created_at DESC
            """)
        else:
            params["status"] = AlertStatus(status).value
            sql = text("""
                SELECT a.id, a.alert_id, a.assignment_reason, a.assignment_level, a.created_at,
                       al.title, al.severity, al.status, al.team_id
                FROM alert_assignments a
                JOIN alerts al ON al.id = a.alert_id
                WHERE a.assigned_to = :user_id AND al.status = :status
                ORDER BY a.created_at DESC
            """)
        result = await self.session.execute(sql, params)
        return [
            {
                "assignment_id": str(row[0]),
                "alert_id": str(row[1]),
                "assignment_reason": row[2],
                "assignment_level": row[3],
                "assigned_at": parse_timestamp(row[4]),
                "title": row[5],
                "severity": row[6],
                "status": row[7],
                "team_id": row[8],
            }
            for row in result.fetchall()
        ]

    # ------------------------------------------------------------------
    # Alerts and lifecycle
    # ------------------------------------------------------------------

    async def insert_alert(self, alert: Alert) -> Alert:
        """Insert a triggered alert."""
        alert.id = alert.id or str(uuid4())
        alert.created_at = alert.created_at or datetime.now(tz=timezone.utc)
        sql = text("""
            INSERT INTO alerts (
                id, team_id, severity, title, metric_name, metric_value, context, tags,
                status, alert_rule_id, description, created_at, updated_at
            ) VALUES (
                :id, :team_id, :severity, :title, :metric_name, :metric_value, :context, :tags,
                :status, :alert_rule_id, :description, :created_at, :created_at
            )
        """).bindparams(*timestamp_params("created_at"))
        await self.session.execute(
            sql,
            {
                "id": alert.id,
                "team_id": alert.team_id,
                "severity": Severity(alert.severity).value,
                "title": alert.title,
                "metric_name": alert.metric_name,
                "metric_value": alert.metric_value,
                "context": json.dumps(alert.context or {}),
                "tags": json.dumps(alert.tags or {}),
                "status": AlertStatus(alert.status).value,
                "alert_rule_id": alert.alert_rule_id,
                "description": alert.description,
                "created_at": alert.created_at,
            },
        )
        await self.session.commit()
        return alert

    async def get_alert(self, alert_id: str) -> Alert | None:
        sql = text(f"SELECT {_ALERT_COLUMNS} FROM alerts WHERE id = :id")
        result = await self.session.execute(sql, {"id": alert_id})
        row = result.fetchone()
        return _row_to_alert(row) if row else None

    async def acknowledge_alert(self, alert_id: str, user_id: str, now: datetime) -> bool:
        """Move an active alert to acknowledged.

        Returns:
            True if the alert changed state
        """
        update_sql = text("""
            UPDATE alerts
            SET status = :new_status, acknowledged_at = :now, acknowledged_by = :user_id,
                updated_at = :now
            WHERE id = :id AND status = :previous_status
        """).bindparams(*timestamp_params("now"))
        return await self._transition(
            alert_id,
            allowed_from=(AlertStatus.ACTIVE,),
            new_status=AlertStatus.ACKNOWLEDGED,
            update_sql=update_sql,
            params={"user_id": user_id, "now": now},
            user_id=user_id,
            event_description=f"Alert acknowledged by {user_id}",
            metadata={},
            now=now,
        )

    async def resolve_alert(self, alert_id: str, user_id: str, now: datetime) -> bool:
        """Move an active or acknowledged alert to resolved."""
        update_sql = text("""
            UPDATE alerts
            SET status = :new_status, resolved_at = :now, resolved_by = :user_id,
                updated_at = :now
            WHERE id = :id AND status = :previous_status
        """).bindparams(*timestamp_params("now"))
        return await self._transition(
            alert_id,
            allowed_from=(AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED),
            new_status=AlertStatus.RESOLVED,
            update_sql=update_sql,
            params={"user_id": user_id, "now": now},
            user_id=user_id,
            event_description=f"Alert resolved by {user_id}",
            metadata={},
            now=now,
        )

    async def suppress_alert(
        self, alert_id: str, until: datetime, user_id: str, now: datetime
    ) -> bool:
        """Suppress an active or acknowledged alert until a point in time."""
        update_sql = text("""
            UPDATE alerts
            SET status = :new_status, suppressed_until = :until, updated_at = :now
            WHERE id = :id AND status = :previous_status
        """).bindparams(*timestamp_params("until", "now"))
        return await self._transition(
            alert_id,
            allowed_from=(AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED),
            new_status=AlertStatus.SUPPRESSED,
            update_sql=update_sql,
            params={"until": until, "now": now},
            user_id=user_id,
            event_description=f"Alert suppressed by {user_id} until {until.isoformat()}",
            metadata={"suppressed_until": until.isoformat()},
            now=now,
        )

    async def _transition(
        self,
        alert_id: str,
        allowed_from: tuple[AlertStatus, ...],
        new_status: AlertStatus,
        update_sql,
        params: dict[str, Any],
        user_id: str,
        event_description: str,
        metadata: dict[str, Any],
        now: datetime,
    ) -> bool:
        result = await self.session.execute(
            text("SELECT status FROM alerts WHERE id = :id"), {"id": alert_id}
        )
        row = result.fetchone()
        if row is None or row[0] not in {status.value for status in allowed_from}:
            return False
        previous_status = row[0]

        try:
            updated = await self.session.execute(
                update_sql,
                {
                    **params,
                    "id": alert_id,
                    "new_status": new_status.value,
                    "previous_status": previous_status,
                },
            )
            if updated.rowcount == 0:
                await self.session.rollback()
                return False

            history_sql = text("""
                INSERT INTO alert_history (
                    id, alert_id, event_type, event_description, previous_status,
                    new_status, performed_by, metadata, created_at
                ) VALUES (
                    :id, :alert_id, :event_type, :event_description, :previous_status,
                    :new_status, :performed_by, :metadata, :created_at
                )
            """).bindparams(*timestamp_params("created_at"))
            await self.session.execute(
                history_sql,
                {
                    "id": str(uuid4()),
                    "alert_id": alert_id,
                    "event_type": new_status.value,
                    "event_description": event_description,
                    "previous_status": previous_status,
                    "new_status": new_status.value,
                    "performed_by": user_id,
                    "metadata": json.dumps(metadata),
                    "created_at": now,
                },
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return True

    async def get_alert_history(self, alert_id: str) -> list[dict]:
        """Get history rows for an alert, oldest first."""
        sql = text("""
            SELECT event_type, event_description, previous_status, new_status,
                   performed_by, metadata, created_at
            FROM alert_history
            WHERE alert_id = :alert_id
            ORDER BY created_at ASC
        """)
        result = await self.session.execute(sql, {"alert_id": alert_id})
        return [
            {
                "event_type": row[0],
                "event_description": row[1],
                "previous_status": row[2],
                "new_status": row[3],
                "performed_by": row[4],
                "metadata": load_json(row[5], {}),
                "created_at": parse_timestamp(row[6]),
            }
            for row in result.fetchall()
        ]

    async def get_alerts_since(
        self, since: datetime, team_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Get status, severity and timing of alerts created since a point in time."""
        params: dict = {"since": since}
        if team_id is not None:
            params["team_id"] = team_id
            sql = text("""
                SELECT status, severity, created_at, resolved_at FROM alerts
                WHERE created_at >= :since AND team_id = :team_id
            """).bindparams(*timestamp_params("since"))
        else:
            sql = text("""
                SELECT status, severity, created_at, resolved_at FROM alerts
                WHERE created_at >= :since
            """).bindparams(*timestamp_params("since"))
        result = await self.session.execute(sql, params)
        return [
            {
                "status": row[0],
                "severity": row[1],
                "created_at": parse_timestamp(row[2]),
                "resolved_at": parse_timestamp(row[3]),
            }
            for row in result.fetchall()
        ]

    # ------------------------------------------------------------------
    # Alert rules
    # ------------------------------------------------------------------

    async def get_enabled_alert_rules(self, team_id: str | None = None) -> list[AlertRule]:
        params: dict = {"enabled": True}
        if team_id is not None:
            params["team_id"] = team_id
            sql = text("""
                SELECT id, name, team_id, metric_name, severity, enabled FROM alert_rules
                WHERE enabled = :enabled AND team_id = :team_id
                ORDER BY created_at ASC
            """)
        else:
            sql = text("""
                SELECT id, name, team_id, metric_name, severity, enabled FROM alert_rules
                WHERE enabled = :enabled
                ORDER BY created_at ASC
            """)
        result = await self.session.execute(sql, params)
        return [
            AlertRule(
                id=str(row[0]),
                name=row[1],
                team_id=row[2],
                metric_name=row[3],
                severity=Severity(row[4]),
                enabled=bool(row[5]),
            )
            for row in result.fetchall()
        ]

    async def evaluate_alert_rule(self, rule_id: str) -> bool:
        """Run the store-side metric evaluator for one rule.

        Returns:
            True if the evaluation triggered an alert
        """
        try:
            result = await self.session.execute(
                text("SELECT evaluate_alert_rule(:rule_id)"), {"rule_id": rule_id}
            )
            triggered = result.scalar()
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return bool(triggered)
