"""Severity-based alert routing.

This module decides who receives an alert and through which channels:

1. Enabled routing rules for the alert's (team, severity) are evaluated in
   ascending priority order; the first rule whose conditions pass is selected
2. A rule with no assigned users falls back to the current on-call user
   (plus backup, if any)
3. One assignment is persisted per selected user
4. When no rule applies, or rule-based routing fails, default routing assigns
   team members by role and uses a fixed escalation table

Routing never raises; failures are reported on the RoutingResult.

Usage:
    from alertrouter.alerts.routing import SeverityRouter

    router = SeverityRouter(AlertRepository(session), timezone="Europe/London")
    result = await router.route_alert(alert)
    if result.success:
        print(result.assigned_users, result.escalation_config)
"""

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

from alertrouter.alerts.conditions import evaluate_routing_conditions
from alertrouter.alerts.models import (
    Alert,
    AlertAssignment,
    AssignmentReason,
    EscalationConfig,
    OnCallUser,
    RoutingResult,
    RoutingStatistics,
    Severity,
    SeverityRoutingRule,
    TeamMember,
    TeamRole,
)
from alertrouter.alerts.repository import AlertRepository
from alertrouter.exceptions import RoutingRuleNotFoundError

MAX_DEFAULT_ASSIGNEES = 2

DEFAULT_ESCALATION_CONFIGS: dict[Severity, EscalationConfig] = {
    Severity.CRITICAL: EscalationConfig(initial_delay=5, escalation_interval=10, max_level=5),
    Severity.HIGH: EscalationConfig(initial_delay=15, escalation_interval=20, max_level=4),
    Severity.MEDIUM: EscalationConfig(initial_delay=30, escalation_interval=30, max_level=3),
    Severity.LOW: EscalationConfig(initial_delay=60, escalation_interval=60, max_level=2),
    Severity.INFO: EscalationConfig(initial_delay=120, escalation_interval=120, max_level=1),
}

ROUTING_RULE_FIELDS = frozenset(
    {
        "severity",
        "assigned_users",
        "assigned_channels",
        "initial_delay_minutes",
        "escalation_interval_minutes",
        "max_escalation_level",
        "business_hours_only",
        "weekend_escalation",
        "auto_acknowledge_minutes",
        "auto_resolve_minutes",
        "conditions",
        "enabled",
        "priority",
    }
)


def default_escalation_config(severity: Severity) -> EscalationConfig:
    """Get a copy of the default escalation timing for a severity."""
    return replace(DEFAULT_ESCALATION_CONFIGS[Severity(severity)])


def select_default_assignees(members: list[TeamMember], severity: Severity) -> list[str]:
    """Pick default assignees for a severity from a team's members.

    critical/high go to owners and admins, medium to everyone, and low/info to
    members and admins capped at MAX_DEFAULT_ASSIGNEES.
    """
    severity = Severity(severity)
    if severity in (Severity.CRITICAL, Severity.HIGH):
        return [m.user_id for m in members if m.role in (TeamRole.OWNER, TeamRole.ADMIN)]
    if severity == Severity.MEDIUM:
        return [m.user_id for m in members]
    eligible = [m.user_id for m in members if m.role in (TeamRole.MEMBER, TeamRole.ADMIN)]
    return eligible[:MAX_DEFAULT_ASSIGNEES]


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class SeverityRouter:
    """Routes alerts to users and channels by severity.

    Args:
        repository: AlertRepository for rules, members, on-call and assignments
        clock: Callable returning the current aware datetime
        timezone: IANA timezone that business hours and weekends refer to
        logger: Optional logger, defaults to the module logger
    """

    def __init__(
        self,
        repository: AlertRepository,
        clock: Callable[[], datetime] | None = None,
        timezone: str = "UTC",
        logger: logging.Logger | None = None,
    ):
        self._repo = repository
        self._clock = clock or _utc_now
        self._timezone = timezone
        self._logger = logger or logging.getLogger(__name__)

    async def route_alert(self, alert: Alert) -> RoutingResult:
        """Route an alert to responders.

        Args:
            alert: The alert to route

        Returns:
            RoutingResult describing assignees, channels and escalation timing
        """
        try:
            rules = await self._repo.get_routing_rules(alert.team_id, alert.severity)
            if not rules:
                self._logger.debug(
                    "No routing rules for team %s severity %s",
                    alert.team_id,
                    Severity(alert.severity).value,
                )
                return await self._apply_default_routing(alert)

            now = self._clock()
            selected = None
            # Rules are tried in priority order and a failing rule falls through to the
            # next one. Default routing applies only when no enabled rule passes.
            for rule in rules:
                if evaluate_routing_conditions(alert, rule, now, self._timezone):
                    selected = rule
                    break
                self._logger.debug("Routing conditions not met for rule %s", rule.id)

            if selected is None:
                return await self._apply_default_routing(alert)

            return await self._apply_rule(alert, selected)

        except Exception as e:
            self._logger.error(
                "Rule-based routing failed for alert %s, applying default routing: %s",
                alert.id,
                e,
            )
            return await self._apply_default_routing(alert)

    async def _apply_rule(self, alert: Alert, rule: SeverityRoutingRule) -> RoutingResult:
        on_call_user: OnCallUser | None = None
        assigned_users = list(rule.assigned_users)
        reason = AssignmentReason.SEVERITY_ROUTING

        if not assigned_users:
            on_call_user = await self._repo.get_current_on_call_user(
                alert.team_id, alert.severity, self._clock()
            )
            if on_call_user is not None:
                assigned_users = [on_call_user.user_id]
                if on_call_user.backup_user_id:
                    assigned_users.append(on_call_user.backup_user_id)
                reason = AssignmentReason.ON_CALL_SCHEDULE

        escalation = EscalationConfig(
            initial_delay=rule.initial_delay_minutes,
            escalation_interval=rule.escalation_interval_minutes,
            max_level=rule.max_escalation_level,
        )

        if not assigned_users:
            self._logger.warning(
                "Routing rule %s matched alert %s but no users or on-call responder found",
                rule.id,
                alert.id,
            )
            return RoutingResult(
                success=False,
                assigned_users=[],
                assigned_channels=list(rule.assigned_channels),
                assignment_reason=reason,
                escalation_config=escalation,
                routing_rule=rule,
                detail="Routing rule has no assigned users and nobody is on call",
            )

        await self._create_assignments(alert.id, assigned_users, reason)
        self._logger.info(
            "Alert %s routed by rule %s to %s (%s)",
            alert.id,
            rule.id,
            assigned_users,
            reason.value,
        )
        return RoutingResult(
            success=True,
            assigned_users=assigned_users,
            assigned_channels=list(rule.assigned_channels),
            assignment_reason=reason,
            escalation_config=escalation,
            routing_rule=rule,
            on_call_user=on_call_user,
        )

    async def _apply_default_routing(self, alert: Alert) -> RoutingResult:
        reason = AssignmentReason.DEFAULT_ROUTING
        try:
            escalation = default_escalation_config(alert.severity)
            members = await self._repo.get_team_members(alert.team_id)
            assigned_users = select_default_assignees(members, alert.severity)

            if not assigned_users:
                self._logger.warning(
                    "Default routing found no eligible members for alert %s (team %s)",
                    alert.id,
                    alert.team_id,
                )
                return RoutingResult(
                    success=False,
                    assigned_users=[],
                    assigned_channels=[],
                    assignment_reason=reason,
                    escalation_config=escalation,
                    detail="No eligible team members for default routing",
                )

            await self._create_assignments(alert.id, assigned_users, reason)
            self._logger.info("Alert %s routed by default to %s", alert.id, assigned_users)
            return RoutingResult(
                success=True,
                assigned_users=assigned_users,
                assigned_channels=[],
                assignment_reason=reason,
                escalation_config=escalation,
            )

        except Exception as e:
            self._logger.error("Default routing failed for alert %s: %s", alert.id, e)
            return RoutingResult(
                success=False,
                assigned_users=[],
                assigned_channels=[],
                assignment_reason=reason,
                escalation_config=EscalationConfig(
                    initial_delay=0, escalation_interval=0, max_level=0
                ),
                detail=f"Default routing failed: {e}",
            )

    async def _create_assignments(
        self, alert_id: str, user_ids: list[str], reason: AssignmentReason
    ) -> None:
        for user_id in user_ids:
            try:
                await self._repo.create_assignment(
                    AlertAssignment(
                        alert_id=alert_id,
                        assigned_to=user_id,
                        assignment_reason=reason,
                        assignment_level=1,
                    )
                )
            except Exception as e:
                self._logger.error(
                    "Failed to record assignment of alert %s to %s: %s", alert_id, user_id, e
                )

    async def create_routing_rule(self, rule: SeverityRoutingRule) -> SeverityRoutingRule:
        created = await self._repo.insert_routing_rule(rule)
        self._logger.info(
            "Created routing rule %s for team %s severity %s",
            created.id,
            created.team_id,
            Severity(created.severity).value,
        )
        return created

    async def update_routing_rule(
        self, rule_id: str, updates: dict[str, Any]
    ) -> SeverityRoutingRule:
        """Apply a partial update to a routing rule.

        Raises:
            RoutingRuleNotFoundError: If the rule does not exist
        """
        existing = await self._repo.get_routing_rule(rule_id)
        if existing is None:
            raise RoutingRuleNotFoundError(rule_id)

        changes = {key: value for key, value in updates.items() if key in ROUTING_RULE_FIELDS}
        if "severity" in changes:
            changes["severity"] = Severity(changes["severity"])
        updated = await self._repo.update_routing_rule(replace(existing, **changes))
        self._logger.info("Updated routing rule %s (%s)", rule_id, ", ".join(sorted(changes)))
        return updated

    async def get_routing_statistics(
        self, team_id: str | None = None, hours: int = 24
    ) -> RoutingStatistics:
        """Aggregate assignments over the last ``hours`` hours.

        Returns zeroed statistics if the store cannot be read.
        """
        try:
            since = self._clock() - timedelta(hours=hours)
            rows = await self._repo.get_assignments_since(since, team_id)
        except Exception as e:
            self._logger.error("Failed to load routing statistics: %s", e)
            return RoutingStatistics()

        by_reason: dict[str, int] = {}
        by_severity: dict[str, int] = {}
        delays: list[float] = []
        for row in rows:
            by_reason[row["assignment_reason"]] = by_reason.get(row["assignment_reason"], 0) + 1
            by_severity[row["severity"]] = by_severity.get(row["severity"], 0) + 1
            if row["assigned_at"] is not None and row["alert_created_at"] is not None:
                delays.append((row["assigned_at"] - row["alert_created_at"]).total_seconds() / 60)

        return RoutingStatistics(
            total_assignments=len(rows),
            routings_by_reason=by_reason,
            routings_by_severity=by_severity,
            average_assignment_time_minutes=(sum(delays) / len(delays)) if delays else 0.0,
        )

    async def get_user_assignments(self, user_id: str, status: str = "active") -> list[dict]:
        """Get alerts assigned to a user filtered by alert status."""
        return await self._repo.get_user_assignments(user_id, status)
