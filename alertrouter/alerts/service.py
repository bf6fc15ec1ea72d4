"""AlertService module for alert lifecycle operations.

This module provides the AlertService class: attributed acknowledge, resolve
and suppress transitions, alert statistics, batch rule evaluation, and routing
of newly triggered alerts.

Usage:
    from alertrouter.alerts.service import AlertService

    service = AlertService(repository=alert_repo, router=severity_router)
    if await service.acknowledge(alert_id, user_id):
        ...
    stats = await service.get_alert_statistics(team_id="team-1", hours=24)
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from alertrouter.alerts.models import (
    Alert,
    AlertStatistics,
    AlertStatus,
    RoutingResult,
    RuleEvaluationResult,
    Severity,
)

if TYPE_CHECKING:
    from alertrouter.alerts.repository import AlertRepository
    from alertrouter.alerts.routing import SeverityRouter


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class AlertService:
    """Lifecycle operations on alerts.

    Features:
    - Transitions never raise - they return False when nothing changed
    - Every successful transition writes alert_history in the same transaction
    - Statistics always come back fully populated (zeros when empty)
    - Batch rule evaluation isolates failures per rule
    """

    def __init__(
        self,
        repository: "AlertRepository",
        router: "SeverityRouter | None" = None,
        clock: Callable[[], datetime] | None = None,
        logger: logging.Logger | None = None,
    ):
        """Initialize AlertService.

        Args:
            repository: AlertRepository for alerts, history and rules
            router: SeverityRouter used by route_alert (optional)
            clock: Callable returning the current aware datetime
            logger: Optional logger, defaults to the module logger
        """
        self._repo = repository
        self._router = router
        self._clock = clock or _utc_now
        self._logger = logger or logging.getLogger(__name__)

    async def acknowledge(self, alert_id: str, user_id: str | None) -> bool:
        """Acknowledge an active alert.

        Returns:
            True if the alert moved to acknowledged, False otherwise
        """
        if not user_id:
            self._logger.warning("Refusing to acknowledge alert %s without a user", alert_id)
            return False
        try:
            changed = await self._repo.acknowledge_alert(alert_id, user_id, self._clock())
        except Exception as e:
            self._logger.error("Error acknowledging alert %s: %s", alert_id, e)
            return False
        if changed:
            self._logger.info("Alert %s acknowledged by %s", alert_id, user_id)
        return changed

    async def resolve(self, alert_id: str, user_id: str | None) -> bool:
        """Resolve an active or acknowledged alert."""
        if not user_id:
            self._logger.warning("Refusing to resolve alert %s without a user", alert_id)
            return False
        try:
            changed = await self._repo.resolve_alert(alert_id, user_id, self._clock())
        except Exception as e:
            self._logger.error("Error resolving alert %s: %s", alert_id, e)
            return False
        if changed:
            self._logger.info("Alert %s resolved by %s", alert_id, user_id)
        return changed

    async def suppress(self, alert_id: str, until: datetime, user_id: str | None) -> bool:
        """Suppress an active or acknowledged alert until ``until``."""
        if not user_id:
            self._logger.warning("Refusing to suppress alert %s without a user", alert_id)
            return False
        try:
            changed = await self._repo.suppress_alert(alert_id, until, user_id, self._clock())
        except Exception as e:
            self._logger.error("Error suppressing alert %s: %s", alert_id, e)
            return False
        if changed:
            self._logger.info(
                "Alert %s suppressed by %s until %s", alert_id, user_id, until.isoformat()
            )
        return changed

    async def get_alert_statistics(
        self, team_id: str | None = None, hours: int = 24
    ) -> AlertStatistics:
        """Count alerts by status and severity over the last ``hours`` hours.

        avg_resolution_time_minutes averages created_at -> resolved_at over
        resolved alerts.
        """
        stats = AlertStatistics()
        try:
            since = self._clock() - timedelta(hours=hours)
            rows = await self._repo.get_alerts_since(since, team_id)
        except Exception as e:
            self._logger.error("Failed to load alert statistics: %s", e)
            return stats

        status_fields = {
            AlertStatus.ACTIVE.value: "active_alerts",
            AlertStatus.ACKNOWLEDGED.value: "acknowledged_alerts",
            AlertStatus.RESOLVED.value: "resolved_alerts",
            AlertStatus.SUPPRESSED.value: "suppressed_alerts",
        }
        severity_fields = {severity.value: f"{severity.value}_alerts" for severity in Severity}
        resolution_minutes: list[float] = []

        for row in rows:
            stats.total_alerts += 1
            status_field = status_fields.get(row["status"])
            if status_field:
                setattr(stats, status_field, getattr(stats, status_field) + 1)
            severity_field = severity_fields.get(row["severity"])
            if severity_field:
                setattr(stats, severity_field, getattr(stats, severity_field) + 1)
            if row["resolved_at"] is not None and row["created_at"] is not None:
                elapsed = row["resolved_at"] - row["created_at"]
                resolution_minutes.append(elapsed.total_seconds() / 60)

        if resolution_minutes:
            stats.avg_resolution_time_minutes = sum(resolution_minutes) / len(resolution_minutes)
        return stats

    async def evaluate_all_alert_rules(
        self, team_id: str | None = None
    ) -> list[RuleEvaluationResult]:
        """Evaluate every enabled alert rule, one at a time.

        A failing rule is logged and reported in its result; the rest of the
        batch still runs.
        """
        try:
            rules = await self._repo.get_enabled_alert_rules(team_id)
        except Exception as e:
            self._logger.error("Failed to load alert rules: %s", e)
            return []

        results: list[RuleEvaluationResult] = []
        for rule in rules:
            try:
                triggered = await self._repo.evaluate_alert_rule(rule.id)
                results.append(RuleEvaluationResult(rule_id=rule.id, triggered=triggered))
            except Exception as e:
                self._logger.error("Error evaluating alert rule %s (%s): %s", rule.id, rule.name, e)
                results.append(RuleEvaluationResult(rule_id=rule.id, error=str(e)))

        triggered_count = sum(1 for r in results if r.triggered)
        self._logger.info(
            "Evaluated %d alert rules, %d triggered", len(results), triggered_count
        )
        return results

    async def get_alert(self, alert_id: str) -> Alert | None:
        return await self._repo.get_alert(alert_id)

    async def route_alert(self, alert: Alert) -> RoutingResult | None:
        """Route an alert through the configured router.

        Returns:
            RoutingResult, or None when no router is configured
        """
        if self._router is None:
            self._logger.warning("No router configured, alert %s not routed", alert.id)
            return None
        return await self._router.route_alert(alert)
