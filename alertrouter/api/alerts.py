"""Alerts API endpoints for lifecycle actions, routing and statistics."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from alertrouter.alerts.models import (
    AlertStatistics,
    RoutingResult,
    RoutingStatistics,
    Severity,
    SeverityRoutingRule,
)
from alertrouter.alerts.setup import AlertingComponents
from alertrouter.api.dependencies import get_components
from alertrouter.exceptions import RoutingRuleNotFoundError


# Request schemas
class AlertActionRequest(BaseModel):
    """Acting user for acknowledge/resolve."""

    user_id: str | None = None


class SuppressRequest(BaseModel):
    user_id: str | None = None
    until: datetime


class RoutingRuleCreateRequest(BaseModel):
    """Request model for creating a severity routing rule."""

    team_id: str
    severity: Severity
    assigned_users: list[str] = Field(default_factory=list)
    assigned_channels: list[str] = Field(default_factory=list)
    initial_delay_minutes: int = Field(default=0, ge=0)
    escalation_interval_minutes: int = Field(default=15, ge=1)
    max_escalation_level: int = Field(default=3, ge=1)
    business_hours_only: bool = False
    weekend_escalation: bool = True
    auto_acknowledge_minutes: int | None = None
    auto_resolve_minutes: int | None = None
    conditions: dict[str, Any] = Field(default_factory=dict)
    enabled: bool = True
    priority: int = 100


class RoutingRuleUpdateRequest(BaseModel):
    severity: Severity | None = None
    assigned_users: list[str] | None = None
    assigned_channels: list[str] | None = None
    initial_delay_minutes: int | None = Field(default=None, ge=0)
    escalation_interval_minutes: int | None = Field(default=None, ge=1)
    max_escalation_level: int | None = Field(default=None, ge=1)
    business_hours_only: bool | None = None
    weekend_escalation: bool | None = None
    auto_acknowledge_minutes: int | None = None
    auto_resolve_minutes: int | None = None
    conditions: dict[str, Any] | None = None
    enabled: bool | None = None
    priority: int | None = None


# Response schemas
class AlertActionResponse(BaseModel):
    alert_id: str
    success: bool


class AlertStatisticsResponse(BaseModel):
    """Response model for alert statistics."""

    total_alerts: int
    active_alerts: int
    acknowledged_alerts: int
    resolved_alerts: int
    suppressed_alerts: int
    critical_alerts: int
    high_alerts: int
    medium_alerts: int
    low_alerts: int
    info_alerts: int
    avg_resolution_time_minutes: float


class RoutingStatisticsResponse(BaseModel):
    total_assignments: int
    routings_by_reason: dict[str, int]
    routings_by_severity: dict[str, int]
    average_assignment_time_minutes: float


class EscalationConfigResponse(BaseModel):
    initial_delay: int
    escalation_interval: int
    max_level: int


class RoutingResultResponse(BaseModel):
    """Response model for routing one alert."""

    success: bool
    assigned_users: list[str]
    assigned_channels: list[str]
    assignment_reason: str
    escalation_config: EscalationConfigResponse
    routing_rule_id: str | None
    on_call_user_id: str | None
    detail: str | None


class RoutingRuleResponse(BaseModel):
    id: str
    team_id: str
    severity: Severity
    assigned_users: list[str]
    assigned_channels: list[str]
    initial_delay_minutes: int
    escalation_interval_minutes: int
    max_escalation_level: int
    business_hours_only: bool
    weekend_escalation: bool
    auto_acknowledge_minutes: int | None
    auto_resolve_minutes: int | None
    conditions: dict[str, Any]
    enabled: bool
    priority: int


class AssignmentResponse(BaseModel):
    assignment_id: str
    alert_id: str
    assignment_reason: str
    assignment_level: int
    assigned_at: datetime | None
    title: str
    severity: str
    status: str
    team_id: str


class RuleEvaluationResponse(BaseModel):
    rule_id: str
    triggered: bool
    error: str | None


def _rule_response(rule: SeverityRoutingRule) -> RoutingRuleResponse:
    return RoutingRuleResponse(
        id=rule.id,
        team_id=rule.team_id,
        severity=rule.severity,
        assigned_users=rule.assigned_users,
        assigned_channels=rule.assigned_channels,
        initial_delay_minutes=rule.initial_delay_minutes,
        escalation_interval_minutes=rule.escalation_interval_minutes,
        max_escalation_level=rule.max_escalation_level,
        business_hours_only=rule.business_hours_only,
        weekend_escalation=rule.weekend_escalation,
        auto_acknowledge_minutes=rule.auto_acknowledge_minutes,
        auto_resolve_minutes=rule.auto_resolve_minutes,
        conditions=rule.conditions,
        enabled=rule.enabled,
        priority=rule.priority,
    )


def _routing_response(result: RoutingResult) -> RoutingResultResponse:
    return RoutingResultResponse(
        success=result.success,
        assigned_users=result.assigned_users,
        assigned_channels=result.assigned_channels,
        assignment_reason=result.assignment_reason.value,
        escalation_config=EscalationConfigResponse(
            initial_delay=result.escalation_config.initial_delay,
            escalation_interval=result.escalation_config.escalation_interval,
            max_level=result.escalation_config.max_level,
        ),
        routing_rule_id=result.routing_rule.id if result.routing_rule else None,
        on_call_user_id=result.on_call_user.user_id if result.on_call_user else None,
        detail=result.detail,
    )


# Router
router = APIRouter(prefix="/api/alerts", tags=["alerts"])


@router.get("/statistics", response_model=AlertStatisticsResponse)
async def get_alert_statistics(
    team_id: str | None = Query(default=None),
    hours: int = Query(default=24, ge=1, le=24 * 90),
    components: AlertingComponents = Depends(get_components),
) -> AlertStatisticsResponse:
    """Get alert counts by status and severity over the last ``hours`` hours.

    Args:
        team_id: Restrict to one team
        hours: Window size in hours (default 24)
        components: Alerting components for this request

    Returns:
        Fully populated statistics (zeros when there are no alerts)
    """
    stats: AlertStatistics = await components.service.get_alert_statistics(team_id, hours)
    return AlertStatisticsResponse(**vars(stats))


@router.get("/routing-statistics", response_model=RoutingStatisticsResponse)
async def get_routing_statistics(
    team_id: str | None = Query(default=None),
    hours: int = Query(default=24, ge=1, le=24 * 90),
    components: AlertingComponents = Depends(get_components),
) -> RoutingStatisticsResponse:
    stats: RoutingStatistics = await components.router.get_routing_statistics(team_id, hours)
    return RoutingStatisticsResponse(**vars(stats))


@router.get("/assignments", response_model=list[AssignmentResponse])
async def get_user_assignments(
    user_id: str = Query(...),
    status: str = Query(default="active", pattern="^(active|acknowledged|all)$"),
    components: AlertingComponents = Depends(get_components),
) -> list[AssignmentResponse]:
    """List alerts assigned to a user, newest first."""
    rows = await components.router.get_user_assignments(user_id, status)
    return [AssignmentResponse(**row) for row in rows]


@router.post("/routing-rules", response_model=RoutingRuleResponse, status_code=201)
async def create_routing_rule(
    request: RoutingRuleCreateRequest,
    components: AlertingComponents = Depends(get_components),
) -> RoutingRuleResponse:
    rule = await components.router.create_routing_rule(
        SeverityRoutingRule(**request.model_dump())
    )
    return _rule_response(rule)


@router.patch("/routing-rules/{rule_id}", response_model=RoutingRuleResponse)
async def update_routing_rule(
    rule_id: str,
    request: RoutingRuleUpdateRequest,
    components: AlertingComponents = Depends(get_components),
) -> RoutingRuleResponse:
    try:
        rule = await components.router.update_routing_rule(
            rule_id, request.model_dump(exclude_unset=True)
        )
    except RoutingRuleNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return _rule_response(rule)


@router.post("/rules/evaluate", response_model=list[RuleEvaluationResponse])
async def evaluate_alert_rules(
    team_id: str | None = Query(default=None),
    components: AlertingComponents = Depends(get_components),
) -> list[RuleEvaluationResponse]:
    """Evaluate every enabled alert rule and report which ones triggered."""
    results = await components.service.evaluate_all_alert_rules(team_id)
    return [RuleEvaluationResponse(**vars(r)) for r in results]


@router.post("/{alert_id}/route", response_model=RoutingResultResponse)
async def route_alert(
    alert_id: str,
    components: AlertingComponents = Depends(get_components),
) -> RoutingResultResponse:
    """Route a stored alert to responders."""
    alert = await components.service.get_alert(alert_id)
    if alert is None:
        raise HTTPException(status_code=404, detail=f"Alert not found: {alert_id}")
    result = await components.router.route_alert(alert)
    return _routing_response(result)


@router.post("/{alert_id}/acknowledge", response_model=AlertActionResponse)
async def acknowledge_alert(
    alert_id: str,
    request: AlertActionRequest,
    components: AlertingComponents = Depends(get_components),
) -> AlertActionResponse:
    """Acknowledge an active alert. success is False if nothing changed."""
    success = await components.service.acknowledge(alert_id, request.user_id)
    return AlertActionResponse(alert_id=alert_id, success=success)


@router.post("/{alert_id}/resolve", response_model=AlertActionResponse)
async def resolve_alert(
    alert_id: str,
    request: AlertActionRequest,
    components: AlertingComponents = Depends(get_components),
) -> AlertActionResponse:
    success = await components.service.resolve(alert_id, request.user_id)
    return AlertActionResponse(alert_id=alert_id, success=success)


@router.post("/{alert_id}/suppress", response_model=AlertActionResponse)
async def suppress_alert(
    alert_id: str,
    request: SuppressRequest,
    components: AlertingComponents = Depends(get_components),
) -> AlertActionResponse:
    success = await components.service.suppress(alert_id, request.until, request.user_id)
    return AlertActionResponse(alert_id=alert_id, success=success)
