"""Alert, routing and lifecycle models.

Severity and status enums plus the dataclasses exchanged between the alert
repository, the severity router and the lifecycle service.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Severity(str, Enum):
    """Alert severity levels, most urgent first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


class AlertStatus(str, Enum):
    """Lifecycle state of an alert."""

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    SUPPRESSED = "suppressed"
    EXPIRED = "expired"


class AssignmentReason(str, Enum):
    """Why a user was assigned to an alert."""

    ON_CALL_SCHEDULE = "on_call_schedule"
    SEVERITY_ROUTING = "severity_routing"
    DEFAULT_ROUTING = "default_routing"


class TeamRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


@dataclass
class AlertRule:
    """Metric-threshold rule that triggers alerts when evaluated."""

    id: str
    name: str
    team_id: str
    metric_name: str
    severity: Severity
    enabled: bool = True


@dataclass
class Alert:
    """A triggered condition instance requiring human attention.

    Attributes:
        id: Alert identifier
        team_id: Owning team (exactly one)
        severity: Severity level used for routing
        title: Short summary
        metric_name: Metric that triggered the alert
        metric_value: Observed value (None if not numeric)
        context: Free-form context matched by routing context_filters
        tags: String tags matched by routing required_tags
        status: Current lifecycle status
    """

    id: str
    team_id: str
    severity: Severity
    title: str
    metric_name: str
    metric_value: float | None = None
    context: dict[str, Any] = field(default_factory=dict)
    tags: dict[str, str] = field(default_factory=dict)
    status: AlertStatus = AlertStatus.ACTIVE
    alert_rule_id: str | None = None
    description: str | None = None
    created_at: datetime | None = None
    acknowledged_at: datetime | None = None
    acknowledged_by: str | None = None
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    suppressed_until: datetime | None = None


@dataclass
class SeverityRoutingRule:
    """Team- and severity-scoped routing policy.

    A lower priority number means higher precedence.
    """

    team_id: str
    severity: Severity
    assigned_users: list[str] = field(default_factory=list)
    assigned_channels: list[str] = field(default_factory=list)
    initial_delay_minutes: int = 0
    escalation_interval_minutes: int = 15
    max_escalation_level: int = 3
    business_hours_only: bool = False
    weekend_escalation: bool = True
    auto_acknowledge_minutes: int | None = None
    auto_resolve_minutes: int | None = None
    conditions: dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    priority: int = 100
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class AlertAssignment:
    alert_id: str
    assigned_to: str
    assignment_reason: AssignmentReason
    assignment_level: int = 1
    id: str | None = None
    created_at: datetime | None = None


@dataclass
class OnCallUser:
    """Currently scheduled responder for a team."""

    user_id: str
    is_primary: bool
    schedule_name: str
    backup_user_id: str | None = None
    full_name: str | None = None
    email: str | None = None


@dataclass
class TeamMember:
    user_id: str
    role: TeamRole


@dataclass
class EscalationConfig:
    """Escalation timing triple, all in minutes except max_level."""

    initial_delay: int
    escalation_interval: int
    max_level: int


@dataclass
class RoutingResult:
    """Outcome of routing one alert.

    Attributes:
        success: True when at least one user was assigned
        assigned_users: User ids that received an assignment
        assigned_channels: Channel ids the alert should be delivered to
        assignment_reason: How the users were chosen
        escalation_config: Escalation timing for the assignment
        routing_rule: The rule that matched (None for default routing)
        on_call_user: On-call responder used (None unless resolved from schedule)
        detail: Explanation when nobody was assigned
    """

    success: bool
    assigned_users: list[str]
    assigned_channels: list[str]
    assignment_reason: AssignmentReason
    escalation_config: EscalationConfig
    routing_rule: SeverityRoutingRule | None = None
    on_call_user: OnCallUser | None = None
    detail: str | None = None


@dataclass
class AlertStatistics:
    total_alerts: int = 0
    active_alerts: int = 0
    acknowledged_alerts: int = 0
    resolved_alerts: int = 0
    suppressed_alerts: int = 0
    critical_alerts: int = 0
    high_alerts: int = 0
    medium_alerts: int = 0
    low_alerts: int = 0
    info_alerts: int = 0
    avg_resolution_time_minutes: float = 0.0


@dataclass
class RoutingStatistics:
    """Assignment counts over a time window."""

    total_assignments: int = 0
    routings_by_reason: dict[str, int] = field(default_factory=dict)
    routings_by_severity: dict[str, int] = field(default_factory=dict)
    average_assignment_time_minutes: float = 0.0


@dataclass
class RuleEvaluationResult:
    rule_id: str
    triggered: bool = False
    error: str | None = None
