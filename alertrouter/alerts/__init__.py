"""Alert routing and lifecycle package.

This package provides:
- Alert, routing rule and assignment models
- Routing condition evaluation (business hours, weekends, custom conditions)
- SeverityRouter with on-call fallback and default routing
- AlertService for acknowledge/resolve/suppress, statistics and rule evaluation
- build_components for wiring everything from a session
"""

from alertrouter.alerts.conditions import (
    evaluate_custom_conditions,
    evaluate_routing_conditions,
    is_business_hours,
    is_weekend,
)
from alertrouter.alerts.models import (
    Alert,
    AlertStatistics,
    AlertStatus,
    AssignmentReason,
    EscalationConfig,
    RoutingResult,
    RoutingStatistics,
    RuleEvaluationResult,
    Severity,
    SeverityRoutingRule,
)
from alertrouter.alerts.repository import AlertRepository
from alertrouter.alerts.routing import (
    DEFAULT_ESCALATION_CONFIGS,
    MAX_DEFAULT_ASSIGNEES,
    SeverityRouter,
)
from alertrouter.alerts.service import AlertService
from alertrouter.alerts.setup import AlertingComponents, build_components

__all__ = [
    # Models
    "Alert",
    "AlertStatistics",
    "AlertStatus",
    "AssignmentReason",
    "EscalationConfig",
    "RoutingResult",
    "RoutingStatistics",
    "RuleEvaluationResult",
    "Severity",
    "SeverityRoutingRule",
    # Conditions
    "evaluate_custom_conditions",
    "evaluate_routing_conditions",
    "is_business_hours",
    "is_weekend",
    # Routing
    "DEFAULT_ESCALATION_CONFIGS",
    "MAX_DEFAULT_ASSIGNEES",
    "SeverityRouter",
    # Repository / service
    "AlertRepository",
    "AlertService",
    "AlertingComponents",
    "build_components",
]
