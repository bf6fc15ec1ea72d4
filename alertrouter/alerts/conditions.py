"""Routing rule condition evaluation.

Conditions are checked in a fixed order and short-circuit on the first
failure:

1. business_hours_only: instant must fall Mon-Fri 09:00-17:00 local time
2. weekend_escalation disabled: instant must not fall on Sat/Sun
3. custom conditions: metric_name, metric_value_min/max, required_tags,
   context_filters (all must hold)
"""

from datetime import datetime, time
from typing import Any
from zoneinfo import ZoneInfo

from alertrouter.alerts.models import Alert, SeverityRoutingRule

BUSINESS_DAY_START = time(9, 0)
BUSINESS_DAY_END = time(17, 0)
SATURDAY = 5


def _localize(instant: datetime, tz_name: str) -> datetime:
    return instant.astimezone(ZoneInfo(tz_name))


def is_weekend(instant: datetime, tz_name: str = "UTC") -> bool:
    return _localize(instant, tz_name).weekday() >= SATURDAY


def is_business_hours(instant: datetime, tz_name: str = "UTC") -> bool:
    """Check whether an instant falls within Mon-Fri 09:00-17:00.

    Args:
        instant: Aware datetime to check
        tz_name: IANA timezone the business day is defined in

    Returns:
        True for 09:00 <= local time < 17:00 on a weekday
    """
    local = _localize(instant, tz_name)
    if local.weekday() >= SATURDAY:
        return False
    return BUSINESS_DAY_START <= local.time() < BUSINESS_DAY_END


def evaluate_custom_conditions(alert: Alert, conditions: dict[str, Any]) -> bool:
    """Evaluate a rule's custom conditions against an alert.

    A missing metric_value is treated as 0 for the min/max bounds.
    """
    metric_name = conditions.get("metric_name")
    if metric_name and alert.metric_name != metric_name:
        return False

    metric_value = alert.metric_value if alert.metric_value is not None else 0
    minimum = conditions.get("metric_value_min")
    if minimum is not None and metric_value < minimum:
        return False
    maximum = conditions.get("metric_value_max")
    if maximum is not None and metric_value > maximum:
        return False

    for tag in conditions.get("required_tags") or []:
        if tag not in alert.tags:
            return False

    for key, expected in (conditions.get("context_filters") or {}).items():
        if key not in alert.context or alert.context[key] != expected:
            return False

    return True


def evaluate_routing_conditions(
    alert: Alert, rule: SeverityRoutingRule, instant: datetime, tz_name: str = "UTC"
) -> bool:
    """Check whether a routing rule applies to an alert at the given instant."""
    if rule.business_hours_only and not is_business_hours(instant, tz_name):
        return False

    if not rule.weekend_escalation and is_weekend(instant, tz_name):
        return False

    if rule.conditions:
        return evaluate_custom_conditions(alert, rule.conditions)

    return True
