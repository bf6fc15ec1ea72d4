"""Alerting error types."""


class ChannelValidationError(ValueError):
    """Channel configuration rejected before anything was persisted."""

    def __init__(self, errors: list[str], warnings: list[str] | None = None):
        super().__init__(f"Invalid channel configuration: {', '.join(errors)}")
        self.errors = list(errors)
        self.warnings = list(warnings or [])


class ChannelNotFoundError(LookupError):
    """Notification channel does not exist."""

    def __init__(self, channel_id: str):
        super().__init__(f"Channel not found: {channel_id}")
        self.channel_id = channel_id


class RoutingRuleNotFoundError(LookupError):
    """Severity routing rule does not exist."""

    def __init__(self, rule_id: str):
        super().__init__(f"Severity routing rule not found: {rule_id}")
        self.rule_id = rule_id
