"""Notification channel API endpoints."""

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from alertrouter.alerts.setup import AlertingComponents
from alertrouter.api.dependencies import get_components
from alertrouter.channels.models import (
    ChannelTestResult,
    ChannelType,
    NotificationChannel,
)
from alertrouter.channels.validation import validate_channel_configuration
from alertrouter.exceptions import ChannelNotFoundError, ChannelValidationError


# Request schemas
class ChannelCreateRequest(BaseModel):
    """Request model for creating a channel."""

    team_id: str | None = None
    name: str = Field(min_length=1)
    channel_type: str
    configuration: dict[str, Any] = Field(default_factory=dict)
    description: str | None = None
    enabled: bool = True
    max_notifications_per_hour: int = Field(default=50, ge=1)
    max_notifications_per_day: int = Field(default=200, ge=1)
    created_by: str | None = None


class ChannelUpdateRequest(BaseModel):
    """Request model for a partial channel update.

    Omitted fields are left as-is. A null clears the description and is
    ignored for every other field.
    """

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    channel_type: str | None = None
    configuration: dict[str, Any] | None = None
    enabled: bool | None = None
    max_notifications_per_hour: int | None = Field(default=None, ge=1)
    max_notifications_per_day: int | None = Field(default=None, ge=1)


class ChannelToggleRequest(BaseModel):
    enabled: bool


class ChannelDuplicateRequest(BaseModel):
    name: str = Field(min_length=1)


class ChannelValidateRequest(BaseModel):
    channel_type: str
    configuration: dict[str, Any] = Field(default_factory=dict)


# Response schemas
class ChannelResponse(BaseModel):
    """Response model for a single channel."""

    id: str
    team_id: str | None
    name: str
    description: str | None
    channel_type: ChannelType
    enabled: bool
    configuration: dict[str, Any]
    max_notifications_per_hour: int
    max_notifications_per_day: int
    created_by: str | None
    created_at: datetime | None
    updated_at: datetime | None


class ChannelListResponse(BaseModel):
    channels: list[ChannelResponse]
    total: int


class ChannelTestResponse(BaseModel):
    success: bool
    message: str
    response_time_ms: int
    details: dict[str, Any] | None = None


class ValidationResponse(BaseModel):
    is_valid: bool
    errors: list[str]
    warnings: list[str]


class DailyStatsResponse(BaseModel):
    date: str
    total: int
    successful: int
    failed: int


class ChannelUsageStatsResponse(BaseModel):
    """Response model for channel delivery statistics."""

    total_notifications: int
    successful_deliveries: int
    failed_deliveries: int
    success_rate: float
    average_delivery_time_ms: float
    daily_stats: list[DailyStatsResponse]


def _to_response(channel: NotificationChannel) -> ChannelResponse:
    return ChannelResponse(
        id=channel.id,
        team_id=channel.team_id,
        name=channel.name,
        description=channel.description,
        channel_type=channel.channel_type,
        enabled=channel.enabled,
        configuration=channel.configuration,
        max_notifications_per_hour=channel.max_notifications_per_hour,
        max_notifications_per_day=channel.max_notifications_per_day,
        created_by=channel.created_by,
        created_at=channel.created_at,
        updated_at=channel.updated_at,
    )


def _test_response(result: ChannelTestResult) -> ChannelTestResponse:
    return ChannelTestResponse(
        success=result.success,
        message=result.message,
        response_time_ms=result.response_time_ms,
        details=result.details,
    )


def _validation_error(e: ChannelValidationError) -> HTTPException:
    return HTTPException(status_code=422, detail={"errors": e.errors, "warnings": e.warnings})


def _not_found(channel_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Channel not found: {channel_id}")


# Router
router = APIRouter(prefix="/api/channels", tags=["channels"])


@router.get("", response_model=ChannelListResponse)
async def list_channels(
    team_id: str | None = Query(default=None),
    channel_type: str | None = Query(default=None),
    components: AlertingComponents = Depends(get_components),
) -> ChannelListResponse:
    """List channels, newest first.

    Args:
        team_id: Restrict to one team
        channel_type: Restrict to one channel type
        components: Alerting components for this request

    Returns:
        Channels and their count
    """
    if channel_type is not None:
        try:
            resolved_type = ChannelType(channel_type)
        except ValueError:
            raise HTTPException(
                status_code=422, detail=f"Unsupported channel type: {channel_type}"
            ) from None
        channels = await components.registry.get_channels_by_type(resolved_type, team_id)
    else:
        channels = await components.registry.list_channels(team_id)
    return ChannelListResponse(channels=[_to_response(c) for c in channels], total=len(channels))


@router.post("", response_model=ChannelResponse, status_code=201)
async def create_channel(
    request: ChannelCreateRequest,
    components: AlertingComponents = Depends(get_components),
) -> ChannelResponse:
    """Create a channel. Invalid configurations are rejected with 422."""
    try:
        channel = await components.registry.create_channel(
            team_id=request.team_id,
            name=request.name,
            channel_type=request.channel_type,
            configuration=request.configuration,
            created_by=request.created_by,
            description=request.description,
            enabled=request.enabled,
            max_notifications_per_hour=request.max_notifications_per_hour,
            max_notifications_per_day=request.max_notifications_per_day,
        )
    except ChannelValidationError as e:
        raise _validation_error(e) from e
    return _to_response(channel)


@router.post("/validate", response_model=ValidationResponse)
async def validate_channel(request: ChannelValidateRequest) -> ValidationResponse:
    """Validate a configuration without saving it."""
    result = validate_channel_configuration(request.channel_type, request.configuration)
    return ValidationResponse(
        is_valid=result.is_valid, errors=result.errors, warnings=result.warnings
    )


@router.get("/{channel_id}", response_model=ChannelResponse)
async def get_channel(
    channel_id: str,
    components: AlertingComponents = Depends(get_components),
) -> ChannelResponse:
    channel = await components.registry.get_channel(channel_id)
    if channel is None:
        raise _not_found(channel_id)
    return _to_response(channel)


@router.patch("/{channel_id}", response_model=ChannelResponse)
async def update_channel(
    channel_id: str,
    request: ChannelUpdateRequest,
    components: AlertingComponents = Depends(get_components),
) -> ChannelResponse:
    """Apply a partial update; type/configuration changes are validated first."""
    updates = request.model_dump(exclude_unset=True)
    try:
        channel = await components.registry.update_channel(channel_id, updates)
    except ChannelNotFoundError as e:
        raise _not_found(channel_id) from e
    except ChannelValidationError as e:
        raise _validation_error(e) from e
    return _to_response(channel)


@router.delete("/{channel_id}", status_code=204)
async def delete_channel(
    channel_id: str,
    components: AlertingComponents = Depends(get_components),
) -> None:
    if not await components.registry.delete_channel(channel_id):
        raise _not_found(channel_id)


@router.post("/{channel_id}/test", response_model=ChannelTestResponse)
async def test_channel(
    channel_id: str,
    components: AlertingComponents = Depends(get_components),
) -> ChannelTestResponse:
    """Send a test message over a stored channel."""
    if await components.registry.get_channel(channel_id) is None:
        raise _not_found(channel_id)
    result = await components.registry.test_channel(channel_id)
    return _test_response(result)


@router.post("/{channel_id}/toggle", response_model=ChannelResponse)
async def toggle_channel(
    channel_id: str,
    request: ChannelToggleRequest,
    components: AlertingComponents = Depends(get_components),
) -> ChannelResponse:
    try:
        channel = await components.registry.toggle_channel(channel_id, request.enabled)
    except ChannelNotFoundError as e:
        raise _not_found(channel_id) from e
    return _to_response(channel)


@router.post("/{channel_id}/duplicate", response_model=ChannelResponse, status_code=201)
async def duplicate_channel(
    channel_id: str,
    request: ChannelDuplicateRequest,
    components: AlertingComponents = Depends(get_components),
) -> ChannelResponse:
    """Copy a channel under a new name. The copy starts disabled."""
    try:
        channel = await components.registry.duplicate_channel(channel_id, request.name)
    except ChannelNotFoundError as e:
        raise _not_found(channel_id) from e
    except ChannelValidationError as e:
        raise _validation_error(e) from e
    return _to_response(channel)


@router.get("/{channel_id}/stats", response_model=ChannelUsageStatsResponse)
async def get_channel_stats(
    channel_id: str,
    days: int = Query(default=30, ge=1, le=365),
    components: AlertingComponents = Depends(get_components),
) -> ChannelUsageStatsResponse:
    """Get delivery statistics for a channel over the last ``days`` days."""
    if await components.registry.get_channel(channel_id) is None:
        raise _not_found(channel_id)
    stats = await components.registry.get_channel_usage_stats(channel_id, days)
    return ChannelUsageStatsResponse(
        total_notifications=stats.total_notifications,
        successful_deliveries=stats.successful_deliveries,
        failed_deliveries=stats.failed_deliveries,
        success_rate=stats.success_rate,
        average_delivery_time_ms=stats.average_delivery_time_ms,
        daily_stats=[
            DailyStatsResponse(
                date=day.date, total=day.total, successful=day.successful, failed=day.failed
            )
            for day in stats.daily_stats
        ],
    )
