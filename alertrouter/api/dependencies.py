"""Shared FastAPI dependencies."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from alertrouter.alerts.setup import AlertingComponents, build_components
from alertrouter.db.database import get_session


async def get_components(db: AsyncSession = Depends(get_session)) -> AlertingComponents:
    """Build alerting components bound to the request's session."""
    return build_components(db)
