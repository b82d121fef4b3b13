"""Complaint analytics endpoint (staff only)."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query, Request

from config.settings import settings
from src.middleware.auth import require_staff
from src.models.analytics import AnalyticsReport
from src.models.complaint import Actor

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("", response_model=AnalyticsReport)
async def get_analytics(
    request: Request,
    period_days: int | None = Query(default=None, description="Reporting window in days"),
    actor: Actor = Depends(require_staff),
) -> AnalyticsReport:
    """Status, priority, department and category breakdowns plus daily filing trends."""
    days = period_days if period_days is not None else settings.analytics_default_period_days
    logger.info("api.analytics.requested", actor=actor.id, period_days=days)
    return await request.app.state.analytics.summarize(period_days=days)
