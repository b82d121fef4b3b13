"""Analytics report models."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field


class DailyTrend(BaseModel):
    """Complaints filed on one calendar day (UTC) and how many are resolved."""

    day: date
    filed: int = 0
    resolved: int = 0


class AnalyticsReport(BaseModel):
    """Rollup over the complaints filed inside a reporting window."""

    period_start: datetime
    period_end: datetime
    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_priority: dict[str, int] = Field(default_factory=dict)
    by_department: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, int] = Field(default_factory=dict)
    by_sentiment: dict[str, int] = Field(default_factory=dict)
    daily_trends: list[DailyTrend] = Field(default_factory=list)
    resolution_rate: float = 0.0
    escalated: int = 0
    average_response_time_hours: float | None = None
    average_satisfaction: float | None = None
