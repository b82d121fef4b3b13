"""Read-only rollups over complaints filed in a reporting window."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import UTC, date, datetime, timedelta

import structlog

from src.models.analytics import AnalyticsReport, DailyTrend
from src.models.complaint import Complaint
from src.models.enums import ComplaintStatus
from src.services.errors import ValidationError
from src.services.storage import ComplaintStore, bounded

logger = structlog.get_logger(__name__)

_MAX_PERIOD_DAYS = 366


def _counts(values: Iterable[str]) -> dict[str, int]:
    return dict(Counter(str(v) for v in values).most_common())


def _daily_trends(complaints: list[Complaint], start: date, end: date) -> list[DailyTrend]:
    days = {start + timedelta(days=i): DailyTrend(day=start + timedelta(days=i)) for i in range((end - start).days + 1)}
    for c in complaints:
        trend = days.get(c.date_filed.astimezone(UTC).date())
        if trend is None:
            continue
        trend.filed += 1
        if c.is_resolved:
            trend.resolved += 1
    return list(days.values())


def _mean(values: list[float], ndigits: int = 2) -> float | None:
    if not values:
        return None
    return round(sum(values) / len(values), ndigits)


class AnalyticsAggregator:
    __slots__ = ("_store", "_timeout")

    def __init__(self, store: ComplaintStore, *, timeout: float = 5.0) -> None:
        self._store = store
        self._timeout = timeout

    async def summarize(self, *, period_days: int = 30, now: datetime | None = None) -> AnalyticsReport:
        """Report on complaints filed in ``[now - period_days, now]``."""
        if not 1 <= period_days <= _MAX_PERIOD_DAYS:
            raise ValidationError(
                f"period_days must be between 1 and {_MAX_PERIOD_DAYS}",
                fields={"period_days": f"must be between 1 and {_MAX_PERIOD_DAYS}"},
            )
        end = (now or datetime.now(UTC)).astimezone(UTC)
        start = end - timedelta(days=period_days)

        complaints = await bounded(
            self._store.list_filed_between(start, end),
            self._timeout,
            operation="list_filed_between",
        )

        total = len(complaints)
        resolved = sum(1 for c in complaints if c.is_resolved)
        response_hours = [c.response_time.total_seconds() / 3600 for c in complaints if c.response_time is not None]
        ratings = [float(c.satisfaction) for c in complaints if c.satisfaction is not None]

        report = AnalyticsReport(
            period_start=start,
            period_end=end,
            total=total,
            by_status=_counts(c.status for c in complaints),
            by_priority=_counts(c.priority for c in complaints),
            by_department=_counts(c.department for c in complaints),
            by_category=_counts(c.category for c in complaints),
            by_sentiment=_counts(c.sentiment for c in complaints),
            daily_trends=_daily_trends(complaints, start.date(), end.date()),
            resolution_rate=round(resolved / total * 100, 2) if total else 0.0,
            escalated=sum(
                1 for c in complaints if c.escalation_level > 0 or c.status == ComplaintStatus.ESCALATED
            ),
            average_response_time_hours=_mean(response_hours),
            average_satisfaction=_mean(ratings),
        )
        logger.info(
            "analytics.summarized",
            period_days=period_days,
            total=total,
            resolution_rate=report.resolution_rate,
        )
        return report
