from src.models.analytics import AnalyticsReport, DailyTrend
from src.models.complaint import (
    SYSTEM_ACTOR,
    ActivityEntry,
    Actor,
    Attachment,
    Comment,
    Complaint,
    ComplaintCreateRequest,
    Page,
    PublicComplaint,
    PublicPage,
    UploadReference,
)
from src.models.enums import (
    ActivityKind,
    ActorRole,
    AuthorType,
    ComplaintStatus,
    Priority,
    Sentiment,
)

__all__ = [
    "SYSTEM_ACTOR",
    "ActivityEntry",
    "ActivityKind",
    "Actor",
    "ActorRole",
    "AnalyticsReport",
    "Attachment",
    "AuthorType",
    "Comment",
    "Complaint",
    "ComplaintCreateRequest",
    "ComplaintStatus",
    "DailyTrend",
    "Page",
    "Priority",
    "PublicComplaint",
    "PublicPage",
    "Sentiment",
    "UploadReference",
]
