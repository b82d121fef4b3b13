"""Complaint, comment, attachment, and activity models.

A :class:`Complaint` is the unit tracked by the engine.  It owns two
append-only lists (comments and attachments) and has a separate
append-only activity history kept by the ledger.  Complaints are never
deleted: a tracking ID must always resolve to some record.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from src.models.enums import (
    ADMIN_ROLES,
    DEPARTMENT_ROLES,
    STAFF_ROLES,
    ActivityKind,
    ActorRole,
    AuthorType,
    ComplaintStatus,
    Priority,
    Sentiment,
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Actors
# ---------------------------------------------------------------------------


class Actor(BaseModel):
    """An already-authenticated caller, as supplied by the identity gateway."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    role: str = ActorRole.CITIZEN
    name: str | None = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def handles_departments(self) -> bool:
        return self.role in DEPARTMENT_ROLES

    @property
    def author_type(self) -> AuthorType:
        if self.role in ADMIN_ROLES:
            return AuthorType.ADMIN
        if self.role in DEPARTMENT_ROLES:
            return AuthorType.DEPARTMENT
        if self.role == ActorRole.SYSTEM:
            return AuthorType.SYSTEM
        return AuthorType.USER

    @property
    def display_name(self) -> str:
        return self.name or self.id


SYSTEM_ACTOR = Actor(id="system", role=ActorRole.SYSTEM, name="System")


# ---------------------------------------------------------------------------
# Owned records
# ---------------------------------------------------------------------------


class UploadReference(BaseModel):
    """Opaque reference returned by the media store for an uploaded file."""

    url: str = Field(..., min_length=1)
    public_id: str = ""
    filename: str = ""
    original_name: str = ""
    file_type: str = "application/octet-stream"
    file_size: int = Field(default=0, ge=0)

    @property
    def is_image(self) -> bool:
        return self.file_type.startswith("image/")


class Attachment(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str
    original_name: str
    url: str
    public_id: str = ""
    file_type: str
    file_size: int = 0
    uploaded_at: datetime = Field(default_factory=_utcnow)
    uploaded_by: str


class Comment(BaseModel):
    model_config = ConfigDict(frozen=True)

    comment_id: str = Field(default_factory=lambda: uuid4().hex)
    text: str
    author: str
    author_type: AuthorType
    created_at: datetime = Field(default_factory=_utcnow)
    is_internal: bool = False


class ActivityEntry(BaseModel):
    """One immutable line of a complaint's audit trail."""

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: uuid4().hex)
    complaint_id: str
    kind: ActivityKind
    title: str
    description: str | None = None
    actor: str
    actor_type: AuthorType
    created_at: datetime = Field(default_factory=_utcnow)
    old_value: str | None = None
    new_value: str | None = None
    is_internal: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Complaint
# ---------------------------------------------------------------------------


class Complaint(BaseModel):
    """A citizen complaint and everything the engine knows about it."""

    complaint_id: str = Field(default_factory=lambda: uuid4().hex)
    tracking_id: str

    # Content
    name: str
    email: str
    department: str
    category: str
    title: str = ""
    description: str

    # Classification
    priority: Priority = Priority.MEDIUM
    sentiment: Sentiment = Sentiment.NEUTRAL
    urgency: int = Field(default=1, ge=1, le=10)
    complexity: int = Field(default=1, ge=1, le=10)
    keywords: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    suggested_department: str | None = None
    classification_confidence: float = 0.0

    # Lifecycle
    status: ComplaintStatus = ComplaintStatus.PENDING
    assigned_to: str | None = None
    escalation_level: int = Field(default=0, ge=0)
    escalation_reason: str | None = None
    escalated_at: datetime | None = None
    version: int = Field(default=0, ge=0)

    # Analytics
    view_count: int = Field(default=0, ge=0)
    response_time: timedelta | None = None
    satisfaction: int | None = Field(default=None, ge=1, le=5)

    # Timestamps
    date_filed: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    resolved_at: datetime | None = None

    # Media and owned records
    images: list[str] = Field(default_factory=list)
    documents: list[str] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    comments: list[Comment] = Field(default_factory=list)

    @property
    def is_resolved(self) -> bool:
        return self.status == ComplaintStatus.RESOLVED

    def for_complainant(self) -> PublicComplaint:
        """Projection for the complainant-facing read path.

        Contact details, the assignee and internal comments are left out.
        """
        data = self.model_dump(include=set(PublicComplaint.model_fields) - {"comments"})
        data["comments"] = [c for c in self.comments if not c.is_internal]
        return PublicComplaint.model_validate(data)


class PublicComplaint(BaseModel):
    """What anyone holding a tracking ID may see."""

    complaint_id: str
    tracking_id: str
    title: str
    description: str
    department: str
    category: str
    priority: Priority
    status: ComplaintStatus
    tags: list[str]
    escalation_level: int
    view_count: int
    satisfaction: int | None
    date_filed: datetime
    updated_at: datetime
    resolved_at: datetime | None
    images: list[str]
    documents: list[str]
    attachments: list[Attachment]
    comments: list[Comment]


# ---------------------------------------------------------------------------
# Requests and pages
# ---------------------------------------------------------------------------


class ComplaintCreateRequest(BaseModel):
    """Raw intake request.

    Fields are permissive here; the intake pipeline validates them and
    reports every field error together.
    """

    name: str = ""
    email: str = ""
    department: str = ""
    category: str = ""
    title: str = ""
    description: str = ""
    images: list[str] = Field(default_factory=list)
    documents: list[str] = Field(default_factory=list)


class Page(BaseModel):
    """One page of complaints plus pagination metadata."""

    complaints: list[Complaint]
    page: int
    limit: int
    total: int
    pages: int


class PublicPage(BaseModel):
    """A page of complainant-facing projections."""

    complaints: list[PublicComplaint]
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def from_page(cls, page: Page) -> PublicPage:
        return cls(
            complaints=[c.for_complainant() for c in page.complaints],
            page=page.page,
            limit=page.limit,
            total=page.total,
            pages=page.pages,
        )
