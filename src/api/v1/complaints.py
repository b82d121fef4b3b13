"""Complaint filing, tracking and administration endpoints.

Public (no actor headers):
    * ``POST /complaints`` -- file a complaint
    * ``GET /complaints/categories/suggest`` -- category type-ahead
    * ``GET /complaints/track/{tracking_id}`` -- complainant view
    * ``POST /complaints/track/{tracking_id}/satisfaction`` -- rate a resolution

Public responses carry :class:`PublicComplaint`, never the complainant's
contact details or the assignee.

Everything else requires an actor forwarded by the identity gateway;
listing, triage, status changes and assignment require a staff role.
Engine errors propagate to the application-level handler in
``src.main``.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from src.middleware.auth import get_actor, require_staff
from src.models.complaint import (
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
from src.services.classifier import Classification, TextClassifier
from src.services.directory import UserDirectory
from src.services.errors import NotFoundError
from src.services.intake import IntakePipeline
from src.services.ledger import ActivityLedger
from src.services.lifecycle import ComplaintLifecycle

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/complaints", tags=["complaints"])


# ---------------------------------------------------------------------------
# Request / response schemas
# ---------------------------------------------------------------------------


class FilingResponse(BaseModel):
    tracking_id: str
    message: str
    complaint: PublicComplaint
    classification: Classification


class TrackingResponse(BaseModel):
    complaint: PublicComplaint
    activity: list[ActivityEntry]


class StatusChangeRequest(BaseModel):
    status: str = Field(..., min_length=1, description="pending, in_progress, resolved or escalated")
    reason: str | None = Field(default=None, max_length=1000, description="Required when escalating")
    note: str | None = Field(default=None, max_length=1000)


class AssignRequest(BaseModel):
    assignee_id: str | None = Field(default=None, description="User to assign; null to unassign")


class CommentRequest(BaseModel):
    text: str
    is_internal: bool = False


class TriageRequest(BaseModel):
    priority: str | None = None
    category: str | None = None
    department: str | None = None
    tags: list[str] | None = None


class SatisfactionRequest(BaseModel):
    score: int = Field(..., description="1 (poor) to 5 (excellent)")


class CategorySuggestions(BaseModel):
    query: str
    suggestions: list[str]


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _intake(request: Request) -> IntakePipeline:
    return request.app.state.intake


def _lifecycle(request: Request) -> ComplaintLifecycle:
    return request.app.state.lifecycle


def _ledger(request: Request) -> ActivityLedger:
    return request.app.state.ledger


def _directory(request: Request) -> UserDirectory:
    return request.app.state.directory


def _classifier(request: Request) -> TextClassifier:
    return request.app.state.classifier


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("", response_model=FilingResponse, status_code=201)
async def file_complaint(
    body: ComplaintCreateRequest,
    intake: IntakePipeline = Depends(_intake),
) -> FilingResponse:
    """File a new complaint.

    Department and category may be left blank; the classifier fills them
    in from the description when it can.
    """
    result = await intake.file_complaint(body)
    return FilingResponse(
        tracking_id=result.tracking_id,
        message=f"Complaint registered. Keep your tracking ID {result.tracking_id} to follow its progress.",
        complaint=result.complaint.for_complainant(),
        classification=result.classification,
    )


@router.get("/categories/suggest", response_model=CategorySuggestions)
async def suggest_categories(
    q: str = Query(default="", max_length=200),
    limit: int = Query(default=5, ge=1, le=20),
    classifier: TextClassifier = Depends(_classifier),
) -> CategorySuggestions:
    """Category hints while the complainant is still typing."""
    return CategorySuggestions(query=q, suggestions=classifier.suggest_categories(q, limit))


@router.get("/track/{tracking_id}", response_model=TrackingResponse)
async def track_complaint(
    tracking_id: str,
    lifecycle: ComplaintLifecycle = Depends(_lifecycle),
    ledger: ActivityLedger = Depends(_ledger),
) -> TrackingResponse:
    complaint = await lifecycle.track(tracking_id)
    activity = await ledger.list(complaint.complaint_id, include_internal=False)
    return TrackingResponse(complaint=complaint, activity=activity)


@router.post("/track/{tracking_id}/satisfaction", response_model=PublicComplaint)
async def rate_resolution(
    tracking_id: str,
    body: SatisfactionRequest,
    lifecycle: ComplaintLifecycle = Depends(_lifecycle),
) -> PublicComplaint:
    complaint = await lifecycle.record_satisfaction(tracking_id, body.score)
    return complaint.for_complainant()


# ---------------------------------------------------------------------------
# Complainant endpoints
# ---------------------------------------------------------------------------


@router.get("/mine", response_model=PublicPage)
async def list_my_complaints(
    email: str = Query(..., description="Email the complaints were filed with"),
    status: str | None = Query(default=None),
    category: str | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    page: int = Query(default=1),
    limit: int = Query(default=10),
    actor: Actor = Depends(get_actor),
    lifecycle: ComplaintLifecycle = Depends(_lifecycle),
) -> PublicPage:
    """Complaints filed under *email*, newest first."""
    return await lifecycle.list_for_complainant(
        email,
        status=status,
        category=category,
        search=search,
        page=page,
        limit=limit,
    )


# ---------------------------------------------------------------------------
# Staff endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=Page)
async def list_complaints(
    status: str | None = Query(default=None),
    department: str | None = Query(default=None),
    category: str | None = Query(default=None),
    priority: str | None = Query(default=None),
    email: str | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
    page: int = Query(default=1),
    limit: int = Query(default=10),
    actor: Actor = Depends(require_staff),
    lifecycle: ComplaintLifecycle = Depends(_lifecycle),
) -> Page:
    return await lifecycle.list_complaints(
        status=status,
        department=department,
        category=category,
        priority=priority,
        email=email,
        search=search,
        page=page,
        limit=limit,
    )


@router.get("/{complaint_id}", response_model=Complaint)
async def get_complaint(
    complaint_id: str,
    actor: Actor = Depends(require_staff),
    lifecycle: ComplaintLifecycle = Depends(_lifecycle),
) -> Complaint:
    return await lifecycle.get(complaint_id)


@router.patch("/{complaint_id}/triage", response_model=Complaint)
async def correct_triage(
    complaint_id: str,
    body: TriageRequest,
    actor: Actor = Depends(require_staff),
    lifecycle: ComplaintLifecycle = Depends(_lifecycle),
) -> Complaint:
    return await lifecycle.correct_triage(
        complaint_id,
        actor,
        priority=body.priority,
        category=body.category,
        department=body.department,
        tags=body.tags,
    )


@router.post("/{complaint_id}/status", response_model=Complaint)
async def change_status(
    complaint_id: str,
    body: StatusChangeRequest,
    actor: Actor = Depends(require_staff),
    lifecycle: ComplaintLifecycle = Depends(_lifecycle),
) -> Complaint:
    return await lifecycle.transition(complaint_id, body.status, actor, reason=body.reason, note=body.note)


@router.post("/{complaint_id}/assign", response_model=Complaint)
async def assign_complaint(
    complaint_id: str,
    body: AssignRequest,
    actor: Actor = Depends(require_staff),
    lifecycle: ComplaintLifecycle = Depends(_lifecycle),
    directory: UserDirectory = Depends(_directory),
) -> Complaint:
    assignee: Actor | None = None
    if body.assignee_id:
        assignee = await directory.get_user(body.assignee_id)
        if assignee is None:
            raise NotFoundError(f"User '{body.assignee_id}' not found")
    return await lifecycle.assign(complaint_id, assignee, actor)


# ---------------------------------------------------------------------------
# Endpoints open to any identified actor
# ---------------------------------------------------------------------------


@router.post("/{complaint_id}/comments", response_model=Comment, status_code=201)
async def add_comment(
    complaint_id: str,
    body: CommentRequest,
    actor: Actor = Depends(get_actor),
    lifecycle: ComplaintLifecycle = Depends(_lifecycle),
) -> Comment:
    return await lifecycle.add_comment(complaint_id, body.text, actor, is_internal=body.is_internal)


@router.post("/{complaint_id}/attachments", response_model=Attachment, status_code=201)
async def add_attachment(
    complaint_id: str,
    body: UploadReference,
    actor: Actor = Depends(get_actor),
    lifecycle: ComplaintLifecycle = Depends(_lifecycle),
) -> Attachment:
    return await lifecycle.add_attachment(complaint_id, body, actor)


@router.get("/{complaint_id}/activity", response_model=list[ActivityEntry])
async def list_activity(
    complaint_id: str,
    include_internal: bool = Query(default=False),
    actor: Actor = Depends(get_actor),
    ledger: ActivityLedger = Depends(_ledger),
) -> list[ActivityEntry]:
    """Activity history, oldest first.  Internal notes are visible to staff only."""
    if include_internal and not actor.is_staff:
        logger.info("api.complaints.internal_activity_denied", actor=actor.id, complaint_id=complaint_id)
        include_internal = False
    return await ledger.list(complaint_id, include_internal=include_internal)


@router.get("/{complaint_id}/feed", response_model=list[ActivityEntry])
async def activity_feed(
    complaint_id: str,
    limit: int = Query(default=10, ge=1, le=100),
    actor: Actor = Depends(get_actor),
    ledger: ActivityLedger = Depends(_ledger),
) -> list[ActivityEntry]:
    """Most recent activity, newest first.  Internal notes are visible to staff only."""
    return await ledger.feed(complaint_id, include_internal=actor.is_staff, limit=limit)
