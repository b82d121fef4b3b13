"""Complaint lifecycle: status transitions, assignment, and commentary.

Legal status moves::

    pending ──> in_progress ──> resolved
       │            │  ▲
       └──> escalated ─┘        (escalated may re-escalate)

* ``resolved`` is terminal.  Resolving a resolved complaint is a no-op.
* Nothing moves back into ``pending``.
* Escalation needs a reason, bumps ``escalation_level`` and raises the
  priority one tier.
* Leaving ``pending`` for ``in_progress`` records the first-response
  latency.

Every write is conditioned on the status and version observed when the
change was computed (see :meth:`ComplaintStore.update_status`), so two
staff members acting on the same complaint cannot silently overwrite each
other, even when both leave the status unchanged; the loser gets a
:class:`ConflictError`.  The ledger entry describing a
change is written in the same store call.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from functools import partial
from typing import Any, Final

import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.models.complaint import (
    Actor,
    Attachment,
    Comment,
    Complaint,
    Page,
    PublicComplaint,
    PublicPage,
    UploadReference,
)
from src.models.enums import AuthorType, ComplaintStatus, Priority
from src.services.errors import DependencyError, ValidationError
from src.services.ledger import (
    assignment_entry,
    attachment_entry,
    comment_entry,
    status_change_entry,
    status_label,
    triage_entry,
)
from src.services.notifications import ComplaintNotification, Notifier, dispatch_best_effort
from src.services.storage import ComplaintStore, bounded, page_count

logger = structlog.get_logger(__name__)

_TRANSITIONS: Final[dict[ComplaintStatus, frozenset[ComplaintStatus]]] = {
    ComplaintStatus.PENDING: frozenset({ComplaintStatus.IN_PROGRESS, ComplaintStatus.ESCALATED}),
    ComplaintStatus.IN_PROGRESS: frozenset({ComplaintStatus.RESOLVED, ComplaintStatus.ESCALATED}),
    ComplaintStatus.ESCALATED: frozenset({ComplaintStatus.IN_PROGRESS, ComplaintStatus.ESCALATED}),
    ComplaintStatus.RESOLVED: frozenset(),
}

_MAX_PAGE_SIZE: Final[int] = 100
_MAX_COMMENT_LENGTH: Final[int] = 5000

_read_retry = retry(
    retry=retry_if_exception_type(DependencyError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.1, max=1),
    reraise=True,
)


def allowed_transitions(status: ComplaintStatus) -> frozenset[ComplaintStatus]:
    return _TRANSITIONS[status]


def _parse_status(value: str) -> ComplaintStatus:
    try:
        return ComplaintStatus(str(value).strip().lower().replace(" ", "_"))
    except ValueError:
        raise ValidationError(
            f"Unknown status '{value}'. Valid statuses: {[s.value for s in ComplaintStatus]}",
            fields={"status": "unknown status"},
        ) from None


class ComplaintLifecycle:
    """Applies administrative actions to persisted complaints.

    Parameters
    ----------
    store:
        Complaint persistence.
    notifier:
        Optional complainant notifier; status changes send a best-effort
        update email.
    storage_timeout, notification_timeout:
        Deadlines, in seconds, for each collaborator call.
    clock:
        Returns the current UTC time.  Injectable for tests.
    """

    __slots__ = ("_clock", "_notification_timeout", "_notifier", "_storage_timeout", "_store")

    def __init__(
        self,
        store: ComplaintStore,
        *,
        notifier: Notifier | None = None,
        storage_timeout: float = 5.0,
        notification_timeout: float = 10.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._notifier = notifier
        self._storage_timeout = storage_timeout
        self._notification_timeout = notification_timeout
        self._clock = clock or (lambda: datetime.now(UTC))

    # -- reads ----------------------------------------------------------------

    @_read_retry
    async def get(self, complaint_id: str) -> Complaint:
        return await bounded(self._store.get_by_id(complaint_id), self._storage_timeout, operation="get_by_id")

    @_read_retry
    async def get_by_tracking_id(self, tracking_id: str) -> Complaint:
        return await bounded(
            self._store.get_by_tracking_id(tracking_id),
            self._storage_timeout,
            operation="get_by_tracking_id",
        )

    async def track(self, tracking_id: str) -> PublicComplaint:
        """Complainant-facing read: counts the view and returns the redacted projection."""
        views = await bounded(
            self._store.increment_view_count(tracking_id),
            self._storage_timeout,
            operation="increment_view_count",
        )
        complaint = await self.get_by_tracking_id(tracking_id)
        logger.debug("lifecycle.tracked", tracking_id=complaint.tracking_id, view_count=views)
        return complaint.for_complainant()

    @_read_retry
    async def list_complaints(
        self,
        *,
        status: str | None = None,
        department: str | None = None,
        category: str | None = None,
        priority: str | None = None,
        email: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> Page:
        if page < 1:
            raise ValidationError("page must be >= 1", fields={"page": "must be >= 1"})
        if not 1 <= limit <= _MAX_PAGE_SIZE:
            raise ValidationError(
                f"limit must be between 1 and {_MAX_PAGE_SIZE}",
                fields={"limit": f"must be between 1 and {_MAX_PAGE_SIZE}"},
            )
        status_filter = _parse_status(status) if status else None
        priority_filter: Priority | None = None
        if priority:
            try:
                priority_filter = Priority(priority.strip().lower())
            except ValueError:
                raise ValidationError(f"Unknown priority '{priority}'", fields={"priority": "unknown priority"}) from None

        rows, total = await bounded(
            self._store.list_by_filter(
                status=status_filter,
                department=department or None,
                category=category or None,
                priority=priority_filter,
                email=email or None,
                search=search or None,
                page=page,
                limit=limit,
            ),
            self._storage_timeout,
            operation="list_by_filter",
        )
        return Page(complaints=rows, page=page, limit=limit, total=total, pages=page_count(total, limit))

    async def list_for_complainant(
        self,
        email: str,
        *,
        status: str | None = None,
        category: str | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> PublicPage:
        """One complainant's own complaints, newest first, without staff-only detail."""
        email = (email or "").strip()
        if not email:
            raise ValidationError(
                "An email address is required to list your complaints.",
                fields={"email": "required"},
            )
        result = await self.list_complaints(
            status=status,
            category=category,
            email=email,
            search=search,
            page=page,
            limit=limit,
        )
        return PublicPage.from_page(result)

    # -- status transitions ---------------------------------------------------

    async def transition(
        self,
        complaint_id: str,
        new_status: ComplaintStatus | str,
        actor: Actor,
        *,
        reason: str | None = None,
        note: str | None = None,
    ) -> Complaint:
        """Move a complaint to *new_status*.

        Raises :class:`ValidationError` for illegal moves or an escalation
        without a reason, and :class:`ConflictError` when another writer
        changed the status first.  Nothing is written on failure.
        """
        target = _parse_status(new_status)
        complaint = await self.get(complaint_id)
        log = logger.bind(
            complaint_id=complaint.complaint_id,
            tracking_id=complaint.tracking_id,
            from_status=complaint.status,
            to_status=target,
            actor=actor.id,
        )

        if complaint.status == ComplaintStatus.RESOLVED and target == ComplaintStatus.RESOLVED:
            log.info("lifecycle.transition.noop")
            return complaint

        if target not in _TRANSITIONS[complaint.status]:
            log.warning("lifecycle.transition.rejected")
            raise ValidationError(
                f"Cannot move a complaint from {status_label(complaint.status)} to {status_label(target)}.",
                fields={"status": f"not allowed from {complaint.status}"},
            )

        now = self._clock()
        changes: dict[str, Any] = {"status": target, "updated_at": now}
        metadata: dict[str, Any] = {}

        if (
            target == ComplaintStatus.IN_PROGRESS
            and complaint.status == ComplaintStatus.PENDING
            and complaint.response_time is None
        ):
            changes["response_time"] = now - complaint.date_filed
            metadata["response_time_hours"] = round(changes["response_time"].total_seconds() / 3600, 2)

        if target == ComplaintStatus.RESOLVED:
            changes["resolved_at"] = now

        if target == ComplaintStatus.ESCALATED:
            reason = (reason or "").strip()
            if not reason:
                log.warning("lifecycle.escalation.missing_reason")
                raise ValidationError(
                    "An escalation reason is required.",
                    fields={"reason": "required when escalating"},
                )
            level = complaint.escalation_level + 1
            changes.update(
                escalation_level=level,
                escalation_reason=reason,
                escalated_at=now,
                priority=complaint.priority.bumped(),
            )
            metadata.update(escalation_level=level, reason=reason)

        entry = status_change_entry(complaint, target, actor, note=note or reason, metadata=metadata, at=now)
        updated = await bounded(
            self._store.update_status(
                complaint.complaint_id,
                complaint.status,
                changes,
                [entry],
                expected_version=complaint.version,
            ),
            self._storage_timeout,
            operation="update_status",
        )
        log.info("lifecycle.transition.applied", escalation_level=updated.escalation_level)

        await self._notify_status(updated, note or reason)
        return updated

    async def resolve(self, complaint_id: str, actor: Actor, *, note: str | None = None) -> Complaint:
        return await self.transition(complaint_id, ComplaintStatus.RESOLVED, actor, note=note)

    async def escalate(self, complaint_id: str, actor: Actor, reason: str) -> Complaint:
        return await self.transition(complaint_id, ComplaintStatus.ESCALATED, actor, reason=reason)

    # -- assignment -----------------------------------------------------------

    async def assign(self, complaint_id: str, assignee: Actor | None, actor: Actor) -> Complaint:
        """Assign the complaint to a department-role user, or unassign with ``None``."""
        if assignee is not None and not assignee.handles_departments:
            logger.warning(
                "lifecycle.assign.rejected",
                complaint_id=complaint_id,
                assignee=assignee.id,
                role=assignee.role,
            )
            raise ValidationError(
                f"User '{assignee.id}' has role '{assignee.role}' and cannot handle complaints.",
                fields={"assigned_to": "assignee must hold a department role"},
            )

        complaint = await self.get(complaint_id)
        new_assignee = assignee.id if assignee is not None else None
        if complaint.assigned_to == new_assignee:
            return complaint

        now = self._clock()
        entry = assignment_entry(complaint, assignee, actor, at=now)
        updated = await bounded(
            self._store.update_status(
                complaint.complaint_id,
                complaint.status,
                {"assigned_to": new_assignee, "updated_at": now},
                [entry],
                expected_version=complaint.version,
            ),
            self._storage_timeout,
            operation="assign",
        )
        logger.info(
            "lifecycle.assigned",
            complaint_id=complaint.complaint_id,
            previous=complaint.assigned_to,
            assignee=new_assignee,
            actor=actor.id,
        )
        return updated

    # -- comments & attachments -----------------------------------------------

    async def add_comment(
        self,
        complaint_id: str,
        text: str,
        actor: Actor,
        *,
        is_internal: bool = False,
    ) -> Comment:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Comment text is required.", fields={"text": "required"})
        if len(text) > _MAX_COMMENT_LENGTH:
            raise ValidationError(
                f"Comment exceeds {_MAX_COMMENT_LENGTH} characters.",
                fields={"text": "too long"},
            )
        if is_internal and actor.author_type == AuthorType.USER:
            raise ValidationError(
                "Only staff can post internal comments.",
                fields={"is_internal": "staff only"},
            )

        comment = Comment(
            text=text,
            author=actor.display_name,
            author_type=actor.author_type,
            created_at=self._clock(),
            is_internal=is_internal,
        )
        await bounded(
            self._store.append_comment(complaint_id, comment, [comment_entry(complaint_id, comment)]),
            self._storage_timeout,
            operation="append_comment",
        )
        logger.info(
            "lifecycle.comment_added",
            complaint_id=complaint_id,
            author_type=comment.author_type,
            is_internal=is_internal,
        )
        return comment

    async def add_attachment(self, complaint_id: str, upload: UploadReference, actor: Actor) -> Attachment:
        """Record an already-uploaded file against the complaint."""
        filename = upload.filename or upload.public_id or upload.url.rstrip("/").rsplit("/", 1)[-1]
        attachment = Attachment(
            filename=filename,
            original_name=upload.original_name or filename,
            url=upload.url,
            public_id=upload.public_id,
            file_type=upload.file_type,
            file_size=upload.file_size,
            uploaded_at=self._clock(),
            uploaded_by=actor.id,
        )
        media_field = "images" if upload.is_image else "documents"
        await bounded(
            self._store.append_attachment(
                complaint_id,
                attachment,
                media_field,
                [attachment_entry(complaint_id, attachment, actor)],
            ),
            self._storage_timeout,
            operation="append_attachment",
        )
        logger.info(
            "lifecycle.attachment_added",
            complaint_id=complaint_id,
            file_type=attachment.file_type,
            file_size=attachment.file_size,
        )
        return attachment

    # -- staff corrections & complainant feedback ----------------------------

    async def correct_triage(
        self,
        complaint_id: str,
        actor: Actor,
        *,
        priority: Priority | str | None = None,
        category: str | None = None,
        department: str | None = None,
        tags: list[str] | None = None,
    ) -> Complaint:
        """Let staff override classifier output or move the complaint to another department."""
        if not actor.is_staff:
            raise ValidationError("Only staff can correct triage.", fields={"actor": "staff only"})

        requested: dict[str, Any] = {}
        if priority is not None:
            try:
                requested["priority"] = Priority(str(priority).strip().lower())
            except ValueError:
                raise ValidationError(f"Unknown priority '{priority}'", fields={"priority": "unknown priority"}) from None
        if category is not None:
            if not category.strip():
                raise ValidationError("Category cannot be blank.", fields={"category": "required"})
            requested["category"] = category.strip()
        if department is not None:
            if not department.strip():
                raise ValidationError("Department cannot be blank.", fields={"department": "required"})
            requested["department"] = department.strip()
        if tags is not None:
            requested["tags"] = list(dict.fromkeys(t.strip() for t in tags if t.strip()))

        complaint = await self.get(complaint_id)
        changes = {k: v for k, v in requested.items() if getattr(complaint, k) != v}
        if not changes:
            return complaint

        now = self._clock()
        entry = triage_entry(complaint, changes, actor, at=now)
        changes["updated_at"] = now
        updated = await bounded(
            self._store.update_status(
                complaint.complaint_id,
                complaint.status,
                changes,
                [entry],
                expected_version=complaint.version,
            ),
            self._storage_timeout,
            operation="correct_triage",
        )
        logger.info(
            "lifecycle.triage_corrected",
            complaint_id=complaint.complaint_id,
            fields=sorted(k for k in changes if k != "updated_at"),
            actor=actor.id,
        )
        return updated

    async def record_satisfaction(self, tracking_id: str, score: int) -> Complaint:
        """Store the complainant's 1-5 rating once the complaint is resolved."""
        if isinstance(score, bool) or not isinstance(score, int) or not 1 <= score <= 5:
            raise ValidationError("Satisfaction must be an integer from 1 to 5.", fields={"score": "1-5"})

        complaint = await self.get_by_tracking_id(tracking_id)
        if not complaint.is_resolved:
            raise ValidationError(
                "Feedback can only be given after the complaint is resolved.",
                fields={"score": "complaint not resolved"},
            )
        if complaint.satisfaction is not None:
            raise ValidationError("Feedback has already been recorded.", fields={"score": "already rated"})

        updated = await bounded(
            self._store.update_status(
                complaint.complaint_id,
                complaint.status,
                {"satisfaction": score, "updated_at": self._clock()},
                [],
                expected_version=complaint.version,
            ),
            self._storage_timeout,
            operation="record_satisfaction",
        )
        logger.info("lifecycle.satisfaction_recorded", tracking_id=complaint.tracking_id, score=score)
        return updated

    # -- helpers --------------------------------------------------------------

    async def _notify_status(self, complaint: Complaint, note: str | None) -> None:
        if self._notifier is None:
            return
        notification = ComplaintNotification.for_complaint(complaint, note=note)
        await dispatch_best_effort(
            partial(self._notifier.send_status_update, notification),
            timeout=self._notification_timeout,
            tracking_id=complaint.tracking_id,
            kind="status_update",
        )
