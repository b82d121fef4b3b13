"""Append-only activity ledger for complaints.

Every state change, comment, attachment, assignment and triage
correction leaves one :class:`ActivityEntry`.  Entries are never edited,
reordered or removed; insertion order is display order.

The entry factories below are used by the lifecycle so that an entry can
be written in the same store call as the mutation it describes.  The
ledger's only access rule is hiding internal comments when
``include_internal`` is false.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import structlog

from src.models.complaint import ActivityEntry, Actor, Attachment, Comment, Complaint
from src.models.enums import ActivityKind, ComplaintStatus
from src.services.storage import ComplaintStore, bounded

logger = structlog.get_logger(__name__)

_STATUS_LABELS: dict[str, str] = {
    ComplaintStatus.PENDING: "Pending",
    ComplaintStatus.IN_PROGRESS: "In Progress",
    ComplaintStatus.RESOLVED: "Resolved",
    ComplaintStatus.ESCALATED: "Escalated",
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def status_label(status: str) -> str:
    return _STATUS_LABELS.get(status, str(status).replace("_", " ").title())


# ---------------------------------------------------------------------------
# Entry factories
# ---------------------------------------------------------------------------


def created_entry(complaint: Complaint, actor: Actor) -> ActivityEntry:
    return ActivityEntry(
        complaint_id=complaint.complaint_id,
        kind=ActivityKind.STATUS_CHANGE,
        title="Complaint filed",
        description=f"Routed to {complaint.department} as {complaint.category}",
        actor=actor.display_name,
        actor_type=actor.author_type,
        created_at=complaint.date_filed,
        new_value=complaint.status,
        metadata={"tracking_id": complaint.tracking_id, "priority": complaint.priority},
    )


def status_change_entry(
    complaint: Complaint,
    new_status: ComplaintStatus,
    actor: Actor,
    *,
    note: str | None = None,
    metadata: dict[str, Any] | None = None,
    at: datetime | None = None,
) -> ActivityEntry:
    kind = ActivityKind.RESOLUTION if new_status == ComplaintStatus.RESOLVED else ActivityKind.STATUS_CHANGE
    title = (
        "Complaint resolved"
        if kind == ActivityKind.RESOLUTION
        else f"Status changed from {status_label(complaint.status)} to {status_label(new_status)}"
    )
    return ActivityEntry(
        complaint_id=complaint.complaint_id,
        kind=kind,
        title=title,
        description=note,
        actor=actor.display_name,
        actor_type=actor.author_type,
        created_at=at or _utcnow(),
        old_value=complaint.status,
        new_value=new_status,
        metadata=metadata or {},
    )


def assignment_entry(
    complaint: Complaint,
    assignee: Actor | None,
    actor: Actor,
    *,
    at: datetime | None = None,
) -> ActivityEntry:
    new_value = assignee.id if assignee is not None else None
    if assignee is None:
        title = "Complaint unassigned"
    else:
        title = f"Assigned to {assignee.display_name}"
    return ActivityEntry(
        complaint_id=complaint.complaint_id,
        kind=ActivityKind.ASSIGNMENT,
        title=title,
        actor=actor.display_name,
        actor_type=actor.author_type,
        created_at=at or _utcnow(),
        old_value=complaint.assigned_to,
        new_value=new_value,
    )


def comment_entry(complaint_id: str, comment: Comment) -> ActivityEntry:
    return ActivityEntry(
        complaint_id=complaint_id,
        kind=ActivityKind.COMMENT,
        title="Internal note added" if comment.is_internal else "Comment added",
        description=comment.text,
        actor=comment.author,
        actor_type=comment.author_type,
        created_at=comment.created_at,
        is_internal=comment.is_internal,
        metadata={"comment_id": comment.comment_id},
    )


def attachment_entry(complaint_id: str, attachment: Attachment, actor: Actor) -> ActivityEntry:
    return ActivityEntry(
        complaint_id=complaint_id,
        kind=ActivityKind.ATTACHMENT,
        title=f"Attached {attachment.original_name or attachment.filename}",
        actor=actor.display_name,
        actor_type=actor.author_type,
        created_at=attachment.uploaded_at,
        new_value=attachment.url,
        metadata={"file_type": attachment.file_type, "file_size": attachment.file_size},
    )


def triage_entry(
    complaint: Complaint,
    changes: dict[str, Any],
    actor: Actor,
    *,
    at: datetime | None = None,
) -> ActivityEntry:
    fields = sorted(k for k in changes if k != "updated_at")
    old = {k: getattr(complaint, k) for k in fields}
    return ActivityEntry(
        complaint_id=complaint.complaint_id,
        kind=ActivityKind.TRIAGE_UPDATE,
        title="Triage corrected: " + ", ".join(fields),
        actor=actor.display_name,
        actor_type=actor.author_type,
        created_at=at or _utcnow(),
        metadata={"old": {k: _plain(v) for k, v in old.items()}, "new": {k: _plain(changes[k]) for k in fields}},
    )


def _plain(value: Any) -> Any:
    if isinstance(value, list):
        return [str(v) for v in value]
    return None if value is None else str(value)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class ActivityLedger:
    """Read/append facade over the store's per-complaint activity log."""

    __slots__ = ("_store", "_timeout")

    def __init__(self, store: ComplaintStore, *, timeout: float = 5.0) -> None:
        self._store = store
        self._timeout = timeout

    async def append(self, complaint_id: str, entry: ActivityEntry) -> None:
        if entry.complaint_id != complaint_id:
            entry = entry.model_copy(update={"complaint_id": complaint_id})
        await bounded(
            self._store.append_activity(complaint_id, entry),
            self._timeout,
            operation="append_activity",
        )
        logger.info("ledger.appended", complaint_id=complaint_id, kind=entry.kind)

    async def list(self, complaint_id: str, *, include_internal: bool = False) -> list[ActivityEntry]:
        entries = await bounded(
            self._store.list_activity(complaint_id),
            self._timeout,
            operation="list_activity",
        )
        if include_internal:
            return entries
        return [e for e in entries if not (e.kind == ActivityKind.COMMENT and e.is_internal)]

    async def feed(
        self,
        complaint_id: str,
        *,
        include_internal: bool = False,
        limit: int = 10,
    ) -> list[ActivityEntry]:
        """Most recent *limit* entries, newest first."""
        entries = await self.list(complaint_id, include_internal=include_internal)
        return list(reversed(entries))[: max(limit, 0)]
