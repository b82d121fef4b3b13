"""Complaint storage interface and the in-process implementation.

The engine reaches persistence only through :class:`ComplaintStore`.
Two guarantees matter to callers:

* ``insert_complaint`` rejects a duplicate tracking ID with
  :class:`TrackingIdCollision` (the unique constraint is authoritative).
* ``update_status`` applies a change only while the persisted status
  (and, when given, the version) still equals what the caller observed,
  else raises :class:`ConflictError`.  Every applied update bumps the
  complaint's ``version``.

Activity entries passed alongside a mutation are appended in the same
critical section as the mutation they describe.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable
from datetime import UTC, datetime
from typing import Any, Literal, Protocol, TypeVar, runtime_checkable

import structlog

from src.models.complaint import ActivityEntry, Attachment, Comment, Complaint
from src.models.enums import ComplaintStatus
from src.services.errors import (
    ConflictError,
    DependencyError,
    NotFoundError,
    ShikayatError,
    TrackingIdCollision,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

MediaField = Literal["images", "documents"]


# ---------------------------------------------------------------------------
# Store protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class ComplaintStore(Protocol):
    """Async persistence interface for complaints and their activity."""

    async def insert_complaint(self, complaint: Complaint, activity: list[ActivityEntry]) -> Complaint: ...

    async def get_by_id(self, complaint_id: str) -> Complaint: ...

    async def get_by_tracking_id(self, tracking_id: str) -> Complaint: ...

    async def update_status(
        self,
        complaint_id: str,
        expected_status: ComplaintStatus,
        changes: dict[str, Any],
        activity: list[ActivityEntry],
        *,
        expected_version: int | None = None,
    ) -> Complaint: ...

    async def append_attachment(
        self,
        complaint_id: str,
        attachment: Attachment,
        media_field: MediaField,
        activity: list[ActivityEntry],
    ) -> Complaint: ...

    async def append_comment(
        self,
        complaint_id: str,
        comment: Comment,
        activity: list[ActivityEntry],
    ) -> Complaint: ...

    async def append_activity(self, complaint_id: str, entry: ActivityEntry) -> None: ...

    async def list_activity(self, complaint_id: str) -> list[ActivityEntry]: ...

    async def list_by_filter(
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
    ) -> tuple[list[Complaint], int]: ...

    async def list_filed_between(self, start: datetime, end: datetime) -> list[Complaint]: ...

    async def increment_view_count(self, tracking_id: str) -> int: ...


# ---------------------------------------------------------------------------
# Timeout boundary
# ---------------------------------------------------------------------------


async def bounded(awaitable: Awaitable[T], timeout: float, *, operation: str) -> T:
    """Await a storage call with a deadline.

    Engine errors pass through untouched; timeouts and any other failure
    become :class:`DependencyError`.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except ShikayatError:
        raise
    except TimeoutError as exc:
        logger.error("storage.timeout", operation=operation, timeout=timeout)
        raise DependencyError(f"Storage operation '{operation}' timed out after {timeout}s") from exc
    except Exception as exc:
        logger.error("storage.failed", operation=operation, exc_info=True)
        raise DependencyError(f"Storage operation '{operation}' failed") from exc


def _tracking_key(tracking_id: str) -> str:
    return tracking_id.strip().upper()


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0


def _matches(complaint: Complaint, needle: str) -> bool:
    """Case-insensitive substring search over the complaint's text fields."""
    haystack = (complaint.tracking_id, complaint.title, complaint.description, complaint.name)
    return any(needle in field.lower() for field in haystack)


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class InMemoryComplaintStore:
    """Dictionary-backed :class:`ComplaintStore`.

    A single :class:`asyncio.Lock` serialises every write, which is
    sufficient for single-process async deployments.  Complaints are
    returned as deep copies so callers can never mutate stored state.
    """

    __slots__ = ("_activity", "_by_tracking", "_complaints", "_lock")

    def __init__(self) -> None:
        self._complaints: dict[str, Complaint] = {}
        self._by_tracking: dict[str, str] = {}
        self._activity: dict[str, list[ActivityEntry]] = {}
        self._lock = asyncio.Lock()

    # -- internal helpers -----------------------------------------------------

    def _require(self, complaint_id: str) -> Complaint:
        complaint = self._complaints.get(complaint_id)
        if complaint is None:
            raise NotFoundError(f"Complaint '{complaint_id}' not found")
        return complaint

    def _store(self, complaint: Complaint, activity: list[ActivityEntry]) -> Complaint:
        self._complaints[complaint.complaint_id] = complaint
        self._activity.setdefault(complaint.complaint_id, []).extend(activity)
        return complaint.model_copy(deep=True)

    # -- writes ---------------------------------------------------------------

    async def insert_complaint(self, complaint: Complaint, activity: list[ActivityEntry]) -> Complaint:
        async with self._lock:
            if _tracking_key(complaint.tracking_id) in self._by_tracking:
                raise TrackingIdCollision(f"Tracking ID '{complaint.tracking_id}' already exists")
            if complaint.complaint_id in self._complaints:
                raise ConflictError(f"Complaint '{complaint.complaint_id}' already exists")
            self._by_tracking[_tracking_key(complaint.tracking_id)] = complaint.complaint_id
            return self._store(complaint.model_copy(deep=True), activity)

    async def update_status(
        self,
        complaint_id: str,
        expected_status: ComplaintStatus,
        changes: dict[str, Any],
        activity: list[ActivityEntry],
        *,
        expected_version: int | None = None,
    ) -> Complaint:
        async with self._lock:
            current = self._require(complaint_id)
            if current.status != expected_status:
                raise ConflictError(
                    f"Complaint '{complaint_id}' is now '{current.status}', "
                    f"expected '{expected_status}'. Reload and retry."
                )
            if expected_version is not None and current.version != expected_version:
                raise ConflictError(
                    f"Complaint '{complaint_id}' was changed by someone else "
                    f"(version {current.version}, expected {expected_version}). Reload and retry."
                )
            updated = current.model_copy(update={**changes, "version": current.version + 1}, deep=True)
            return self._store(updated, activity)

    async def append_attachment(
        self,
        complaint_id: str,
        attachment: Attachment,
        media_field: MediaField,
        activity: list[ActivityEntry],
    ) -> Complaint:
        async with self._lock:
            current = self._require(complaint_id)
            updated = current.model_copy(
                update={
                    "attachments": [*current.attachments, attachment],
                    media_field: [*getattr(current, media_field), attachment.url],
                    "updated_at": attachment.uploaded_at,
                },
                deep=True,
            )
            return self._store(updated, activity)

    async def append_comment(
        self,
        complaint_id: str,
        comment: Comment,
        activity: list[ActivityEntry],
    ) -> Complaint:
        async with self._lock:
            current = self._require(complaint_id)
            updated = current.model_copy(
                update={"comments": [*current.comments, comment], "updated_at": comment.created_at},
                deep=True,
            )
            return self._store(updated, activity)

    async def append_activity(self, complaint_id: str, entry: ActivityEntry) -> None:
        async with self._lock:
            self._require(complaint_id)
            self._activity[complaint_id].append(entry)

    async def increment_view_count(self, tracking_id: str) -> int:
        async with self._lock:
            complaint_id = self._by_tracking.get(_tracking_key(tracking_id))
            if complaint_id is None:
                raise NotFoundError(f"No complaint with tracking ID '{tracking_id}'")
            current = self._complaints[complaint_id]
            self._complaints[complaint_id] = current.model_copy(update={"view_count": current.view_count + 1})
            return current.view_count + 1

    # -- reads ----------------------------------------------------------------

    async def get_by_id(self, complaint_id: str) -> Complaint:
        return self._require(complaint_id).model_copy(deep=True)

    async def get_by_tracking_id(self, tracking_id: str) -> Complaint:
        complaint_id = self._by_tracking.get(_tracking_key(tracking_id))
        if complaint_id is None:
            raise NotFoundError(f"No complaint with tracking ID '{tracking_id}'")
        return self._complaints[complaint_id].model_copy(deep=True)

    async def list_activity(self, complaint_id: str) -> list[ActivityEntry]:
        self._require(complaint_id)
        return list(self._activity.get(complaint_id, []))

    async def list_by_filter(
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
    ) -> tuple[list[Complaint], int]:
        needle = search.strip().lower() if search else None
        rows = [
            c
            for c in self._complaints.values()
            if (status is None or c.status == status)
            and (department is None or c.department.lower() == department.lower())
            and (category is None or c.category.lower() == category.lower())
            and (priority is None or c.priority == priority)
            and (email is None or c.email.lower() == email.strip().lower())
            and (needle is None or _matches(c, needle))
        ]
        rows.sort(key=lambda c: c.date_filed, reverse=True)
        offset = (max(page, 1) - 1) * limit
        return [c.model_copy(deep=True) for c in rows[offset : offset + limit]], len(rows)

    async def list_filed_between(self, start: datetime, end: datetime) -> list[Complaint]:
        return [
            c.model_copy(deep=True)
            for c in self._complaints.values()
            if start <= c.date_filed.astimezone(UTC) <= end
        ]
