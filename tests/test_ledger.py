"""Tests for the activity ledger.

Covers append-only ordering across entry kinds, the internal-comment
filter, the newest-first feed, and the entry factories.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.models.complaint import SYSTEM_ACTOR, ActivityEntry, Actor, UploadReference
from src.models.enums import ActivityKind, AuthorType, ComplaintStatus
from src.services.errors import NotFoundError
from src.services.ledger import (
    ActivityLedger,
    assignment_entry,
    created_entry,
    status_change_entry,
    status_label,
    triage_entry,
)
from src.services.lifecycle import ComplaintLifecycle
from src.services.storage import InMemoryComplaintStore


@pytest.fixture
def ledger(store: InMemoryComplaintStore) -> ActivityLedger:
    return ActivityLedger(store)


@pytest.fixture
def lifecycle(store: InMemoryComplaintStore, clock) -> ComplaintLifecycle:
    return ComplaintLifecycle(store, clock=clock)


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


class TestOrdering:
    async def test_entries_in_insertion_order(
        self,
        make_complaint,
        lifecycle: ComplaintLifecycle,
        ledger: ActivityLedger,
        admin: Actor,
        clock,
    ) -> None:
        c = await make_complaint()
        clock.advance(minutes=5)
        await lifecycle.transition(c.complaint_id, ComplaintStatus.IN_PROGRESS, admin)
        clock.advance(minutes=5)
        await lifecycle.add_comment(c.complaint_id, "Crew dispatched", admin)
        clock.advance(minutes=5)
        await lifecycle.add_attachment(
            c.complaint_id,
            UploadReference(url="https://media.example/p1.jpg", file_type="image/jpeg"),
            admin,
        )

        kinds = [e.kind for e in await ledger.list(c.complaint_id)]
        assert kinds == [
            ActivityKind.STATUS_CHANGE,  # filed
            ActivityKind.STATUS_CHANGE,
            ActivityKind.COMMENT,
            ActivityKind.ATTACHMENT,
        ]

    async def test_feed_is_newest_first(
        self,
        make_complaint,
        lifecycle: ComplaintLifecycle,
        ledger: ActivityLedger,
        admin: Actor,
    ) -> None:
        c = await make_complaint()
        for text in ("one", "two", "three"):
            await lifecycle.add_comment(c.complaint_id, text, admin)

        feed = await ledger.feed(c.complaint_id, limit=2)
        assert [e.description for e in feed] == ["three", "two"]

    async def test_append_is_stamped_with_target_complaint(
        self,
        make_complaint,
        ledger: ActivityLedger,
    ) -> None:
        a = await make_complaint()
        b = await make_complaint()
        entry = created_entry(b, SYSTEM_ACTOR)
        await ledger.append(a.complaint_id, entry)

        entries = await ledger.list(a.complaint_id)
        assert entries[-1].complaint_id == a.complaint_id
        assert len(await ledger.list(b.complaint_id)) == 1

    async def test_unknown_complaint(self, ledger: ActivityLedger) -> None:
        with pytest.raises(NotFoundError):
            await ledger.list("missing")


# ---------------------------------------------------------------------------
# Internal comments
# ---------------------------------------------------------------------------


class TestInternalFilter:
    async def test_internal_comments_hidden_by_default(
        self,
        make_complaint,
        lifecycle: ComplaintLifecycle,
        ledger: ActivityLedger,
        officer: Actor,
    ) -> None:
        c = await make_complaint()
        await lifecycle.add_comment(c.complaint_id, "Visible update", officer)
        await lifecycle.add_comment(c.complaint_id, "Contractor unreliable", officer, is_internal=True)

        public = await ledger.list(c.complaint_id)
        full = await ledger.list(c.complaint_id, include_internal=True)

        assert "Contractor unreliable" not in [e.description for e in public]
        assert len(full) == len(public) + 1
        assert full[-1].is_internal


# ---------------------------------------------------------------------------
# Entry factories
# ---------------------------------------------------------------------------


class TestFactories:
    async def test_resolution_kind(self, make_complaint, admin: Actor) -> None:
        c = await make_complaint(status=ComplaintStatus.IN_PROGRESS)
        entry = status_change_entry(c, ComplaintStatus.RESOLVED, admin, note="Patched")
        assert entry.kind == ActivityKind.RESOLUTION
        assert entry.old_value == "in_progress"
        assert entry.new_value == "resolved"
        assert entry.actor_type == AuthorType.ADMIN
        assert entry.description == "Patched"

    async def test_status_change_title(self, make_complaint, admin: Actor) -> None:
        c = await make_complaint()
        entry = status_change_entry(c, ComplaintStatus.IN_PROGRESS, admin)
        assert entry.title == "Status changed from Pending to In Progress"

    async def test_assignment_entry(self, make_complaint, admin: Actor, officer: Actor) -> None:
        c = await make_complaint()
        assert assignment_entry(c, officer, admin).new_value == officer.id
        assert assignment_entry(c, None, admin).title == "Complaint unassigned"

    async def test_triage_entry_records_old_and_new(self, make_complaint, admin: Actor) -> None:
        c = await make_complaint()
        entry = triage_entry(c, {"priority": "high", "updated_at": None}, admin)
        assert entry.kind == ActivityKind.TRIAGE_UPDATE
        assert entry.metadata == {"old": {"priority": "medium"}, "new": {"priority": "high"}}

    def test_entries_are_immutable(self) -> None:
        entry = ActivityEntry(
            complaint_id="c1",
            kind=ActivityKind.COMMENT,
            title="x",
            actor="a",
            actor_type=AuthorType.USER,
        )
        with pytest.raises(ValidationError):
            entry.title = "y"  # type: ignore[misc]

    def test_status_label(self) -> None:
        assert status_label("in_progress") == "In Progress"
        assert status_label("on_hold") == "On Hold"
