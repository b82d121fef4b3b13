"""Tests for the Pydantic data models and enums."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from src.models.complaint import SYSTEM_ACTOR, Actor, Comment, Complaint, UploadReference
from src.models.enums import AuthorType, ComplaintStatus, Priority


def _complaint(**overrides: object) -> Complaint:
    fields: dict[str, object] = {
        "tracking_id": "GRS-1",
        "name": "Meena",
        "email": "meena@example.com",
        "department": "Public Works",
        "category": "infrastructure",
        "description": "Pothole",
    }
    fields.update(overrides)
    return Complaint(**fields)


class TestPriority:
    def test_bumped(self) -> None:
        assert Priority.LOW.bumped() == Priority.MEDIUM
        assert Priority.MEDIUM.bumped() == Priority.HIGH
        assert Priority.HIGH.bumped() == Priority.CRITICAL
        assert Priority.CRITICAL.bumped() == Priority.CRITICAL

    def test_string_values(self) -> None:
        assert ComplaintStatus.IN_PROGRESS == "in_progress"
        assert str(Priority.CRITICAL) == "critical"


class TestActor:
    @pytest.mark.parametrize(
        ("role", "staff", "handles", "author_type"),
        [
            ("citizen", False, False, AuthorType.USER),
            ("user", False, False, AuthorType.USER),
            ("department", True, True, AuthorType.DEPARTMENT),
            ("department_admin", True, True, AuthorType.DEPARTMENT),
            ("admin", True, False, AuthorType.ADMIN),
            ("super_admin", True, False, AuthorType.ADMIN),
        ],
    )
    def test_role_properties(self, role: str, staff: bool, handles: bool, author_type: AuthorType) -> None:
        actor = Actor(id="u1", role=role)
        assert actor.is_staff is staff
        assert actor.handles_departments is handles
        assert actor.author_type == author_type

    def test_display_name_falls_back_to_id(self) -> None:
        assert Actor(id="u1").display_name == "u1"
        assert Actor(id="u1", name="Asha").display_name == "Asha"

    def test_system_actor(self) -> None:
        assert SYSTEM_ACTOR.author_type == AuthorType.SYSTEM
        assert not SYSTEM_ACTOR.is_staff

    def test_requires_id(self) -> None:
        with pytest.raises(ValidationError):
            Actor(id="")


class TestComplaint:
    def test_defaults(self) -> None:
        c = _complaint()
        assert c.status == ComplaintStatus.PENDING
        assert c.priority == Priority.MEDIUM
        assert c.escalation_level == 0
        assert c.view_count == 0
        assert c.version == 0
        assert c.response_time is None
        assert c.resolved_at is None
        assert len(c.complaint_id) == 32

    def test_unique_ids(self) -> None:
        assert _complaint().complaint_id != _complaint().complaint_id

    @pytest.mark.parametrize("field", ["urgency", "complexity"])
    def test_scores_bounded(self, field: str) -> None:
        with pytest.raises(ValidationError):
            _complaint(**{field: 11})

    def test_satisfaction_bounded(self) -> None:
        with pytest.raises(ValidationError):
            _complaint(satisfaction=6)

    def test_for_complainant_is_redacted(self) -> None:
        public = Comment(text="On it", author="Ravi", author_type=AuthorType.DEPARTMENT)
        internal = Comment(text="Low budget", author="Ravi", author_type=AuthorType.DEPARTMENT, is_internal=True)
        c = _complaint(comments=[public, internal])

        view = c.for_complainant()
        assert view.comments == [public]
        assert view.tracking_id == "GRS-1"
        assert "email" not in view.model_dump()
        assert "name" not in view.model_dump()
        assert len(c.comments) == 2, "original is untouched"

    def test_json_round_trip_keeps_status(self) -> None:
        c = _complaint(status=ComplaintStatus.ESCALATED, escalation_level=2)
        restored = Complaint.model_validate_json(c.model_dump_json())
        assert restored.status == ComplaintStatus.ESCALATED
        assert restored.escalation_level == 2


class TestUploadReference:
    def test_is_image(self) -> None:
        assert UploadReference(url="u", file_type="image/png").is_image
        assert not UploadReference(url="u", file_type="application/pdf").is_image

    def test_negative_size_rejected(self) -> None:
        with pytest.raises(ValidationError):
            UploadReference(url="u", file_size=-1)
