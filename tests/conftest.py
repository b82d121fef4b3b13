"""Shared fixtures: an empty store, a few actors, and a complaint factory."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from src.models.complaint import SYSTEM_ACTOR, Actor, Complaint
from src.services.ledger import created_entry
from src.services.storage import InMemoryComplaintStore

T0 = datetime(2026, 3, 10, 9, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


async def stored_count(store: InMemoryComplaintStore) -> int:
    _, total = await store.list_by_filter(limit=1)
    return total


@pytest.fixture
def store() -> InMemoryComplaintStore:
    return InMemoryComplaintStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin-1", role="admin", name="Asha Admin")


@pytest.fixture
def officer() -> Actor:
    return Actor(id="pwd-7", role="department", name="Ravi (PWD)")


@pytest.fixture
def citizen() -> Actor:
    return Actor(id="cit-3", role="citizen", name="Meena")


@pytest.fixture
def make_complaint(store: InMemoryComplaintStore) -> Callable[..., Awaitable[Complaint]]:
    """Insert a complaint directly into the store, bypassing intake."""

    async def _make(**overrides: object) -> Complaint:
        fields: dict[str, object] = {
            "tracking_id": f"GRS-TEST-{uuid4().hex[:8].upper()}",
            "name": "Meena Kumari",
            "email": "meena@example.com",
            "department": "Public Works",
            "category": "infrastructure",
            "description": "Large pothole on the main road near the bus stand",
            "date_filed": T0,
            "updated_at": T0,
        }
        fields.update(overrides)
        complaint = Complaint(**fields)
        return await store.insert_complaint(complaint, [created_entry(complaint, SYSTEM_ACTOR)])

    return _make
