"""Complaint intake: validate, classify, persist, confirm.

Filing is the only write a member of the public can make, so this
pipeline owns the two hard guarantees at the front door:

1. Every field error is reported at once, before anything is written.
2. Every persisted complaint carries a tracking ID no other complaint
   has ever had.  The store's unique constraint is authoritative; a
   :class:`TrackingIdCollision` regenerates the ID and tries again.

The confirmation email is sent after the insert and can never fail the
filing.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import partial
from typing import Final

import structlog
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.models.complaint import SYSTEM_ACTOR, Complaint, ComplaintCreateRequest
from src.models.enums import ComplaintStatus
from src.services.classifier import Classification, TextClassifier
from src.services.errors import ConflictError, TrackingIdCollision, ValidationError
from src.services.ledger import created_entry
from src.services.notifications import ComplaintNotification, Notifier, dispatch_best_effort
from src.services.storage import ComplaintStore, bounded
from src.services.tracking_id import TrackingIdGenerator

logger = structlog.get_logger(__name__)

_EMAIL_RE: Final[re.Pattern[str]] = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

_MAX_NAME_LENGTH: Final[int] = 100
_MAX_TITLE_LENGTH: Final[int] = 200
_MAX_DESCRIPTION_LENGTH: Final[int] = 5000


@dataclass(frozen=True, slots=True)
class IntakeResult:
    tracking_id: str
    complaint: Complaint
    classification: Classification


def _validate(request: ComplaintCreateRequest, classification: Classification) -> dict[str, str]:
    errors: dict[str, str] = {}

    name = request.name.strip()
    if not name:
        errors["name"] = "required"
    elif len(name) > _MAX_NAME_LENGTH:
        errors["name"] = f"must be at most {_MAX_NAME_LENGTH} characters"

    email = request.email.strip()
    if not email:
        errors["email"] = "required"
    elif not _EMAIL_RE.match(email):
        errors["email"] = "not a valid email address"

    description = request.description.strip()
    if not description:
        errors["description"] = "required"
    elif len(description) > _MAX_DESCRIPTION_LENGTH:
        errors["description"] = f"must be at most {_MAX_DESCRIPTION_LENGTH} characters"

    if len(request.title.strip()) > _MAX_TITLE_LENGTH:
        errors["title"] = f"must be at most {_MAX_TITLE_LENGTH} characters"

    if not (request.department.strip() or classification.suggested_department):
        errors["department"] = "required; could not be inferred from the description"
    if not (request.category.strip() or classification.category):
        errors["category"] = "required; could not be inferred from the description"

    return errors


class IntakePipeline:
    """Files new complaints.

    Parameters
    ----------
    store:
        Complaint persistence.
    classifier:
        Keyword classifier applied to title and description.
    generator:
        Tracking ID source.
    notifier:
        Optional; sends the filing confirmation.
    max_id_attempts:
        Inserts attempted before a tracking-ID collision streak is
        treated as a capacity failure.
    id_retry_backoff:
        Base delay, in seconds, of the exponential backoff between
        collision retries.
    """

    __slots__ = (
        "_classifier",
        "_clock",
        "_generator",
        "_id_retry_backoff",
        "_max_id_attempts",
        "_notification_timeout",
        "_notifier",
        "_storage_timeout",
        "_store",
    )

    def __init__(
        self,
        store: ComplaintStore,
        classifier: TextClassifier,
        generator: TrackingIdGenerator,
        notifier: Notifier | None = None,
        *,
        max_id_attempts: int = 5,
        id_retry_backoff: float = 0.05,
        storage_timeout: float = 5.0,
        notification_timeout: float = 10.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if max_id_attempts < 1:
            raise ValueError("max_id_attempts must be >= 1")
        self._store = store
        self._classifier = classifier
        self._generator = generator
        self._notifier = notifier
        self._max_id_attempts = max_id_attempts
        self._id_retry_backoff = id_retry_backoff
        self._storage_timeout = storage_timeout
        self._notification_timeout = notification_timeout
        self._clock = clock or (lambda: datetime.now(UTC))

    async def file_complaint(self, request: ComplaintCreateRequest) -> IntakeResult:
        classification = self._classifier.classify(request.title, request.description)

        errors = _validate(request, classification)
        if errors:
            logger.info("intake.rejected", fields=sorted(errors))
            raise ValidationError("Complaint failed validation.", fields=errors)

        complaint = await self._insert_with_unique_id(request, classification)
        logger.info(
            "intake.completed",
            tracking_id=complaint.tracking_id,
            complaint_id=complaint.complaint_id,
            department=complaint.department,
            category=complaint.category,
            priority=complaint.priority,
        )

        if self._notifier is not None:
            await dispatch_best_effort(
                partial(
                    self._notifier.send_complaint_confirmation,
                    ComplaintNotification.for_complaint(complaint),
                ),
                timeout=self._notification_timeout,
                tracking_id=complaint.tracking_id,
                kind="confirmation",
            )

        return IntakeResult(tracking_id=complaint.tracking_id, complaint=complaint, classification=classification)

    def _build(self, request: ComplaintCreateRequest, classification: Classification, tracking_id: str) -> Complaint:
        now = self._clock()
        return Complaint(
            tracking_id=tracking_id,
            name=request.name.strip(),
            email=request.email.strip().lower(),
            department=request.department.strip() or classification.suggested_department or "",
            category=request.category.strip() or classification.category or "",
            title=request.title.strip(),
            description=request.description.strip(),
            priority=classification.priority,
            sentiment=classification.sentiment,
            urgency=classification.urgency,
            complexity=classification.complexity,
            keywords=list(classification.keywords),
            tags=list(classification.tags),
            suggested_department=classification.suggested_department,
            classification_confidence=classification.confidence,
            status=ComplaintStatus.PENDING,
            images=[u for u in request.images if u.strip()],
            documents=[u for u in request.documents if u.strip()],
            date_filed=now,
            updated_at=now,
        )

    async def _insert_with_unique_id(
        self,
        request: ComplaintCreateRequest,
        classification: Classification,
    ) -> Complaint:
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(TrackingIdCollision),
                stop=stop_after_attempt(self._max_id_attempts),
                wait=wait_exponential(multiplier=self._id_retry_backoff, max=2),
                reraise=True,
            ):
                with attempt:
                    complaint = self._build(request, classification, self._generator.generate())
                    number = attempt.retry_state.attempt_number
                    if number > 1:
                        logger.warning("intake.tracking_id.retry", attempt=number, tracking_id=complaint.tracking_id)
                    return await bounded(
                        self._store.insert_complaint(complaint, [created_entry(complaint, SYSTEM_ACTOR)]),
                        self._storage_timeout,
                        operation="insert_complaint",
                    )
        except TrackingIdCollision as exc:
            logger.error(
                "intake.tracking_id.exhausted",
                attempts=self._max_id_attempts,
                entropy_bits=self._generator.entropy_bits,
            )
            raise ConflictError(
                "Could not allocate a unique tracking ID. Please try again shortly."
            ) from exc
        raise AssertionError("unreachable")
