"""Shikayat service layer -- intake, lifecycle, ledger, analytics, and their collaborators."""

from __future__ import annotations

from src.services.analytics import AnalyticsAggregator
from src.services.classifier import DEFAULT_KEYWORDS, Classification, KeywordConfig, TextClassifier, classify
from src.services.directory import InMemoryUserDirectory, UserDirectory
from src.services.errors import (
    ConflictError,
    DependencyError,
    NotFoundError,
    ShikayatError,
    TrackingIdCollision,
    ValidationError,
)
from src.services.intake import IntakePipeline, IntakeResult
from src.services.ledger import ActivityLedger
from src.services.lifecycle import ComplaintLifecycle
from src.services.notifications import EmailNotifier, Notifier, NullNotifier
from src.services.storage import ComplaintStore, InMemoryComplaintStore
from src.services.tracking_id import TrackingIdGenerator

__all__ = [
    "DEFAULT_KEYWORDS",
    "ActivityLedger",
    "AnalyticsAggregator",
    "Classification",
    "ComplaintLifecycle",
    "ComplaintStore",
    "ConflictError",
    "DependencyError",
    "EmailNotifier",
    "InMemoryComplaintStore",
    "InMemoryUserDirectory",
    "IntakePipeline",
    "IntakeResult",
    "KeywordConfig",
    "NotFoundError",
    "Notifier",
    "NullNotifier",
    "ShikayatError",
    "TextClassifier",
    "TrackingIdCollision",
    "TrackingIdGenerator",
    "UserDirectory",
    "ValidationError",
    "classify",
]
