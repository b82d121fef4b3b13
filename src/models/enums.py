from __future__ import annotations

from enum import StrEnum


class ComplaintStatus(StrEnum):
    __slots__ = ()

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    ESCALATED = "escalated"


class Priority(StrEnum):
    """Complaint priority, ordered from least to most severe."""

    __slots__ = ()

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    def bumped(self) -> Priority:
        """Return the next tier up, saturating at ``CRITICAL``."""
        order = list(Priority)
        return order[min(order.index(self) + 1, len(order) - 1)]


class Sentiment(StrEnum):
    __slots__ = ()

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class AuthorType(StrEnum):
    __slots__ = ()

    USER = "user"
    ADMIN = "admin"
    DEPARTMENT = "department"
    SYSTEM = "system"


class ActivityKind(StrEnum):
    __slots__ = ()

    STATUS_CHANGE = "status_change"
    COMMENT = "comment"
    ATTACHMENT = "attachment"
    ASSIGNMENT = "assignment"
    RESOLUTION = "resolution"
    TRIAGE_UPDATE = "triage_update"


class ActorRole(StrEnum):
    """Roles issued by the identity gateway."""

    __slots__ = ()

    CITIZEN = "citizen"
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    DEPARTMENT = "department"
    DEPARTMENT_ADMIN = "department_admin"
    SYSTEM = "system"


DEPARTMENT_ROLES: frozenset[str] = frozenset({ActorRole.DEPARTMENT, ActorRole.DEPARTMENT_ADMIN})
ADMIN_ROLES: frozenset[str] = frozenset({ActorRole.ADMIN, ActorRole.SUPER_ADMIN})
STAFF_ROLES: frozenset[str] = DEPARTMENT_ROLES | ADMIN_ROLES
