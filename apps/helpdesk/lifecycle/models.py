from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Sequence

from .errors import LifecycleError
from .state import TicketState


class Role(str, Enum):
    """Roles an actor can hold."""

    CLIENT = "client"
    TECHNICIAN = "technician"
    ADMIN = "admin"


class EventType(str, Enum):
    """Timeline event types other layers key off of."""

    TICKET_CREATED = "ticket_created"
    TICKET_ASSIGNED = "ticket_assigned"
    STATE_CHANGED = "state_changed"
    COMMENT_ADDED = "comment_added"
    FILE_UPLOADED = "file_uploaded"
    TICKET_CLOSED = "ticket_closed"
    TICKET_REOPENED = "ticket_reopened"


class NotificationType(str, Enum):
    STATE_CHANGE = "state_change"
    TICKET_ASSIGNMENT = "ticket_assignment"


@dataclass(slots=True)
class Ticket:
    """Aggregate representing a support ticket."""

    id: str
    number: str
    title: str
    description: str
    state: TicketState
    priority: str
    client_id: str
    technician_id: str | None
    type_id: str | None
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class Actor:
    """The user on whose behalf an operation runs."""

    id: str
    role: Role
    active: bool = True
    name: str | None = None


@dataclass(slots=True)
class TimelineEvent:
    """Append-only audit entry attached to a ticket."""

    id: str
    ticket_id: str
    event_type: EventType
    description: str
    actor_id: str | None
    data: Mapping[str, Any]
    created_at: datetime


@dataclass(slots=True)
class Notification:
    """Best-effort message addressed to a single recipient."""

    id: str
    notification_type: NotificationType
    recipient_id: str
    ticket_id: str
    title: str
    message: str
    data: Mapping[str, Any]
    created_at: datetime
    read: bool = False


@dataclass(frozen=True, slots=True)
class TransitionTarget:
    state: TicketState
    requires_confirmation: bool
    label: str
    confirmation_message: str | None = None


@dataclass(slots=True)
class TransitionOutcome:
    """Persisted ticket after a state change together with the state it left."""

    ticket: Ticket
    old_state: TicketState


@dataclass(slots=True)
class AssignmentOutcome:
    ticket: Ticket
    previous_technician_id: str | None


@dataclass(slots=True)
class OperationResult:
    """Outcome of a single-ticket operation: either ``data`` or ``error``."""

    success: bool
    data: Any = None
    error: LifecycleError | None = None

    @classmethod
    def ok(cls, data: Any) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def failed(cls, error: LifecycleError) -> "OperationResult":
        return cls(success=False, error=error)

    @property
    def ticket(self) -> Ticket | None:
        return getattr(self.data, "ticket", None)


@dataclass(slots=True)
class BulkItemResult:
    ticket_id: str
    ticket_number: str | None
    success: bool
    data: Any = None
    error: LifecycleError | None = None

    @property
    def reason(self) -> str | None:
        return None if self.error is None else self.error.message


@dataclass(frozen=True, slots=True)
class BulkSummary:
    total: int
    successful: int
    failed: int


@dataclass(slots=True)
class BulkOperationResult:
    """Per-item outcomes of a bulk call, in input order."""

    operation: str
    items: Sequence[BulkItemResult] = field(default_factory=list)

    @property
    def summary(self) -> BulkSummary:
        successful = sum(1 for item in self.items if item.success)
        return BulkSummary(total=len(self.items), successful=successful, failed=len(self.items) - successful)

    @property
    def success(self) -> bool:
        return all(item.success for item in self.items)

    def failures(self) -> list[BulkItemResult]:
        return [item for item in self.items if not item.success]

    def describe(self) -> str:
        summary = self.summary
        return f"{summary.successful} of {summary.total} succeeded"
