"""Ticket lifecycle core: state machine, authorization, executors and side effects."""

from .authorization import AuthorizationGate
from .bulk import BulkOperationCoordinator
from .cache import OptimisticStateCache
from .errors import (
    InvalidTransitionError,
    LifecycleError,
    PersistenceError,
    SideEffectError,
    TicketNotFoundError,
    UnauthorizedError,
)
from .executors import AssignmentExecutor, TransitionExecutor
from .models import (
    Actor,
    AssignmentOutcome,
    BulkItemResult,
    BulkOperationResult,
    BulkSummary,
    EventType,
    Notification,
    NotificationType,
    OperationResult,
    Role,
    Ticket,
    TimelineEvent,
    TransitionOutcome,
    TransitionTarget,
)
from .service import TicketLifecycleService
from .side_effects import DispatchReport, SideEffectDispatcher
from .state import TicketState, TicketStateMachine

__all__ = [
    "Actor",
    "AssignmentExecutor",
    "AssignmentOutcome",
    "AuthorizationGate",
    "BulkItemResult",
    "BulkOperationCoordinator",
    "BulkOperationResult",
    "BulkSummary",
    "DispatchReport",
    "EventType",
    "InvalidTransitionError",
    "LifecycleError",
    "Notification",
    "NotificationType",
    "OperationResult",
    "OptimisticStateCache",
    "PersistenceError",
    "Role",
    "SideEffectDispatcher",
    "SideEffectError",
    "Ticket",
    "TicketLifecycleService",
    "TicketNotFoundError",
    "TicketState",
    "TicketStateMachine",
    "TimelineEvent",
    "TransitionExecutor",
    "TransitionOutcome",
    "TransitionTarget",
    "UnauthorizedError",
]
