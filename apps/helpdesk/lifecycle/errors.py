"""Error taxonomy for ticket lifecycle operations."""

from __future__ import annotations

from typing import Any, Mapping


class LifecycleError(RuntimeError):
    """Base error for lifecycle operations."""

    code: str = "lifecycle_error"

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = dict(details or {})

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}


class UnauthorizedError(LifecycleError):
    """Raised when the acting user lacks permission; nothing was mutated."""

    code = "unauthorized"


class InvalidTransitionError(LifecycleError):
    """Raised when the target state is unreachable from the current state."""

    code = "invalid_transition"


class PersistenceError(LifecycleError):
    """Raised when the backing store failed to read or write a ticket."""

    code = "persistence_error"

    @classmethod
    def wrap(cls, action: str, cause: BaseException) -> "PersistenceError":
        error = cls(f"Failed to {action}", details={"action": action})
        error.__cause__ = cause
        return error


class TicketNotFoundError(LifecycleError):
    """Raised when an operation targets a non-existent ticket."""

    code = "ticket_not_found"


class SideEffectError(LifecycleError):
    """A timeline or notification write failed after a committed mutation.

    Only ever logged and reported; never surfaced as an operation failure.
    """

    code = "side_effect_error"

    def __init__(self, kind: str, ticket_id: str, cause: BaseException) -> None:
        super().__init__(
            f"{kind} side effect failed for ticket {ticket_id}: {cause}",
            details={"kind": kind, "ticket_id": ticket_id},
        )
        self.kind = kind
        self.ticket_id = ticket_id
        self.cause = cause
