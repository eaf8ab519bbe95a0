from __future__ import annotations

from .models import Actor, Role, Ticket


class AuthorizationGate:
    """Single boundary for lifecycle permission checks.

    Executors consult the gate at execution time against the ticket they just
    loaded, so a stale client-side view can never widen permissions.
    """

    def may_ever_transition(self, actor: Actor) -> bool:
        """Whether the actor's role can move any ticket at all."""

        if not actor.active:
            return False
        return actor.role in (Role.ADMIN, Role.TECHNICIAN)

    def can_transition(self, actor: Actor, ticket: Ticket) -> bool:
        if not self.may_ever_transition(actor):
            return False
        if actor.role is Role.ADMIN:
            return True
        return ticket.technician_id is not None and ticket.technician_id == actor.id

    def can_assign(self, actor: Actor) -> bool:
        return actor.active and actor.role is Role.ADMIN
