from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Mapping

from .errors import LifecycleError, TicketNotFoundError
from .executors import Clock, utc_now
from .models import Actor, OperationResult, Ticket
from .state import TicketState

if TYPE_CHECKING:
    from .service import TicketLifecycleService


class OptimisticStateCache:
    """Caller-owned ticket collection with optimistic updates.

    ``apply`` snapshots the whole collection, shows the tentative patch right
    away and then either swaps in the server's entity or restores the entire
    snapshot. Observers only ever see the snapshot, the tentative patch of the
    single mutation in flight, or server-confirmed data.
    """

    def __init__(self, tickets: Iterable[Ticket] = (), *, clock: Clock = utc_now) -> None:
        self._tickets: list[Ticket] = list(tickets)
        self._clock = clock
        self._lock = asyncio.Lock()

    @property
    def tickets(self) -> tuple[Ticket, ...]:
        return tuple(self._tickets)

    def __len__(self) -> int:
        return len(self._tickets)

    def load(self, tickets: Iterable[Ticket]) -> None:
        self._tickets = list(tickets)

    def get(self, ticket_id: str) -> Ticket | None:
        for ticket in self._tickets:
            if ticket.id == ticket_id:
                return ticket
        return None

    def _index(self, ticket_id: str) -> int:
        for index, ticket in enumerate(self._tickets):
            if ticket.id == ticket_id:
                return index
        raise TicketNotFoundError(f"Ticket {ticket_id} is not cached", details={"ticket_id": ticket_id})

    async def apply(
        self,
        ticket_id: str,
        patch: Mapping[str, Any],
        commit: Callable[[], Awaitable[Ticket]],
    ) -> Ticket:
        """Run ``commit`` behind a tentative ``patch``; re-raises after rollback.

        Raises ``TicketNotFoundError`` without calling ``commit`` when the
        ticket is not part of this collection.
        """

        async with self._lock:
            index = self._index(ticket_id)
            snapshot = list(self._tickets)
            tentative = list(snapshot)
            tentative[index] = replace(snapshot[index], **patch)
            self._tickets = tentative
            try:
                confirmed = await commit()
            except BaseException:
                self._tickets = snapshot
                raise
            committed = list(self._tickets)
            committed[self._index(ticket_id)] = confirmed
            self._tickets = committed
            return confirmed

    async def transition(
        self,
        service: "TicketLifecycleService",
        ticket_id: str,
        target_state: TicketState | str,
        actor: Actor,
    ) -> OperationResult:
        try:
            target = TicketState(target_state)
        except ValueError:
            # nothing sensible to show tentatively; let the service reject it
            return await service.transition(ticket_id, target_state, actor)
        patch: dict[str, Any] = {"state": target}
        if target is TicketState.CLOSED:
            patch["closed_at"] = self._clock()
        return await self._apply_operation(
            ticket_id, patch, lambda: service.transition(ticket_id, target_state, actor)
        )

    async def assign(
        self,
        service: "TicketLifecycleService",
        ticket_id: str,
        technician_id: str | None,
        actor: Actor,
    ) -> OperationResult:
        return await self._apply_operation(
            ticket_id, {"technician_id": technician_id}, lambda: service.assign(ticket_id, technician_id, actor)
        )

    async def _apply_operation(
        self,
        ticket_id: str,
        patch: Mapping[str, Any],
        operation: Callable[[], Awaitable[OperationResult]],
    ) -> OperationResult:
        outcome: list[OperationResult] = []

        async def commit() -> Ticket:
            result = await operation()
            outcome.append(result)
            if not result.success or result.ticket is None:
                raise result.error or LifecycleError("Operation returned no ticket")
            return result.ticket

        try:
            await self.apply(ticket_id, patch, commit)
        except LifecycleError as exc:
            return outcome[0] if outcome else OperationResult.failed(exc)
        return outcome[0]
