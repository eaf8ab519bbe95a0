import asyncio

import pytest

from apps.helpdesk.lifecycle import (
    SideEffectDispatcher,
    TicketLifecycleService,
    TicketState,
    TransitionOutcome,
)
from apps.helpdesk.metrics.definitions import (
    ASSIGNMENTS_TOTAL,
    OPERATION_DURATION_SECONDS,
    TRANSITIONS_TOTAL,
)


def test_available_targets_follow_current_state(service, ticket_factory):
    targets = service.get_available_targets(ticket_factory(state=TicketState.PENDING_APPROVAL))

    assert [target.state for target in targets] == [TicketState.CLOSED, TicketState.IN_PROGRESS]
    closing = targets[0]
    assert closing.requires_confirmation
    assert closing.label == "Closed"
    assert closing.confirmation_message
    assert not targets[1].requires_confirmation
    assert targets[1].confirmation_message is None


def test_closed_ticket_offers_no_targets(service, ticket_factory):
    assert service.get_available_targets(ticket_factory(state=TicketState.CLOSED)) == []


@pytest.mark.asyncio
async def test_transition_returns_outcome_and_counts_success(service, tickets, registry, ticket_factory, admin):
    ticket = tickets.add(ticket_factory())

    result = await service.transition(ticket, TicketState.IN_PROGRESS, admin)

    assert result.success
    assert isinstance(result.data, TransitionOutcome)
    assert result.data.old_state is TicketState.OPEN
    assert result.error is None
    assert registry.counter(TRANSITIONS_TOTAL).value(labels={"outcome": "success"}) == 1
    durations = registry.distribution(OPERATION_DURATION_SECONDS).snapshot()
    assert durations[("transition",)]["count"] == 1


@pytest.mark.asyncio
async def test_rejections_become_failed_results(service, tickets, registry, ticket_factory, client_actor):
    ticket = tickets.add(ticket_factory())

    result = await service.transition(ticket.id, TicketState.IN_PROGRESS, client_actor)

    assert not result.success
    assert result.data is None
    assert result.ticket is None
    assert result.error.to_dict()["code"] == "unauthorized"
    assert registry.counter(TRANSITIONS_TOTAL).value(labels={"outcome": "unauthorized"}) == 1


@pytest.mark.asyncio
async def test_assign_counts_outcomes(service, tickets, registry, ticket_factory, admin, technician):
    ticket = tickets.add(ticket_factory())

    assert (await service.assign(ticket.id, technician.id, admin)).success
    assert not (await service.assign(ticket.id, None, technician)).success

    counter = registry.counter(ASSIGNMENTS_TOTAL)
    assert counter.value(labels={"outcome": "success"}) == 1
    assert counter.value(labels={"outcome": "unauthorized"}) == 1


@pytest.mark.asyncio
async def test_reads_pass_through_to_collaborators(service, tickets, ticket_factory, admin):
    ticket = tickets.add(ticket_factory(technician_id="tech-1"))
    await service.transition(ticket.id, TicketState.IN_PROGRESS, admin)

    assert (await service.get_ticket(ticket.id)).state is TicketState.IN_PROGRESS
    assert len(await service.get_timeline(ticket.id)) == 1
    assert len(await service.get_notifications("tech-1")) == 1


@pytest.mark.asyncio
async def test_drain_flushes_background_side_effects(tickets, timeline, notifications, registry, ticket_factory, admin):
    dispatcher = SideEffectDispatcher(timeline, notifications, metrics=registry)
    service = TicketLifecycleService(tickets, timeline, notifications, dispatcher=dispatcher, metrics=registry)
    ticket = tickets.add(ticket_factory())

    result = await service.transition(ticket.id, TicketState.IN_PROGRESS, admin)
    await service.drain()

    assert result.success
    assert len(timeline.events) == 1


@pytest.mark.asyncio
async def test_slow_notifications_do_not_hold_back_the_result(tickets, timeline, ticket_factory, admin):
    release = asyncio.Event()
    delivered: list[str] = []

    class StalledNotifications:
        async def append(self, notification_type, recipient_id, ticket_id, title, message, data):
            await release.wait()
            delivered.append(recipient_id)

        async def list_for_recipient(self, recipient_id):
            return []

    service = TicketLifecycleService(tickets, timeline, StalledNotifications())
    ticket = tickets.add(ticket_factory())

    result = await asyncio.wait_for(service.transition(ticket.id, TicketState.IN_PROGRESS, admin), timeout=1.0)

    assert result.success
    assert tickets.stored(ticket.id).state is TicketState.IN_PROGRESS
    assert delivered == []

    release.set()
    await service.drain()
    assert delivered == ["client-1"]


@pytest.mark.asyncio
async def test_unexpected_store_failure_becomes_failed_result(service, tickets, registry, ticket_factory, admin):
    ticket = tickets.add(ticket_factory())
    tickets.broken_reads[ticket.id] = ConnectionResetError("connection reset by peer")

    result = await service.transition(ticket.id, TicketState.IN_PROGRESS, admin)

    assert not result.success
    assert result.error.code == "persistence_error"
    assert registry.counter(TRANSITIONS_TOTAL).value(labels={"outcome": "persistence_error"}) == 1
