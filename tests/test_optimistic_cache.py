from dataclasses import replace

import pytest

from apps.helpdesk.lifecycle import OptimisticStateCache, PersistenceError, TicketNotFoundError, TicketState


@pytest.fixture
def cached(tickets, ticket_factory):
    batch = [
        tickets.add(ticket_factory(state=TicketState.OPEN)),
        tickets.add(ticket_factory(state=TicketState.IN_PROGRESS, technician_id="tech-1")),
        tickets.add(ticket_factory(state=TicketState.PENDING_APPROVAL, technician_id="tech-1")),
    ]
    return batch


@pytest.mark.asyncio
async def test_failed_commit_restores_every_cached_ticket(cached, now):
    cache = OptimisticStateCache(cached, clock=lambda: now)
    before = cache.tickets
    seen_during_commit = []

    async def commit():
        seen_during_commit.append(cache.get(cached[1].id).state)
        raise PersistenceError("database unavailable")

    with pytest.raises(PersistenceError):
        await cache.apply(cached[1].id, {"state": TicketState.PENDING_APPROVAL}, commit)

    assert seen_during_commit == [TicketState.PENDING_APPROVAL]
    assert cache.tickets == before
    assert [ticket.state for ticket in cache.tickets] == [
        TicketState.OPEN,
        TicketState.IN_PROGRESS,
        TicketState.PENDING_APPROVAL,
    ]


@pytest.mark.asyncio
async def test_rejected_transition_rolls_back_and_returns_failure(service, cached, admin):
    cache = OptimisticStateCache(cached)
    before = cache.tickets

    result = await cache.transition(service, cached[0].id, TicketState.CLOSED, admin)

    assert not result.success
    assert result.error.code == "invalid_transition"
    assert cache.tickets == before


@pytest.mark.asyncio
async def test_persistence_failure_rolls_back_all_three(service, tickets, cached, admin):
    cache = OptimisticStateCache(cached)
    before = cache.tickets
    tickets.fail_updates_for.add(cached[2].id)

    result = await cache.transition(service, cached[2].id, TicketState.CLOSED, admin)

    assert not result.success
    assert result.error.code == "persistence_error"
    assert cache.tickets == before
    assert all(ticket.closed_at is None for ticket in cache.tickets)


@pytest.mark.asyncio
async def test_successful_transition_keeps_server_entity(service, cached, admin, now):
    cache = OptimisticStateCache(cached)

    result = await cache.transition(service, cached[2].id, TicketState.CLOSED, admin)

    assert result.success
    assert cache.get(cached[2].id) == result.ticket
    assert cache.get(cached[2].id).closed_at == now
    assert cache.get(cached[0].id) == cached[0]


@pytest.mark.asyncio
async def test_assign_patches_technician(service, cached, admin):
    cache = OptimisticStateCache(cached)

    result = await cache.assign(service, cached[0].id, "tech-2", admin)

    assert result.success
    assert cache.get(cached[0].id).technician_id == "tech-2"
    assert cache.get(cached[0].id).state is TicketState.OPEN


@pytest.mark.asyncio
async def test_unknown_target_state_leaves_cache_alone(service, cached, admin):
    cache = OptimisticStateCache(cached)
    before = cache.tickets

    result = await cache.transition(service, cached[0].id, "archived", admin)

    assert not result.success
    assert cache.tickets == before


@pytest.mark.asyncio
async def test_uncached_ticket_is_never_committed(cached):
    cache = OptimisticStateCache(cached[:1])
    commits = []

    async def commit():
        commits.append(cached[1].id)
        return replace(cached[1])

    with pytest.raises(TicketNotFoundError):
        await cache.apply(cached[1].id, {"state": TicketState.OPEN}, commit)
    assert commits == []
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_transition_on_uncached_ticket_returns_not_found(service, tickets, cached, admin):
    cache = OptimisticStateCache()

    result = await cache.transition(service, cached[0].id, TicketState.IN_PROGRESS, admin)

    assert not result.success
    assert result.error.code == "ticket_not_found"
    assert tickets.stored(cached[0].id).state is TicketState.OPEN
    assert cache.tickets == ()
