from __future__ import annotations

from typing import Any, NoReturn

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from apps.helpdesk.dependencies.auth import CurrentActor
from apps.helpdesk.dependencies.lifecycle import LifecycleServiceDep
from apps.helpdesk.lifecycle import (
    Actor,
    BulkItemResult,
    BulkOperationResult,
    LifecycleError,
    OperationResult,
    Role,
    Ticket,
    TicketLifecycleService,
    TicketState,
    TimelineEvent,
    UnauthorizedError,
)

router = APIRouter(prefix="/tickets", tags=["tickets"])

ERROR_STATUS_CODES: dict[str, int] = {
    "unauthorized": 403,
    "invalid_transition": 409,
    "ticket_not_found": 404,
    "persistence_error": 503,
}


def error_status(error: LifecycleError) -> int:
    return ERROR_STATUS_CODES.get(error.code, 400)


def _raise_for(error: LifecycleError) -> NoReturn:
    raise HTTPException(status_code=error_status(error), detail=error.to_dict())


class TicketModel(BaseModel):
    id: str
    number: str
    title: str
    state: TicketState
    priority: str
    client_id: str
    technician_id: str | None = None
    created_at: str
    updated_at: str
    closed_at: str | None = None

    @classmethod
    def from_entity(cls, ticket: Ticket) -> "TicketModel":
        return cls(
            id=ticket.id,
            number=ticket.number,
            title=ticket.title,
            state=ticket.state,
            priority=ticket.priority,
            client_id=ticket.client_id,
            technician_id=ticket.technician_id,
            created_at=ticket.created_at.isoformat(),
            updated_at=ticket.updated_at.isoformat(),
            closed_at=ticket.closed_at.isoformat() if ticket.closed_at else None,
        )


class TransitionTargetModel(BaseModel):
    state: TicketState
    label: str
    requires_confirmation: bool
    confirmation_message: str | None = None


class TransitionRequest(BaseModel):
    target_state: str


class AssignmentRequest(BaseModel):
    technician_id: str | None = None


class BulkTransitionRequest(BaseModel):
    ticket_ids: list[str] = Field(default_factory=list)
    target_state: str


class BulkAssignmentRequest(BaseModel):
    ticket_ids: list[str] = Field(default_factory=list)
    technician_id: str | None = None


class OperationResponse(BaseModel):
    ticket: TicketModel
    previous_state: TicketState | None = None
    previous_technician_id: str | None = None


class BulkItemModel(BaseModel):
    ticket_id: str
    ticket_number: str | None = None
    success: bool
    error: dict[str, Any] | None = None

    @classmethod
    def from_result(cls, item: BulkItemResult) -> "BulkItemModel":
        return cls(
            ticket_id=item.ticket_id,
            ticket_number=item.ticket_number,
            success=item.success,
            error=item.error.to_dict() if item.error is not None else None,
        )


class BulkSummaryModel(BaseModel):
    total: int
    successful: int
    failed: int


class BulkResponse(BaseModel):
    operation: str
    message: str
    summary: BulkSummaryModel
    items: list[BulkItemModel]

    @classmethod
    def from_result(cls, result: BulkOperationResult) -> "BulkResponse":
        summary = result.summary
        return cls(
            operation=result.operation,
            message=result.describe(),
            summary=BulkSummaryModel(total=summary.total, successful=summary.successful, failed=summary.failed),
            items=[BulkItemModel.from_result(item) for item in result.items],
        )


class TimelineEventModel(BaseModel):
    id: str
    event_type: str
    description: str
    actor_id: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: str

    @classmethod
    def from_entity(cls, event: TimelineEvent) -> "TimelineEventModel":
        return cls(
            id=event.id,
            event_type=event.event_type.value,
            description=event.description,
            actor_id=event.actor_id,
            data=dict(event.data),
            created_at=event.created_at.isoformat(),
        )


def _operation_response(result: OperationResult) -> OperationResponse:
    if not result.success:
        _raise_for(result.error)
    outcome = result.data
    return OperationResponse(
        ticket=TicketModel.from_entity(outcome.ticket),
        previous_state=getattr(outcome, "old_state", None),
        previous_technician_id=getattr(outcome, "previous_technician_id", None),
    )


async def _visible_ticket(service: TicketLifecycleService, ticket_id: str, actor: Actor) -> Ticket:
    """Load a ticket for reading; clients only see their own."""

    try:
        ticket = await service.get_ticket(ticket_id)
    except LifecycleError as exc:
        _raise_for(exc)
    if not actor.active or (actor.role is Role.CLIENT and ticket.client_id != actor.id):
        _raise_for(
            UnauthorizedError(
                f"Actor {actor.id} may not view ticket {ticket.number}",
                details={"ticket_id": ticket_id, "actor_id": actor.id, "role": actor.role.value},
            )
        )
    return ticket


@router.post("/bulk-transition", response_model=BulkResponse, summary="Move many tickets to one state")
async def bulk_transition(
    payload: BulkTransitionRequest,
    service: LifecycleServiceDep,
    actor: CurrentActor,
) -> BulkResponse:
    result = await service.bulk_transition(payload.ticket_ids, payload.target_state, actor)
    return BulkResponse.from_result(result)


@router.post("/bulk-assignment", response_model=BulkResponse, summary="Assign many tickets to one technician")
async def bulk_assignment(
    payload: BulkAssignmentRequest,
    service: LifecycleServiceDep,
    actor: CurrentActor,
) -> BulkResponse:
    result = await service.bulk_assign(payload.ticket_ids, payload.technician_id, actor)
    return BulkResponse.from_result(result)


@router.get("/{ticket_id}/targets", response_model=list[TransitionTargetModel])
async def list_transition_targets(
    ticket_id: str,
    service: LifecycleServiceDep,
    actor: CurrentActor,
) -> list[TransitionTargetModel]:
    ticket = await _visible_ticket(service, ticket_id, actor)
    return [
        TransitionTargetModel(
            state=target.state,
            label=target.label,
            requires_confirmation=target.requires_confirmation,
            confirmation_message=target.confirmation_message,
        )
        for target in service.get_available_targets(ticket)
    ]


@router.post("/{ticket_id}/transition", response_model=OperationResponse)
async def transition_ticket(
    ticket_id: str,
    payload: TransitionRequest,
    service: LifecycleServiceDep,
    actor: CurrentActor,
) -> OperationResponse:
    result = await service.transition(ticket_id, payload.target_state, actor)
    return _operation_response(result)


@router.post("/{ticket_id}/assignment", response_model=OperationResponse)
async def assign_ticket(
    ticket_id: str,
    payload: AssignmentRequest,
    service: LifecycleServiceDep,
    actor: CurrentActor,
) -> OperationResponse:
    result = await service.assign(ticket_id, payload.technician_id, actor)
    return _operation_response(result)


@router.get("/{ticket_id}/timeline", response_model=list[TimelineEventModel])
async def get_timeline(ticket_id: str, service: LifecycleServiceDep, actor: CurrentActor) -> list[TimelineEventModel]:
    await _visible_ticket(service, ticket_id, actor)
    try:
        events = await service.get_timeline(ticket_id)
    except LifecycleError as exc:
        _raise_for(exc)
    return [TimelineEventModel.from_entity(event) for event in events]
