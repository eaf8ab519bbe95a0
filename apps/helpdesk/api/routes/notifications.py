from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel, Field

from apps.helpdesk.dependencies.auth import CurrentActor
from apps.helpdesk.dependencies.lifecycle import LifecycleServiceDep
from apps.helpdesk.lifecycle import Notification, PersistenceError

router = APIRouter(prefix="/notifications", tags=["notifications"])


class NotificationModel(BaseModel):
    id: str
    type: str
    ticket_id: str
    title: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    read: bool
    created_at: str

    @classmethod
    def from_entity(cls, notification: Notification) -> "NotificationModel":
        return cls(
            id=notification.id,
            type=notification.notification_type.value,
            ticket_id=notification.ticket_id,
            title=notification.title,
            message=notification.message,
            data=dict(notification.data),
            read=notification.read,
            created_at=notification.created_at.isoformat(),
        )


@router.get("", response_model=list[NotificationModel], summary="Notifications for the current actor")
async def list_notifications(service: LifecycleServiceDep, actor: CurrentActor) -> list[NotificationModel]:
    try:
        notifications = await service.get_notifications(actor.id)
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=exc.to_dict()) from exc
    return [NotificationModel.from_entity(item) for item in notifications]


@router.post("/{notification_id}/read", status_code=204, summary="Mark one of the actor's notifications as read")
async def mark_notification_read(notification_id: str, service: LifecycleServiceDep, actor: CurrentActor) -> Response:
    try:
        updated = await service.mark_notification_read(notification_id, actor.id)
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=exc.to_dict()) from exc
    if not updated:
        raise HTTPException(status_code=404, detail="Notification not found")
    return Response(status_code=204)
