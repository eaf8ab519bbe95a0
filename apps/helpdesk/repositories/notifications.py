from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from apps.helpdesk.lifecycle.models import Notification, NotificationType
from packages.db.models import NotificationTable

from .common import ensure_datetime, persistence_errors


class NotificationRepository:
    """In-app notification inbox."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(
        self,
        notification_type: NotificationType,
        recipient_id: str,
        ticket_id: str,
        title: str,
        message: str,
        data: Mapping[str, Any],
    ) -> Notification:
        row = NotificationTable(
            id=str(uuid.uuid4()),
            notification_type=NotificationType(notification_type).value,
            recipient_id=recipient_id,
            ticket_id=ticket_id,
            title=title,
            message=message,
            data=dict(data),
            read=False,
            created_at=datetime.now(timezone.utc),
        )
        async with persistence_errors(f"store notification for {recipient_id}"):
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(row)
        return self._table_to_notification(row)

    async def list_for_recipient(self, recipient_id: str, *, unread_only: bool = False) -> Sequence[Notification]:
        statement = select(NotificationTable).where(NotificationTable.recipient_id == recipient_id)
        if unread_only:
            statement = statement.where(NotificationTable.read.is_(False))
        statement = statement.order_by(NotificationTable.created_at.desc())
        async with persistence_errors(f"list notifications for {recipient_id}"):
            async with self._session_factory() as session:
                result = await session.execute(statement)
                return [self._table_to_notification(row) for row in result.scalars().all()]

    async def mark_read(self, notification_id: str, *, recipient_id: str | None = None) -> bool:
        async with persistence_errors(f"mark notification {notification_id} read"):
            async with self._session_factory() as session:
                row = await session.get(NotificationTable, notification_id)
                if row is None or (recipient_id is not None and row.recipient_id != recipient_id):
                    return False
                row.read = True
                await session.commit()
                return True

    @staticmethod
    def _table_to_notification(row: NotificationTable) -> Notification:
        return Notification(
            id=row.id,
            notification_type=NotificationType(row.notification_type),
            recipient_id=row.recipient_id,
            ticket_id=row.ticket_id,
            title=row.title,
            message=row.message,
            data=dict(row.data or {}),
            created_at=ensure_datetime(row.created_at),
            read=bool(row.read),
        )
