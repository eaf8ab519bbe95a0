from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from apps.helpdesk.lifecycle.models import Actor, Role
from packages.db.models import UserTable

from .common import persistence_errors


class UserRepository:
    """Read-only view of user accounts used to label timeline and notifications."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def _get(self, user_id: str) -> UserTable | None:
        async with persistence_errors(f"load user {user_id}"):
            async with self._session_factory() as session:
                return await session.get(UserTable, user_id)

    async def display_name(self, user_id: str) -> str | None:
        row = await self._get(user_id)
        if row is None:
            return None
        return row.display_name or row.username

    async def get_actor(self, user_id: str) -> Actor | None:
        row = await self._get(user_id)
        if row is None:
            return None
        return Actor(id=row.id, role=Role(row.role), active=bool(row.is_active), name=row.display_name)
