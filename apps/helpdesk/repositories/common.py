from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator

from sqlalchemy.exc import SQLAlchemyError

from apps.helpdesk.lifecycle.errors import PersistenceError

logger = logging.getLogger(__name__)


def ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")


def optional_datetime(value: datetime | None) -> datetime | None:
    return None if value is None else ensure_datetime(value)


@asynccontextmanager
async def persistence_errors(action: str) -> AsyncIterator[None]:
    """Re-raise database and connection failures as ``PersistenceError``."""

    try:
        yield
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
        logger.error("Database failure while trying to %s: %s", action, exc)
        raise PersistenceError.wrap(action, exc) from exc
