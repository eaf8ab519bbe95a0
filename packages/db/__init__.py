"""Database models and utilities."""

from .models import (
    NotificationTable,
    TicketTable,
    TicketTimelineTable,
    UserTable,
)

__all__ = [
    "NotificationTable",
    "TicketTable",
    "TicketTimelineTable",
    "UserTable",
]
