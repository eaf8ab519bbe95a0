"""SQLModel-backed implementations of the lifecycle collaborators."""

from .notifications import NotificationRepository
from .tickets import TicketRepository
from .timeline import TimelineRepository
from .users import UserRepository

__all__ = [
    "NotificationRepository",
    "TicketRepository",
    "TimelineRepository",
    "UserRepository",
]
