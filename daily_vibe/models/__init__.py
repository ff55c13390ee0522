"""SQLModel entities for the Daily Vibe backend."""

from daily_vibe.models.base import DEFAULT_USER_ID
from daily_vibe.models.event import CalendarEvent
from daily_vibe.models.file import StoredFile, TaskAttachment
from daily_vibe.models.task import Priority, Task, TaskStatus
from daily_vibe.models.user import User, UserData, UserSession

__all__ = [
    "DEFAULT_USER_ID",
    "User",
    "UserSession",
    "UserData",
    "Task",
    "TaskStatus",
    "Priority",
    "CalendarEvent",
    "StoredFile",
    "TaskAttachment",
]
