"""Task entity model and request/response schemas."""

from datetime import date, datetime, time
from enum import Enum

from pydantic import AliasChoices, BaseModel, Field as PydanticField, field_validator
from sqlalchemy import func
from sqlmodel import Field, SQLModel

from daily_vibe.models.base import DEFAULT_USER_ID, UTCDateTime, generate_id, utcnow
from daily_vibe.models.file import StoredFileResponse


class TaskStatus(str, Enum):
    """Kanban column of a task."""

    TODO = "todo"
    PROGRESS = "progress"
    COMPLETED = "completed"


class Priority(str, Enum):
    """Task priority levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Task(SQLModel, table=True):
    """Task database model.

    ``user_id`` is a scoping value, not a foreign key: the ``default``
    sentinel owns tasks created without a session.
    """

    __tablename__ = "tasks"

    id: str = Field(default_factory=generate_id, primary_key=True)
    user_id: str = Field(
        default=DEFAULT_USER_ID,
        index=True,
        sa_column_kwargs={"server_default": DEFAULT_USER_ID},
    )
    title: str
    description: str | None = Field(default=None)
    priority: str = Field(
        default=Priority.MEDIUM.value,
        sa_column_kwargs={"server_default": Priority.MEDIUM.value},
    )
    category: str = Field(default="personal", sa_column_kwargs={"server_default": "personal"})
    status: str = Field(
        default=TaskStatus.TODO.value,
        sa_column_kwargs={"server_default": TaskStatus.TODO.value},
    )
    due_date: date | None = Field(default=None, index=True)
    due_time: time | None = Field(default=None)
    due_datetime: datetime | None = Field(default=None, sa_type=UTCDateTime)
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_type=UTCDateTime,
        sa_column_kwargs={"server_default": func.now()},
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_type=UTCDateTime,
        sa_column_kwargs={"server_default": func.now()},
    )


class _TaskFields(BaseModel):
    """Fields shared by task create and update payloads."""

    description: str | None = None
    priority: Priority | None = None
    category: str | None = None
    status: TaskStatus | None = None
    due_date: date | None = PydanticField(
        default=None, validation_alias=AliasChoices("dueDate", "due_date")
    )
    due_time: time | None = PydanticField(
        default=None, validation_alias=AliasChoices("dueTime", "due_time")
    )
    due_datetime: datetime | None = PydanticField(
        default=None, validation_alias=AliasChoices("dueDateTime", "due_datetime")
    )

    @field_validator("priority", "category", "status", "due_date", "due_time", "due_datetime", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        # Browser forms send "" for untouched inputs
        if isinstance(value, str) and not value.strip():
            return None
        return value


class TaskCreate(_TaskFields):
    """Schema for task creation.

    ``id`` may be supplied by the client so that a retried create is an
    upsert of the same row.
    """

    id: str | None = PydanticField(default=None, min_length=1, max_length=64)
    user_id: str | None = PydanticField(
        default=None, validation_alias=AliasChoices("userId", "user_id")
    )
    title: str | None = None


class TaskUpdate(_TaskFields):
    """Schema for task update. Only supplied fields are changed."""

    title: str | None = None


class TaskResponse(SQLModel):
    """Schema for task response."""

    id: str
    user_id: str
    title: str
    description: str | None
    priority: str
    category: str
    status: str
    due_date: date | None
    due_time: time | None
    due_datetime: datetime | None
    created_at: datetime
    updated_at: datetime
    attachments: list[StoredFileResponse] | None = None

    model_config = {"from_attributes": True}


class TaskEnvelope(BaseModel):
    success: bool = True
    task: TaskResponse


class TaskListEnvelope(BaseModel):
    success: bool = True
    tasks: list[TaskResponse]


class TaskStatsEnvelope(BaseModel):
    success: bool = True
    stats: dict[str, int]
