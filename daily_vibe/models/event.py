"""Calendar event entity model and request/response schemas."""

import datetime as dt

from pydantic import AliasChoices, BaseModel, Field as PydanticField, field_validator
from sqlalchemy import func
from sqlmodel import Field, SQLModel

from daily_vibe.models.base import DEFAULT_USER_ID, UTCDateTime, generate_id, utcnow


class CalendarEvent(SQLModel, table=True):
    """Calendar event database model.

    ``recurring`` and ``recurring_type`` are stored verbatim; occurrences
    are never materialized server-side.
    """

    __tablename__ = "calendar_events"

    id: str = Field(default_factory=generate_id, primary_key=True)
    user_id: str = Field(
        default=DEFAULT_USER_ID,
        index=True,
        sa_column_kwargs={"server_default": DEFAULT_USER_ID},
    )
    title: str
    description: str | None = Field(default=None)
    date: dt.date = Field(index=True)
    time: dt.time | None = Field(default=None)
    type: str = Field(default="other")
    subtype: str | None = Field(default=None)
    color: str = Field(default="blue")
    location: str | None = Field(default=None)
    all_day: bool = Field(default=False)
    recurring: bool = Field(default=False)
    recurring_type: str | None = Field(default=None)
    created_at: dt.datetime = Field(
        default_factory=utcnow,
        sa_type=UTCDateTime,
        sa_column_kwargs={"server_default": func.now()},
    )
    updated_at: dt.datetime = Field(
        default_factory=utcnow,
        sa_type=UTCDateTime,
        sa_column_kwargs={"server_default": func.now()},
    )


class _EventFields(BaseModel):
    description: str | None = None
    time: dt.time | None = None
    type: str | None = None
    subtype: str | None = None
    color: str | None = None
    location: str | None = None
    all_day: bool | None = PydanticField(
        default=None, validation_alias=AliasChoices("allDay", "all_day")
    )
    recurring: bool | None = None
    recurring_type: str | None = PydanticField(
        default=None, validation_alias=AliasChoices("recurringType", "recurring_type")
    )

    @field_validator("time", "type", "color", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class EventCreate(_EventFields):
    """Schema for event creation."""

    id: str | None = PydanticField(default=None, min_length=1, max_length=64)
    user_id: str | None = PydanticField(
        default=None, validation_alias=AliasChoices("userId", "user_id")
    )
    title: str | None = None
    date: dt.date | None = None

    @field_validator("date", mode="before")
    @classmethod
    def date_prefix_only(cls, value):
        # Accept full ISO timestamps; only the calendar date is stored
        if isinstance(value, str):
            value = value.split("T")[0].strip() or None
        return value


class EventUpdate(_EventFields):
    """Schema for event update. Only supplied fields are changed."""

    title: str | None = None
    date: dt.date | None = None

    @field_validator("date", mode="before")
    @classmethod
    def date_prefix_only(cls, value):
        if isinstance(value, str):
            value = value.split("T")[0].strip() or None
        return value


class EventResponse(SQLModel):
    """Schema for event response."""

    id: str
    user_id: str
    title: str
    description: str | None
    date: dt.date
    time: dt.time | None
    type: str
    subtype: str | None
    color: str
    location: str | None
    all_day: bool
    recurring: bool
    recurring_type: str | None
    created_at: dt.datetime
    updated_at: dt.datetime

    model_config = {"from_attributes": True}


class EventEnvelope(BaseModel):
    success: bool = True
    event: EventResponse


class EventListEnvelope(BaseModel):
    success: bool = True
    events: list[EventResponse]
