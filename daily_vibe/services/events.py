"""Calendar event service for CRUD and date-range queries.

Event dates are written as calendar dates, but a Postgres driver may hand
them back as full ISO timestamps (``2025-08-31T04:00:00.000Z``). Anything
comparing event dates goes through :func:`event_date_prefix`.
"""

import logging
from datetime import date, datetime

from sqlmodel import Session, select

from daily_vibe.errors import NotFoundError, ValidationError
from daily_vibe.models.base import DEFAULT_USER_ID, generate_id, utcnow
from daily_vibe.models.event import CalendarEvent, EventCreate, EventUpdate
from daily_vibe.services.tasks import dialect_insert

logger = logging.getLogger(__name__)


def event_date_prefix(value: str | date | datetime) -> str:
    """Return the ``YYYY-MM-DD`` part of a stored or transmitted event date."""
    if isinstance(value, (date, datetime)):
        value = value.isoformat()
    return value.split("T")[0]


def create_event(session: Session, user_id: str, event_data: EventCreate) -> CalendarEvent:
    """Create an event, or overwrite the row with the same id.

    Raises:
        ValidationError: If the title or date is missing
        NotFoundError: If the id belongs to another user's event
    """
    title = (event_data.title or "").strip()
    if not title or event_data.date is None:
        raise ValidationError("Event title and date are required")

    all_day = bool(event_data.all_day)
    now = utcnow()
    values = {
        "id": event_data.id or generate_id(),
        "user_id": user_id or DEFAULT_USER_ID,
        "title": title,
        "description": event_data.description,
        "date": event_data.date,
        "time": None if all_day else event_data.time,
        "type": event_data.type or "other",
        "subtype": event_data.subtype,
        "color": event_data.color or "blue",
        "location": event_data.location,
        "all_day": all_day,
        "recurring": bool(event_data.recurring),
        "recurring_type": event_data.recurring_type,
        "created_at": now,
        "updated_at": now,
    }

    insert = dialect_insert(session)
    statement = insert(CalendarEvent).values(**values)
    statement = statement.on_conflict_do_update(
        index_elements=["id"],
        set_={
            key: statement.excluded[key]
            for key in values
            if key not in ("id", "user_id", "created_at")
        },
        where=(CalendarEvent.user_id == statement.excluded.user_id),
    )
    session.connection().execute(statement)
    session.commit()

    event = session.get(CalendarEvent, values["id"])
    if event.user_id != values["user_id"]:
        raise NotFoundError("Event not found")
    logger.info(
        "Event saved",
        extra={"event_id": event.id, "user_id": event.user_id, "date": str(event.date)},
    )
    return event


def get_user_events(session: Session, user_id: str) -> list[CalendarEvent]:
    """Get all events for the user in calendar order."""
    return list(
        session.exec(
            select(CalendarEvent)
            .where(CalendarEvent.user_id == user_id)
            .order_by(CalendarEvent.date.asc(), CalendarEvent.time.asc())
        ).all()
    )


def get_events_in_range(
    session: Session, user_id: str, start: date, end: date
) -> list[CalendarEvent]:
    """Get the user's events dated within ``[start, end]``.

    Raises:
        ValidationError: If start is after end
    """
    if start > end:
        raise ValidationError("Start date must not be after end date")

    return list(
        session.exec(
            select(CalendarEvent)
            .where(CalendarEvent.user_id == user_id)
            .where(CalendarEvent.date >= start)
            .where(CalendarEvent.date <= end)
            .order_by(CalendarEvent.date.asc(), CalendarEvent.time.asc())
        ).all()
    )


def get_event_by_id(session: Session, user_id: str, event_id: str) -> CalendarEvent | None:
    """Get a specific event owned by the user."""
    return session.exec(
        select(CalendarEvent).where(
            CalendarEvent.id == event_id, CalendarEvent.user_id == user_id
        )
    ).first()


def update_event(
    session: Session, user_id: str, event_id: str, event_data: EventUpdate
) -> CalendarEvent:
    """Update only the supplied fields of an event.

    Raises:
        NotFoundError: If the user has no event with this id
        ValidationError: If the title is set to a blank value
    """
    event = get_event_by_id(session, user_id, event_id)
    if event is None:
        raise NotFoundError("Event not found")

    update_data = event_data.model_dump(exclude_unset=True)

    if "title" in update_data:
        title = (update_data["title"] or "").strip()
        if not title:
            raise ValidationError("Title cannot be empty")
        update_data["title"] = title

    # Non-nullable columns ignore explicit nulls
    for key in ("date", "type", "color", "all_day", "recurring"):
        if key in update_data and update_data[key] is None:
            del update_data[key]

    for key, value in update_data.items():
        setattr(event, key, value)

    if event.all_day:
        event.time = None

    event.updated_at = max(utcnow(), event.updated_at)
    session.add(event)
    session.commit()
    session.refresh(event)

    logger.info(
        "Event updated",
        extra={"event_id": event.id, "user_id": user_id, "fields": sorted(update_data)},
    )
    return event


def delete_event(session: Session, user_id: str, event_id: str) -> None:
    """Delete an event.

    Raises:
        NotFoundError: If the user has no event with this id
    """
    event = get_event_by_id(session, user_id, event_id)
    if event is None:
        raise NotFoundError("Event not found")

    session.delete(event)
    session.commit()
    logger.info("Event deleted", extra={"event_id": event_id, "user_id": user_id})
