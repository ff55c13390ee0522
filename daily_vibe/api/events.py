"""Calendar event API endpoints. Auth-optional, scoped like tasks."""

from fastapi import APIRouter

from daily_vibe.api.deps import (
    DateRange,
    DBSession,
    OptionalDateRange,
    TokenUserId,
    UserIdQuery,
    resolve_user_id,
)
from daily_vibe.errors import NotFoundError
from daily_vibe.models.common import MessageEnvelope
from daily_vibe.models.event import (
    EventCreate,
    EventEnvelope,
    EventListEnvelope,
    EventResponse,
    EventUpdate,
)
from daily_vibe.services.events import (
    create_event,
    delete_event,
    get_event_by_id,
    get_events_in_range,
    get_user_events,
    update_event,
)

router = APIRouter(prefix="/api/events", tags=["Events"])


def _envelope(events) -> EventListEnvelope:
    return EventListEnvelope(events=[EventResponse.model_validate(e) for e in events])


@router.post("", response_model=EventEnvelope)
def create_event_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    event_data: EventCreate,
) -> EventEnvelope:
    """Create an event. Re-sending the same client id updates that event."""
    user_id = resolve_user_id(token_user_id, event_data.user_id)
    event = create_event(session, user_id, event_data)
    return EventEnvelope(event=EventResponse.model_validate(event))


@router.get("", response_model=EventListEnvelope)
def list_events_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    date_range: OptionalDateRange,
    user_id: UserIdQuery = None,
) -> EventListEnvelope:
    """List the user's events, optionally limited to a date range."""
    user_id = resolve_user_id(token_user_id, user_id)
    if date_range is None:
        return _envelope(get_user_events(session, user_id))
    start, end = date_range
    return _envelope(get_events_in_range(session, user_id, start, end))


@router.get("/date-range/{user_id}", response_model=EventListEnvelope)
def events_in_range_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    user_id: str,
    date_range: DateRange,
) -> EventListEnvelope:
    """List the user's events dated within an inclusive range."""
    start, end = date_range
    return _envelope(
        get_events_in_range(session, resolve_user_id(token_user_id, user_id), start, end)
    )


@router.get("/{event_id}", response_model=EventEnvelope)
def get_event_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    event_id: str,
    user_id: UserIdQuery = None,
) -> EventEnvelope:
    """Get a specific event by ID."""
    event = get_event_by_id(session, resolve_user_id(token_user_id, user_id), event_id)
    if event is None:
        raise NotFoundError("Event not found")
    return EventEnvelope(event=EventResponse.model_validate(event))


@router.put("/{event_id}", response_model=EventEnvelope)
def update_event_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    event_id: str,
    event_data: EventUpdate,
    user_id: UserIdQuery = None,
) -> EventEnvelope:
    """Update the supplied fields of an event."""
    event = update_event(session, resolve_user_id(token_user_id, user_id), event_id, event_data)
    return EventEnvelope(event=EventResponse.model_validate(event))


@router.delete("/{event_id}", response_model=MessageEnvelope)
def delete_event_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    event_id: str,
    user_id: UserIdQuery = None,
) -> MessageEnvelope:
    """Delete an event."""
    delete_event(session, resolve_user_id(token_user_id, user_id), event_id)
    return MessageEnvelope(message="Event deleted successfully")
