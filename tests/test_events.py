"""Tests for the calendar event repository."""

from datetime import date, datetime

import pytest
from sqlmodel import Session

from daily_vibe.errors import NotFoundError, ValidationError
from daily_vibe.models.event import EventCreate, EventUpdate
from daily_vibe.services.events import (
    create_event,
    delete_event,
    event_date_prefix,
    get_event_by_id,
    get_events_in_range,
    get_user_events,
    update_event,
)


class TestEventDatePrefix:
    """Event dates compare on the calendar date only."""

    def test_plain_date_string(self):
        assert event_date_prefix("2025-08-31") == "2025-08-31"

    def test_driver_timestamp_string(self):
        assert event_date_prefix("2025-08-31T04:00:00.000Z") == "2025-08-31"

    def test_date_and_datetime_objects(self):
        assert event_date_prefix(date(2025, 8, 31)) == "2025-08-31"
        assert event_date_prefix(datetime(2025, 8, 31, 4, 0)) == "2025-08-31"


class TestCreateEvent:
    """Tests for create_event()."""

    def test_title_and_date_required(self, db_session: Session):
        with pytest.raises(ValidationError):
            create_event(db_session, "default", EventCreate(title="No date"))
        with pytest.raises(ValidationError):
            create_event(db_session, "default", EventCreate.model_validate({"date": "2025-08-31"}))

    def test_defaults(self, db_session: Session):
        event = create_event(
            db_session, "default", EventCreate.model_validate({"title": "Standup", "date": "2025-08-31"})
        )

        assert event.type == "other"
        assert event.color == "blue"
        assert event.all_day is False
        assert event.recurring is False

    def test_timestamp_date_is_truncated(self, db_session: Session):
        """A full ISO timestamp is stored as its calendar date."""
        event = create_event(
            db_session,
            "default",
            EventCreate.model_validate({"title": "Trip", "date": "2025-08-31T04:00:00.000Z"}),
        )

        assert event.date == date(2025, 8, 31)

    def test_all_day_drops_time(self, db_session: Session):
        event = create_event(
            db_session,
            "default",
            EventCreate.model_validate(
                {"title": "Holiday", "date": "2025-12-25", "time": "10:00", "allDay": True}
            ),
        )

        assert event.all_day is True
        assert event.time is None

    def test_recurrence_stored_verbatim(self, db_session: Session):
        event = create_event(
            db_session,
            "default",
            EventCreate.model_validate(
                {"title": "Gym", "date": "2025-09-01", "recurring": True, "recurringType": "weekly"}
            ),
        )

        assert event.recurring is True
        assert event.recurring_type == "weekly"

    def test_same_id_is_upsert(self, db_session: Session):
        create_event(db_session, "default", EventCreate(id="ev-1", title="A", date=date(2025, 9, 1)))
        create_event(db_session, "default", EventCreate(id="ev-1", title="B", date=date(2025, 9, 2)))

        events = get_user_events(db_session, "default")

        assert [(e.id, e.title, e.date) for e in events] == [("ev-1", "B", date(2025, 9, 2))]


    def test_same_id_from_other_user_rejected(self, db_session: Session):
        create_event(db_session, "alice", EventCreate(id="ev-1", title="Mine", date=date(2025, 9, 1)))

        with pytest.raises(NotFoundError):
            create_event(db_session, "bob", EventCreate(id="ev-1", title="Taken", date=date(2025, 9, 2)))

        event = get_event_by_id(db_session, "alice", "ev-1")
        assert (event.title, event.date) == ("Mine", date(2025, 9, 1))


class TestEventQueries:
    """Tests for listing, range queries, update and delete."""

    def _seed(self, db_session: Session):
        for title, day, at in [
            ("late", "2025-09-02", "18:00"),
            ("early", "2025-09-02", "08:00"),
            ("first", "2025-09-01", None),
            ("outside", "2025-10-01", None),
        ]:
            create_event(
                db_session,
                "default",
                EventCreate.model_validate({"title": title, "date": day, "time": at}),
            )

    def test_calendar_order(self, db_session: Session):
        self._seed(db_session)

        titles = [e.title for e in get_user_events(db_session, "default")]

        assert titles[:3] == ["first", "early", "late"]

    def test_range_inclusive(self, db_session: Session):
        self._seed(db_session)

        events = get_events_in_range(db_session, "default", date(2025, 9, 1), date(2025, 9, 2))

        assert {e.title for e in events} == {"first", "early", "late"}

    def test_inverted_range_rejected(self, db_session: Session):
        with pytest.raises(ValidationError):
            get_events_in_range(db_session, "default", date(2025, 9, 2), date(2025, 9, 1))

    def test_update_switching_to_all_day_clears_time(self, db_session: Session):
        event = create_event(
            db_session,
            "default",
            EventCreate.model_validate({"title": "Call", "date": "2025-09-01", "time": "09:30"}),
        )

        updated = update_event(db_session, "default", event.id, EventUpdate.model_validate({"allDay": True}))

        assert updated.time is None
        assert updated.title == "Call"

    def test_update_scoped_to_owner(self, db_session: Session):
        event = create_event(
            db_session, "alice", EventCreate.model_validate({"title": "Mine", "date": "2025-09-01"})
        )

        with pytest.raises(NotFoundError):
            update_event(db_session, "bob", event.id, EventUpdate(title="Theirs"))

    def test_delete(self, db_session: Session):
        event = create_event(
            db_session, "default", EventCreate.model_validate({"title": "Gone", "date": "2025-09-01"})
        )

        delete_event(db_session, "default", event.id)

        assert get_event_by_id(db_session, "default", event.id) is None
        with pytest.raises(NotFoundError):
            delete_event(db_session, "default", event.id)
