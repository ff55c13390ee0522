"""API dependencies for dependency injection.

The auth gateway lives here. Endpoints that require a login depend on
``CurrentUser`` and reject bad tokens with 401. Auth-optional endpoints
depend on ``TokenUserId``, which silently resolves to None for an absent,
expired or revoked session so the handler can fall back to the
``default`` user.
"""

from collections.abc import Generator
from datetime import date
from typing import Annotated

from fastapi import Depends, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from daily_vibe.db import Database, get_database
from daily_vibe.errors import ValidationError
from daily_vibe.models.base import DEFAULT_USER_ID
from daily_vibe.models.user import User
from daily_vibe.services.auth import SessionState, get_session_state, verify_token

security = HTTPBearer(auto_error=False)


def get_db_session(
    database: Annotated[Database, Depends(get_database)],
) -> Generator[Session, None, None]:
    """Get database session dependency."""
    database.initialize()
    yield from database.session()


DBSession = Annotated[Session, Depends(get_db_session)]
BearerCredentials = Annotated[HTTPAuthorizationCredentials | None, Depends(security)]


def get_bearer_token(credentials: BearerCredentials) -> str | None:
    """Extract the raw bearer token, if one was sent."""
    if credentials is None:
        return None
    return credentials.credentials


BearerToken = Annotated[str | None, Depends(get_bearer_token)]


def get_current_user(session: DBSession, token: BearerToken) -> User:
    """Get current authenticated user from the bearer token."""
    return verify_token(session, token)


CurrentUser = Annotated[User, Depends(get_current_user)]


def get_token_user_id(session: DBSession, token: BearerToken) -> str | None:
    """Get the user id of a valid session, or None."""
    state, user_session = get_session_state(session, token)
    if state is not SessionState.VALID:
        return None
    return user_session.user_id


TokenUserId = Annotated[str | None, Depends(get_token_user_id)]
UserIdQuery = Annotated[str | None, Query(alias="userId")]


def resolve_user_id(token_user_id: str | None, *candidates: str | None) -> str:
    """Pick the effective user id.

    The token wins, then the first non-blank explicit value from the query
    or body, then the ``default`` user.
    """
    if token_user_id:
        return token_user_id
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return DEFAULT_USER_ID


def parse_range_bound(value: str | None) -> date | None:
    """Parse a ``YYYY-MM-DD`` bound, tolerating a trailing ISO time part."""
    if value is None or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip().split("T")[0])
    except ValueError:
        raise ValidationError(f"Invalid date: {value}") from None


def get_optional_date_range(
    from_: Annotated[str | None, Query(alias="from")] = None,
    to: Annotated[str | None, Query()] = None,
    start_date: Annotated[str | None, Query(alias="startDate")] = None,
    end_date: Annotated[str | None, Query(alias="endDate")] = None,
) -> tuple[date, date] | None:
    """Read ``from``/``to`` (or ``startDate``/``endDate``) query bounds.

    Returns None when no bound is given at all.

    Raises:
        ValidationError: If only one bound is given or a bound is malformed
    """
    start = parse_range_bound(from_) or parse_range_bound(start_date)
    end = parse_range_bound(to) or parse_range_bound(end_date)
    if start is None and end is None:
        return None
    if start is None or end is None:
        raise ValidationError("Both from and to dates are required")
    return start, end


def get_date_range(
    date_range: Annotated[tuple[date, date] | None, Depends(get_optional_date_range)],
) -> tuple[date, date]:
    """Like :func:`get_optional_date_range`, but both bounds are required."""
    if date_range is None:
        raise ValidationError("Both from and to dates are required")
    return date_range


OptionalDateRange = Annotated[tuple[date, date] | None, Depends(get_optional_date_range)]
DateRange = Annotated[tuple[date, date], Depends(get_date_range)]
