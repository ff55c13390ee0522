"""Per-user key/value data endpoints. Auth-optional."""

from fastapi import APIRouter

from daily_vibe.api.deps import DBSession, TokenUserId, UserIdQuery, resolve_user_id
from daily_vibe.errors import NotFoundError
from daily_vibe.models.common import MessageEnvelope
from daily_vibe.models.user import UserDataEnvelope, UserDataUpdate
from daily_vibe.services.user_data import delete_user_data, get_user_data, set_user_data

router = APIRouter(prefix="/api/user", tags=["Users"])


@router.get("/data", response_model=UserDataEnvelope)
def get_user_data_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    user_id: UserIdQuery = None,
) -> UserDataEnvelope:
    """Get every stored key for the user."""
    return UserDataEnvelope(data=get_user_data(session, resolve_user_id(token_user_id, user_id)))


@router.post("/data", response_model=MessageEnvelope)
def set_user_data_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    payload: UserDataUpdate,
) -> MessageEnvelope:
    """Store one key for the user, replacing any previous value."""
    set_user_data(
        session, resolve_user_id(token_user_id, payload.user_id), payload.key, payload.value
    )
    return MessageEnvelope(message="Data saved")


@router.delete("/data/{key}", response_model=MessageEnvelope)
def delete_user_data_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    key: str,
    user_id: UserIdQuery = None,
) -> MessageEnvelope:
    """Remove one stored key."""
    if not delete_user_data(session, resolve_user_id(token_user_id, user_id), key):
        raise NotFoundError("Data key not found")
    return MessageEnvelope(message="Data deleted")
