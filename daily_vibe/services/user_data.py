"""Per-user key/value preference storage."""

import logging
from typing import Any

from sqlmodel import Session, select

from daily_vibe.models.base import utcnow
from daily_vibe.models.user import UserData

logger = logging.getLogger(__name__)


def get_user_data(session: Session, user_id: str) -> dict[str, Any]:
    """Get every stored key for the user. Unknown users simply have none."""
    rows = session.exec(select(UserData).where(UserData.user_id == user_id)).all()
    return {row.key: row.value for row in rows}


def set_user_data(session: Session, user_id: str, key: str, value: Any) -> UserData:
    """Insert or overwrite one key of the user's data."""
    entry = session.get(UserData, (user_id, key))
    if entry is None:
        entry = UserData(user_id=user_id, key=key, value=value)
    else:
        entry.value = value
        entry.updated_at = utcnow()
    session.add(entry)
    session.commit()
    session.refresh(entry)

    logger.info("User data saved", extra={"user_id": user_id, "key": key})
    return entry


def delete_user_data(session: Session, user_id: str, key: str) -> bool:
    """Remove one key. Returns False if it was not stored."""
    entry = session.get(UserData, (user_id, key))
    if entry is None:
        return False
    session.delete(entry)
    session.commit()
    return True
