"""Authentication service for user management, JWT generation and sessions."""

import logging
import re
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt
from sqlmodel import Session, select

from daily_vibe.config import get_settings
from daily_vibe.errors import UnauthorizedError, ValidationError
from daily_vibe.models.base import generate_id, utcnow
from daily_vibe.models.user import AuthResponse, User, UserCreate, UserResponse, UserSession

logger = logging.getLogger(__name__)

# Password policy regex: at least one uppercase, one lowercase, one digit
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).{8,}$")

# Email validation (RFC 5322 simplified)
EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"
)

# bcrypt ignores everything past this many bytes
BCRYPT_MAX_BYTES = 72


class SessionState(str, Enum):
    """Lifecycle of a login session as seen by the auth gateway."""

    ABSENT = "absent"
    VALID = "valid"
    EXPIRED = "expired"
    REVOKED = "revoked"


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password_bytes, salt).decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    password_bytes = plain_password.encode('utf-8')
    hashed_bytes = hashed_password.encode('utf-8')
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        return False
    return bcrypt.checkpw(password_bytes, hashed_bytes)


def validate_email(email: str) -> bool:
    """Validate email format (RFC 5322 simplified)."""
    return bool(EMAIL_PATTERN.match(email))


def validate_password_policy(password: str) -> tuple[bool, str]:
    """
    Validate password meets policy requirements.
    Returns (is_valid, error_message).
    """
    if len(password) < 8:
        return False, "Password must be at least 8 characters long"
    if len(password.encode('utf-8')) > BCRYPT_MAX_BYTES:
        return False, "Password must be at most 72 bytes long"
    if not PASSWORD_PATTERN.match(password):
        return False, "Password must contain at least one uppercase letter, one lowercase letter, and one digit"
    return True, ""


def generate_jwt(user_id: str, session_id: str) -> tuple[str, datetime]:
    """
    Generate a JWT token bound to a session row.
    Returns (token, expires_at).
    """
    settings = get_settings()
    issued_at = utcnow()
    expires_at = issued_at + timedelta(hours=settings.JWT_EXPIRATION_HOURS)
    payload = {
        "sub": user_id,
        "jti": session_id,
        "exp": expires_at,
        "iat": issued_at,
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_at


def decode_jwt(token: str) -> dict[str, Any]:
    """Decode and verify a token signature and expiry.

    Raises:
        ExpiredSignatureError: If the token is past its ``exp``
        JWTError: If the token is malformed or the signature is wrong
    """
    settings = get_settings()
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


def get_user_by_email(session: Session, email: str) -> User | None:
    """Get a user by email address."""
    return session.exec(select(User).where(User.email == email.lower())).first()


def get_user_by_id(session: Session, user_id: str) -> User | None:
    """Get a user by id."""
    return session.get(User, user_id)


def create_user(session: Session, user_data: UserCreate) -> User:
    """
    Create a new user.

    Raises:
        ValidationError: If the email is taken or the password breaks policy
    """
    is_valid, message = validate_password_policy(user_data.password)
    if not is_valid:
        raise ValidationError(message)

    email = user_data.email.lower()
    if get_user_by_email(session, email) is not None:
        raise ValidationError("User already exists")

    user = User(
        email=email,
        password_hash=hash_password(user_data.password),
        name=user_data.name or "",
    )
    session.add(user)
    session.commit()
    session.refresh(user)

    logger.info("User registered", extra={"user_id": user.id})
    return user


def authenticate_user(session: Session, email: str, password: str) -> User | None:
    """
    Authenticate a user by email and password.
    Returns the user if valid, None otherwise.
    """
    user = get_user_by_email(session, email)
    if user is None:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def create_session(session: Session, user: User) -> tuple[str, UserSession]:
    """Open a login session for the user and sign a token for it."""
    session_id = generate_id()
    token, expires_at = generate_jwt(user.id, session_id)

    user_session = UserSession(id=session_id, user_id=user.id, expires_at=expires_at)
    session.add(user_session)
    session.commit()
    session.refresh(user_session)

    logger.info("Session opened", extra={"user_id": user.id, "session_id": session_id})
    return token, user_session


def create_auth_response(session: Session, user: User) -> AuthResponse:
    """Create an authentication response with a fresh session token."""
    token, user_session = create_session(session, user)
    return AuthResponse(
        user=UserResponse.model_validate(user),
        token=token,
        expires_at=user_session.expires_at,
    )


def get_session_state(
    session: Session, token: str | None
) -> tuple[SessionState, UserSession | None]:
    """Classify a bearer token against the session store.

    A token whose signature does not verify, or whose session row is
    missing, is treated as no session at all.
    """
    if not token:
        return SessionState.ABSENT, None

    try:
        claims = decode_jwt(token)
    except ExpiredSignatureError:
        return SessionState.EXPIRED, None
    except JWTError:
        return SessionState.ABSENT, None

    session_id = claims.get("jti")
    if not session_id:
        return SessionState.ABSENT, None

    user_session = session.get(UserSession, session_id)
    if user_session is None or user_session.user_id != claims.get("sub"):
        return SessionState.ABSENT, None
    if user_session.revoked_at is not None:
        return SessionState.REVOKED, user_session
    if user_session.expires_at <= utcnow():
        return SessionState.EXPIRED, user_session
    return SessionState.VALID, user_session


def verify_token(session: Session, token: str | None) -> User:
    """
    Resolve a bearer token to its user.

    Raises:
        UnauthorizedError: Unless the session is valid and its user exists
    """
    state, user_session = get_session_state(session, token)
    if state is not SessionState.VALID:
        raise UnauthorizedError()

    user = get_user_by_id(session, user_session.user_id)
    if user is None:
        raise UnauthorizedError()
    return user


def revoke_session(session: Session, token: str | None) -> bool:
    """Revoke the session behind a token. Returns False if it was not valid."""
    state, user_session = get_session_state(session, token)
    if state is not SessionState.VALID:
        return False

    user_session.revoked_at = utcnow()
    session.add(user_session)
    session.commit()

    logger.info(
        "Session revoked",
        extra={"user_id": user_session.user_id, "session_id": user_session.id},
    )
    return True


def cleanup_expired_sessions(session: Session) -> int:
    """Delete sessions that are expired or revoked. Returns the count removed."""
    now = utcnow()
    stale = session.exec(
        select(UserSession).where(
            (UserSession.expires_at <= now) | (UserSession.revoked_at.is_not(None))
        )
    ).all()
    for user_session in stale:
        session.delete(user_session)
    session.commit()

    if stale:
        logger.info("Expired sessions removed", extra={"count": len(stale)})
    return len(stale)

