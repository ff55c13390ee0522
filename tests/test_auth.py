"""Tests for users, password hashing and the session state machine."""

from datetime import timedelta

import pytest
from jose import jwt
from sqlmodel import Session

from daily_vibe.errors import UnauthorizedError, ValidationError
from daily_vibe.models.base import utcnow
from daily_vibe.models.user import UserCreate, UserSession
from daily_vibe.services.auth import (
    SessionState,
    authenticate_user,
    cleanup_expired_sessions,
    create_session,
    create_user,
    generate_jwt,
    get_session_state,
    hash_password,
    revoke_session,
    validate_password_policy,
    verify_password,
    verify_token,
)
from daily_vibe.services.user_data import delete_user_data, get_user_data, set_user_data

TEST_PASSWORD = "Secret123"


class TestPasswords:
    """Tests for hashing and the password policy."""

    def test_hash_round_trip(self):
        hashed = hash_password("Secret123")

        assert hashed != "Secret123"
        assert verify_password("Secret123", hashed)
        assert not verify_password("Secret124", hashed)

    def test_policy(self):
        assert validate_password_policy("Secret123") == (True, "")
        assert validate_password_policy("short1A")[0] is False
        assert validate_password_policy("alllowercase1")[0] is False
        assert validate_password_policy("A1" + "é" * 40)[0] is False


class TestUsers:
    """Tests for registration and credential checks."""

    def test_duplicate_email_rejected(self, db_session: Session, test_user):
        with pytest.raises(ValidationError):
            create_user(
                db_session,
                UserCreate(email="VIBE@example.com", password=TEST_PASSWORD, name="Again"),
            )

    def test_authenticate(self, db_session: Session, test_user):
        assert authenticate_user(db_session, "vibe@example.com", TEST_PASSWORD).id == test_user.id
        assert authenticate_user(db_session, "vibe@example.com", "Wrong1234") is None
        assert authenticate_user(db_session, "nobody@example.com", TEST_PASSWORD) is None


class TestSessionStates:
    """absent -> valid -> expired | revoked."""

    def test_absent_without_token(self, db_session: Session):
        assert get_session_state(db_session, None) == (SessionState.ABSENT, None)

    def test_garbage_token_is_absent(self, db_session: Session):
        state, _ = get_session_state(db_session, "not-a-jwt")

        assert state is SessionState.ABSENT

    def test_login_makes_valid_session(self, db_session: Session, test_user):
        token, user_session = create_session(db_session, test_user)

        state, found = get_session_state(db_session, token)

        assert state is SessionState.VALID
        assert found.id == user_session.id
        assert verify_token(db_session, token).id == test_user.id

    def test_token_without_session_row_is_absent(self, db_session: Session, test_user):
        token, _ = generate_jwt(test_user.id, "never-stored")

        assert get_session_state(db_session, token)[0] is SessionState.ABSENT

    def test_wrong_signature_is_absent(self, db_session: Session, test_user, settings):
        token = jwt.encode(
            {"sub": test_user.id, "jti": "x", "exp": utcnow() + timedelta(hours=1)},
            "another-secret",
            algorithm=settings.JWT_ALGORITHM,
        )

        assert get_session_state(db_session, token)[0] is SessionState.ABSENT

    def test_expired_token(self, db_session: Session, test_user, settings):
        token = jwt.encode(
            {"sub": test_user.id, "jti": "old", "exp": utcnow() - timedelta(minutes=1)},
            settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
        )

        assert get_session_state(db_session, token)[0] is SessionState.EXPIRED
        with pytest.raises(UnauthorizedError):
            verify_token(db_session, token)

    def test_expired_session_row(self, db_session: Session, test_user):
        token, user_session = create_session(db_session, test_user)
        user_session.expires_at = utcnow() - timedelta(seconds=1)
        db_session.add(user_session)
        db_session.commit()

        assert get_session_state(db_session, token)[0] is SessionState.EXPIRED

    def test_logout_revokes(self, db_session: Session, test_user):
        token, _ = create_session(db_session, test_user)

        assert revoke_session(db_session, token) is True

        assert get_session_state(db_session, token)[0] is SessionState.REVOKED
        assert revoke_session(db_session, token) is False
        with pytest.raises(UnauthorizedError):
            verify_token(db_session, token)

    def test_cleanup_removes_dead_sessions(self, db_session: Session, test_user):
        live_token, live = create_session(db_session, test_user)
        revoked_token, _ = create_session(db_session, test_user)
        revoke_session(db_session, revoked_token)
        _, expired = create_session(db_session, test_user)
        expired.expires_at = utcnow() - timedelta(hours=1)
        db_session.add(expired)
        db_session.commit()

        assert cleanup_expired_sessions(db_session) == 2
        assert db_session.get(UserSession, live.id) is not None
        assert get_session_state(db_session, live_token)[0] is SessionState.VALID


class TestUserData:
    """Per-user key/value storage."""

    def test_set_get_delete(self, db_session: Session):
        set_user_data(db_session, "default", "theme", "dark")
        set_user_data(db_session, "default", "layout", {"columns": 3})
        set_user_data(db_session, "default", "theme", "light")

        assert get_user_data(db_session, "default") == {"theme": "light", "layout": {"columns": 3}}
        assert get_user_data(db_session, "someone-else") == {}

        assert delete_user_data(db_session, "default", "theme") is True
        assert delete_user_data(db_session, "default", "theme") is False
        assert get_user_data(db_session, "default") == {"layout": {"columns": 3}}
