"""Authentication API endpoints."""

from fastapi import APIRouter, status

from daily_vibe.api.deps import BearerToken, CurrentUser, DBSession
from daily_vibe.errors import UnauthorizedError, ValidationError
from daily_vibe.models.common import MessageEnvelope
from daily_vibe.models.user import AuthResponse, UserCreate, UserEnvelope, UserLogin, UserResponse
from daily_vibe.services.auth import (
    authenticate_user,
    create_auth_response,
    create_user,
    revoke_session,
    validate_email,
)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_user(session: DBSession, user_data: UserCreate) -> AuthResponse:
    """Register a new user account and sign them in."""
    # Validate email format
    if not validate_email(user_data.email):
        raise ValidationError("Invalid email format")

    user = create_user(session, user_data)
    return create_auth_response(session, user)


@router.post("/login", response_model=AuthResponse)
def login_user(session: DBSession, credentials: UserLogin) -> AuthResponse:
    """Sign in with email and password."""
    user = authenticate_user(session, credentials.email, credentials.password)
    if user is None:
        # Generic error message to prevent enumeration
        raise UnauthorizedError("Invalid credentials")

    return create_auth_response(session, user)


@router.post("/verify", response_model=UserEnvelope)
def verify_user(current_user: CurrentUser) -> UserEnvelope:
    """Check a bearer token and return its user."""
    return UserEnvelope(user=UserResponse.model_validate(current_user))


@router.post("/logout", response_model=MessageEnvelope)
def logout_user(session: DBSession, current_user: CurrentUser, token: BearerToken) -> MessageEnvelope:
    """Sign out by revoking the session behind the token."""
    revoke_session(session, token)
    return MessageEnvelope(message="Logged out successfully")
