"""User and session entity models."""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, EmailStr, Field as PydanticField
from sqlalchemy import JSON, Column, text
from sqlmodel import Field, SQLModel

from daily_vibe.models.base import UTCDateTime, generate_id, utcnow


class User(SQLModel, table=True):
    """User database model."""

    __tablename__ = "users"

    id: str = Field(default_factory=generate_id, primary_key=True)
    email: str = Field(max_length=255, unique=True, index=True)
    password_hash: str = Field(max_length=255)
    name: str = Field(default="", max_length=255)
    avatar: str | None = Field(default=None)
    preferences: dict[str, Any] | None = Field(
        default_factory=dict,
        sa_column=Column(JSON, server_default=text("'{}'")),
    )
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class UserSession(SQLModel, table=True):
    """Login session. The id is embedded in the bearer token as ``jti``."""

    __tablename__ = "user_sessions"

    id: str = Field(default_factory=generate_id, primary_key=True)
    user_id: str = Field(index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    expires_at: datetime = Field(sa_type=UTCDateTime)
    revoked_at: datetime | None = Field(default=None, sa_type=UTCDateTime)


class UserData(SQLModel, table=True):
    """One key/value entry of a user's stored preferences.

    Keyed by the scoping user id, so the ``default`` user has data too.
    """

    __tablename__ = "user_data"

    user_id: str = Field(primary_key=True)
    key: str = Field(primary_key=True, max_length=100)
    value: Any = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class UserCreate(SQLModel):
    """Schema for user registration."""

    email: EmailStr
    password: str = Field(min_length=8, max_length=72)
    name: str | None = Field(default=None, max_length=255)


class UserLogin(SQLModel):
    """Schema for user login."""

    email: EmailStr
    password: str


class UserResponse(SQLModel):
    """Schema for user response (no password)."""

    id: str
    email: str
    name: str
    avatar: str | None
    preferences: dict[str, Any] | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    """Schema for authentication response."""

    success: bool = True
    user: UserResponse
    token: str
    expires_at: datetime


class UserEnvelope(BaseModel):
    success: bool = True
    user: UserResponse


class UserDataUpdate(BaseModel):
    """Schema for a single preferences key/value write."""

    user_id: str | None = PydanticField(
        default=None, validation_alias=AliasChoices("userId", "user_id")
    )
    key: str = PydanticField(min_length=1, max_length=100)
    value: Any = None


class UserDataEnvelope(BaseModel):
    success: bool = True
    data: dict[str, Any]
