"""Stored file and task attachment models."""

from datetime import datetime

from pydantic import BaseModel
from sqlmodel import Field, SQLModel

from daily_vibe.models.base import DEFAULT_USER_ID, UTCDateTime, generate_id, utcnow


class StoredFile(SQLModel, table=True):
    """Metadata row for an uploaded file. The bytes live on disk."""

    __tablename__ = "files"

    id: str = Field(default_factory=generate_id, primary_key=True)
    user_id: str = Field(default=DEFAULT_USER_ID, index=True)
    original_name: str
    stored_name: str
    mime_type: str | None = Field(default=None)
    size: int = Field(default=0)
    path: str
    url: str
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class TaskAttachment(SQLModel, table=True):
    """Link between a task and a stored file.

    No database-level foreign keys: link rows are cleaned up by the
    repository when either side is deleted.
    """

    __tablename__ = "task_attachments"

    task_id: str = Field(primary_key=True)
    file_id: str = Field(primary_key=True, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)


class StoredFileResponse(SQLModel):
    """Schema for file metadata response."""

    id: str
    user_id: str
    original_name: str
    stored_name: str
    mime_type: str | None
    size: int
    url: str
    created_at: datetime

    model_config = {"from_attributes": True}


class FileEnvelope(BaseModel):
    success: bool = True
    file: StoredFileResponse


class FileListEnvelope(BaseModel):
    success: bool = True
    files: list[StoredFileResponse]
