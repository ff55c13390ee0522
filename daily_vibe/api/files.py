"""File upload, download and task attachment endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse

from daily_vibe.api.deps import DBSession, TokenUserId, UserIdQuery, resolve_user_id
from daily_vibe.config import Settings, get_settings
from daily_vibe.errors import NotFoundError, ValidationError
from daily_vibe.models.common import MessageEnvelope
from daily_vibe.models.file import FileEnvelope, FileListEnvelope, StoredFileResponse
from daily_vibe.services.attachments import (
    add_attachment,
    list_task_attachments,
    remove_attachment,
)
from daily_vibe.services.files import delete_file, get_file, resolve_stored_path, store_file

router = APIRouter(tags=["Files"])

AppSettings = Annotated[Settings, Depends(get_settings)]


@router.post("/api/upload", response_model=FileListEnvelope)
def upload_files_endpoint(
    session: DBSession,
    settings: AppSettings,
    token_user_id: TokenUserId,
    files: Annotated[list[UploadFile], File()],
    user_id: Annotated[str | None, Form(alias="userId")] = None,
) -> FileListEnvelope:
    """Store uploaded files and return their ids and URLs."""
    if len(files) > settings.MAX_FILES:
        raise ValidationError(f"At most {settings.MAX_FILES} files may be uploaded at once")

    user_id = resolve_user_id(token_user_id, user_id)
    stored = [
        store_file(
            session,
            user_id,
            upload.filename or "upload",
            upload.content_type,
            upload.file,
            settings.UPLOAD_DIR,
            settings.MAX_FILE_SIZE,
        )
        for upload in files
    ]
    return FileListEnvelope(files=[StoredFileResponse.model_validate(f) for f in stored])


@router.get("/api/files/{file_id}", response_model=FileEnvelope)
def get_file_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    file_id: str,
    user_id: UserIdQuery = None,
) -> FileEnvelope:
    """Get a file's metadata."""
    stored = get_file(session, resolve_user_id(token_user_id, user_id), file_id)
    if stored is None:
        raise NotFoundError("File not found")
    return FileEnvelope(file=StoredFileResponse.model_validate(stored))


@router.delete("/api/files/{file_id}", response_model=MessageEnvelope)
def delete_file_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    file_id: str,
    user_id: UserIdQuery = None,
) -> MessageEnvelope:
    """Delete a file, its attachment links and its stored bytes."""
    delete_file(session, resolve_user_id(token_user_id, user_id), file_id)
    return MessageEnvelope(message="File deleted successfully")


@router.get("/uploads/{stored_name}")
def serve_upload_endpoint(settings: AppSettings, stored_name: str) -> FileResponse:
    """Serve the bytes of an uploaded file."""
    path = resolve_stored_path(settings.UPLOAD_DIR, stored_name)
    if path is None or not path.is_file():
        raise NotFoundError("File not found")
    return FileResponse(path)


@router.get("/api/tasks/{task_id}/attachments", response_model=FileListEnvelope)
def list_attachments_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    task_id: str,
    user_id: UserIdQuery = None,
) -> FileListEnvelope:
    """List the files attached to one of the user's tasks."""
    files = list_task_attachments(session, resolve_user_id(token_user_id, user_id), task_id)
    return FileListEnvelope(files=[StoredFileResponse.model_validate(f) for f in files])


@router.post("/api/tasks/{task_id}/attachments/{file_id}", response_model=MessageEnvelope)
def add_attachment_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    task_id: str,
    file_id: str,
    user_id: UserIdQuery = None,
) -> MessageEnvelope:
    """Attach a stored file to a task."""
    add_attachment(session, resolve_user_id(token_user_id, user_id), task_id, file_id)
    return MessageEnvelope(message="Attachment added successfully")


@router.delete("/api/tasks/{task_id}/attachments/{file_id}", response_model=MessageEnvelope)
def remove_attachment_endpoint(
    session: DBSession,
    token_user_id: TokenUserId,
    task_id: str,
    file_id: str,
    user_id: UserIdQuery = None,
) -> MessageEnvelope:
    """Detach a file from a task. The file itself is kept.

    Succeeds whether or not the link existed.
    """
    remove_attachment(session, resolve_user_id(token_user_id, user_id), task_id, file_id)
    return MessageEnvelope(message="Attachment removed successfully")
