"""File service: upload storage and metadata rows."""

import logging
from pathlib import Path
from typing import BinaryIO

from sqlmodel import Session, select

from daily_vibe.errors import NotFoundError, ValidationError
from daily_vibe.models.base import generate_id
from daily_vibe.models.file import StoredFile
from daily_vibe.services.attachments import remove_file_links

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


def resolve_stored_path(upload_dir: str | Path, stored_name: str) -> Path | None:
    """Map a stored file name to its path inside the upload directory.

    Returns None for names that would escape the directory.
    """
    base = Path(upload_dir).resolve()
    candidate = (base / stored_name).resolve()
    if candidate.parent != base:
        return None
    return candidate


def store_file(
    session: Session,
    user_id: str,
    original_name: str,
    mime_type: str | None,
    stream: BinaryIO,
    upload_dir: str | Path,
    max_size: int,
) -> StoredFile:
    """Stream an upload to disk and record its metadata.

    Raises:
        ValidationError: If the file is larger than ``max_size`` bytes
    """
    directory = Path(upload_dir)
    directory.mkdir(parents=True, exist_ok=True)

    file_id = generate_id()
    stored_name = f"{file_id}{Path(original_name).suffix.lower()}"
    path = directory / stored_name

    size = 0
    with path.open("wb") as out:
        while chunk := stream.read(CHUNK_SIZE):
            size += len(chunk)
            if size > max_size:
                break
            out.write(chunk)

    if size > max_size:
        path.unlink(missing_ok=True)
        raise ValidationError(f"File '{original_name}' exceeds the {max_size} byte limit")

    stored = StoredFile(
        id=file_id,
        user_id=user_id,
        original_name=original_name,
        stored_name=stored_name,
        mime_type=mime_type,
        size=size,
        path=str(path),
        url=f"/uploads/{stored_name}",
    )
    session.add(stored)
    session.commit()
    session.refresh(stored)

    logger.info(
        "File stored",
        extra={"file_id": file_id, "user_id": user_id, "size": size},
    )
    return stored


def get_file(session: Session, user_id: str, file_id: str) -> StoredFile | None:
    """Get a file record owned by the user."""
    return session.exec(
        select(StoredFile).where(StoredFile.id == file_id, StoredFile.user_id == user_id)
    ).first()


def delete_file(session: Session, user_id: str, file_id: str) -> None:
    """Delete a file record, its attachment links and its bytes.

    Raises:
        NotFoundError: If the user owns no such file
    """
    stored = get_file(session, user_id, file_id)
    if stored is None:
        raise NotFoundError("File not found")

    remove_file_links(session, file_id)
    session.delete(stored)
    session.commit()

    Path(stored.path).unlink(missing_ok=True)
    logger.info("File deleted", extra={"file_id": file_id, "user_id": user_id})

