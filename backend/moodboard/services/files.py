"""Generic file upload service (SHA-256 deduplicated)."""
from __future__ import annotations

import mimetypes
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..models import StoredFile, get_session, utcnow
from ..settings import settings
from .errors import NotFound, ValidationFailed
from .storage import STORAGE, content_hash, formatted_size, random_token

HASH_ALGORITHM = 'sha256'
MAX_NAME_LENGTH = 255


def _check_name(name: Optional[str]) -> None:
    if name is not None and len(name) > MAX_NAME_LENGTH:
        raise ValidationFailed.field('name', f'The name may not be greater than {MAX_NAME_LENGTH} characters.')


def _find_by_hash(session: Session, digest: str) -> Optional[StoredFile]:
    return session.exec(select(StoredFile).where(StoredFile.hash == digest)).first()


def store_file(content: bytes, filename: str, content_type: Optional[str],
               name: Optional[str] = None) -> Tuple[StoredFile, bool]:
    if not content:
        raise ValidationFailed.field('file', 'The file field is required.')
    if len(content) > settings.max_upload_bytes:
        raise ValidationFailed.field('file', f'The file may not be greater than {settings.max_upload_bytes // 1024} kilobytes.')
    _check_name(name)

    digest = content_hash(content, HASH_ALGORITHM)
    with get_session() as session:
        existing = _find_by_hash(session, digest)
        if existing:
            logger.info({"type": "file_dedup_hit", "file_id": existing.id})
            return existing, False

        extension = Path(filename or '').suffix.lstrip('.').lower() or None
        blob_name = f"{random_token(40)}.{extension}" if extension else random_token(40)
        path = f"files/{blob_name}"
        mime = content_type or mimetypes.guess_type(filename or '')[0] or 'application/octet-stream'
        STORAGE.put(path, content)
        row = StoredFile(
            name=name or filename,
            filename=blob_name,
            path=path,
            mime_type=mime,
            size=len(content),
            extension=extension,
            hash=digest,
        )
        session.add(row)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            STORAGE.delete(path)
            existing = _find_by_hash(session, digest)
            if existing is None:
                raise
            return existing, False
        except Exception:
            session.rollback()
            STORAGE.delete(path)
            raise
        session.refresh(row)
    logger.info({"type": "file_stored", "file_id": row.id, "name": row.name, "size": row.size})
    return row, True


def get_file(file_id: int) -> StoredFile:
    with get_session() as session:
        row = session.get(StoredFile, file_id)
        if row is None:
            raise NotFound("File not found")
        return row


def rename_file(file_id: int, name: Optional[str]) -> StoredFile:
    _check_name(name)
    with get_session() as session:
        row = session.get(StoredFile, file_id)
        if row is None:
            raise NotFound("File not found")
        if name is not None:
            row.name = name
            row.updated_at = utcnow()
            session.add(row)
            session.commit()
            session.refresh(row)
        return row


def file_blob_path(row: StoredFile) -> Path:
    if not STORAGE.exists(row.path):
        raise NotFound("File not found on disk")
    return STORAGE.full_path(row.path)


def delete_file(file_id: int) -> None:
    with get_session() as session:
        row = session.get(StoredFile, file_id)
        if row is None:
            raise NotFound("File not found")
        path = row.path
        session.delete(row)
        session.commit()
    STORAGE.delete(path)
    logger.info({"type": "file_deleted", "file_id": file_id})


def cleanup(retention_days: Optional[int] = None) -> int:
    days = retention_days or settings.RETENTION_DAYS
    threshold = utcnow() - timedelta(days=days)
    with get_session() as session:
        stale = list(session.exec(select(StoredFile).where(StoredFile.created_at < threshold)))
        paths = [row.path for row in stale]
        for row in stale:
            session.delete(row)
        session.commit()
    for path in paths:
        STORAGE.delete(path)
    logger.info({"type": "file_cleanup", "deleted": len(paths), "retention_days": days})
    return len(paths)


def describe(row: StoredFile, url: str) -> Dict[str, Any]:
    return {
        'id': row.id,
        'name': row.name,
        'filename': row.filename,
        'url': url,
        'size': row.size,
        'mime_type': row.mime_type,
        'extension': row.extension,
        'formatted_size': formatted_size(row.size),
        'is_image': row.mime_type.startswith('image/'),
        'created_at': row.created_at.isoformat() + 'Z',
        'updated_at': row.updated_at.isoformat() + 'Z',
    }


__all__ = ['store_file', 'get_file', 'rename_file', 'file_blob_path', 'delete_file', 'cleanup', 'describe']
