"""Image upload service.

Uploads are hashed (MD5 over the whole content) and deduplicated: the same
bytes uploaded twice resolve to the same Image row and only one blob is ever
written. Intrinsic width/height are read with Pillow. Deleting an Image row
also removes its blob; a blob that is already gone does not fail the delete.
"""
from __future__ import annotations

import io
import time
import warnings
from datetime import timedelta
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple

from loguru import logger
from PIL import Image as PILImage, UnidentifiedImageError
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..models import Board, Image, get_session, utcnow
from ..settings import settings
from .errors import NotFound, ValidationFailed
from .storage import STORAGE, content_hash, random_token

ALLOWED_MIME_TYPES = {
    'image/jpeg', 'image/jpg', 'image/png', 'image/gif', 'image/webp', 'image/bmp',
}
# Pillow format name -> (stored mime type, stored extension)
ALLOWED_FORMATS = {
    'jpeg': ('image/jpeg', 'jpg'),
    'png': ('image/png', 'png'),
    'gif': ('image/gif', 'gif'),
    'webp': ('image/webp', 'webp'),
    'bmp': ('image/bmp', 'bmp'),
}
TYPE_ERROR = 'The image must be a file of type: jpeg, jpg, png, gif, webp, bmp.'
HASH_ALGORITHM = 'md5'


def _validate(content: bytes, content_type: Optional[str], name: Optional[str]) -> Tuple[int, int, str, str]:
    """Check limits and decode the image; returns (width, height, mime_type, extension).

    The stored type comes from the decoded content, not from what the client
    claims.
    """
    if not content:
        raise ValidationFailed.field('image', 'The image field is required.')
    if len(content) > settings.max_upload_bytes:
        raise ValidationFailed.field('image', f'The image may not be greater than {settings.max_upload_bytes // 1024} kilobytes.')
    if name is not None and len(name) > 255:
        raise ValidationFailed.field('name', 'The name may not be greater than 255 characters.')
    if (content_type or '').lower() not in ALLOWED_MIME_TYPES:
        raise ValidationFailed.field('image', 'Unsupported file type.')
    try:
        with warnings.catch_warnings():
            warnings.simplefilter('error', PILImage.DecompressionBombWarning)
            with PILImage.open(io.BytesIO(content)) as img:
                width, height = img.size
                detected = (img.format or '').lower()
    except (PILImage.DecompressionBombError, PILImage.DecompressionBombWarning):
        raise ValidationFailed.field('image', 'The image dimensions are too large.')
    except (UnidentifiedImageError, OSError):
        raise ValidationFailed.field('image', 'The image must be an image.')
    if detected not in ALLOWED_FORMATS:
        raise ValidationFailed.field('image', TYPE_ERROR)
    mime_type, ext = ALLOWED_FORMATS[detected]
    return width, height, mime_type, ext


def _storage_path(ext: str) -> str:
    now = utcnow()
    return f"images/{now:%Y}/{now:%m}/{int(time.time())}_{random_token(10)}.{ext}"


def _find_by_hash(session: Session, digest: str) -> Optional[Image]:
    return session.exec(select(Image).where(Image.hash == digest)).first()


def store_image(content: bytes, filename: str, content_type: Optional[str],
                name: Optional[str] = None, width: Optional[int] = None,
                height: Optional[int] = None) -> Tuple[Image, bool]:
    """Persist an uploaded image or reuse an identical one.

    Returns (image, created); created is False on a dedup hit.
    """
    intrinsic_w, intrinsic_h, mime_type, ext = _validate(content, content_type, name)
    digest = content_hash(content, HASH_ALGORITHM)
    with get_session() as session:
        existing = _find_by_hash(session, digest)
        if existing:
            logger.info({"type": "image_dedup_hit", "image_id": existing.id})
            return existing, False

        path = _storage_path(ext)
        STORAGE.put(path, content)
        image = Image(
            name=name or filename,
            original_name=filename,
            path=path,
            mime_type=mime_type,
            size=len(content),
            width=width or intrinsic_w,
            height=height or intrinsic_h,
            hash=digest,
        )
        session.add(image)
        try:
            session.commit()
        except IntegrityError:
            # a concurrent upload of the same bytes won the unique hash
            session.rollback()
            STORAGE.delete(path)
            existing = _find_by_hash(session, digest)
            if existing is None:
                raise
            logger.info({"type": "image_dedup_hit", "image_id": existing.id, "race": True})
            return existing, False
        except Exception:
            session.rollback()
            STORAGE.delete(path)
            raise
        session.refresh(image)
    logger.info({"type": "image_stored", "image_id": image.id, "name": image.name, "size": image.size})
    return image, True


def get_image(image_id: str) -> Image:
    with get_session() as session:
        image = session.get(Image, image_id)
        if image is None:
            raise NotFound("Image not found")
        return image


def list_images() -> List[Image]:
    with get_session() as session:
        return list(session.exec(select(Image).order_by(Image.created_at.desc())))  # type: ignore[attr-defined]


def image_blob_path(image: Image) -> Path:
    if not STORAGE.exists(image.path):
        raise NotFound("File not found")
    return STORAGE.full_path(image.path)


def _delete_rows(session: Session, images: Iterable[Image]) -> int:
    paths = []
    for image in images:
        paths.append(image.path)
        session.delete(image)
    session.commit()
    # blobs go only after the rows are gone
    for path in paths:
        STORAGE.delete(path)
    return len(paths)


def delete_image(image_id: str) -> None:
    with get_session() as session:
        image = session.get(Image, image_id)
        if image is None:
            raise NotFound("Image not found")
        _delete_rows(session, [image])
    logger.info({"type": "image_deleted", "image_id": image_id})


def bulk_delete(ids: List[str]) -> int:
    """Delete all given images; every id must exist or nothing is deleted."""
    if not ids:
        raise ValidationFailed.field('ids', 'The ids field is required.')
    with get_session() as session:
        rows = {img.id: img for img in session.exec(select(Image).where(Image.id.in_(ids)))}  # type: ignore[attr-defined]
        errors = {
            f"ids.{idx}": [f"The selected ids.{idx} is invalid."]
            for idx, image_id in enumerate(ids) if image_id not in rows
        }
        if errors:
            raise ValidationFailed("Validation failed", errors)
        count = _delete_rows(session, rows.values())
    logger.info({"type": "image_bulk_delete", "deleted": count})
    return count


def referenced_image_ids(session: Session) -> Set[str]:
    """Ids of images referenced by any stored board document."""
    refs: Set[str] = set()
    for data in session.exec(select(Board.data)):
        for obj in (data or {}).get('objects') or []:
            if isinstance(obj, dict) and obj.get('type') == 'image' and obj.get('imageId') is not None:
                refs.add(str(obj['imageId']))
    return refs


def cleanup(retention_days: Optional[int] = None, keep_referenced: bool = False) -> int:
    """Delete images created before the retention threshold.

    By default age is the only criterion; keep_referenced additionally spares
    images still used by a board.
    """
    days = retention_days or settings.RETENTION_DAYS
    threshold = utcnow() - timedelta(days=days)
    with get_session() as session:
        stale = list(session.exec(select(Image).where(Image.created_at < threshold)))
        if keep_referenced:
            in_use = referenced_image_ids(session)
            stale = [img for img in stale if img.id not in in_use]
        count = _delete_rows(session, stale)
    logger.info({"type": "image_cleanup", "deleted": count, "retention_days": days})
    return count


__all__ = [
    'store_image', 'get_image', 'list_images', 'image_blob_path', 'delete_image',
    'bulk_delete', 'cleanup', 'referenced_image_ids', 'ALLOWED_MIME_TYPES', 'ALLOWED_FORMATS',
]
