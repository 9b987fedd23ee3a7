"""Blob storage on the local filesystem.

Blobs live under STORAGE_PATH and are addressed by a relative path that is
stored on the owning Image / StoredFile row:
  images/<YYYY>/<MM>/<unix>_<rand10>.<ext>
  files/<rand40>.<ext>
"""
from __future__ import annotations

import hashlib
import secrets
import string
from pathlib import Path

from ..settings import settings

_ALPHABET = string.ascii_letters + string.digits


def random_token(length: int) -> str:
    return ''.join(secrets.choice(_ALPHABET) for _ in range(length))


def content_hash(data: bytes, algorithm: str = "sha256") -> str:
    """Whole-content digest used as the dedup key."""
    return hashlib.new(algorithm, data).hexdigest()


def formatted_size(size: int) -> str:
    if size >= 1024 ** 3:
        return f"{size / 1024 ** 3:.2f} GB"
    if size >= 1024 ** 2:
        return f"{size / 1024 ** 2:.2f} MB"
    if size >= 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size} B"


class BlobStorage:
    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def full_path(self, path: str) -> Path:
        resolved = (self.root / path).resolve()
        if self.root.resolve() not in resolved.parents:
            raise ValueError(f"blob path escapes storage root: {path}")
        return resolved

    def put(self, path: str, data: bytes) -> Path:
        dest = self.full_path(path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(data)
        return dest

    def exists(self, path: str) -> bool:
        return self.full_path(path).is_file()

    def delete(self, path: str) -> bool:
        """Remove a blob; a blob that is already gone is not an error."""
        target = self.full_path(path)
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        return True


STORAGE = BlobStorage(settings.STORAGE_PATH)

__all__ = ['BlobStorage', 'STORAGE', 'random_token', 'content_hash', 'formatted_size']
