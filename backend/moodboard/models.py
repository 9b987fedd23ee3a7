"""Database models and session setup.

Provides a lightweight abstraction using SQLModel so tests can run against
SQLite by default while production can point to Postgres via DATABASE_URL.

Environment:
  DATABASE_URL (default: sqlite:///<STORAGE_PATH>/app.db)
  ECHO_SQL (optional) set to '1' to echo statements

Three tables back the service: moodboards (board documents), images and
files (uploaded blobs, deduplicated by content hash). Board documents only
reference images by id; nothing cascades between the tables.
"""
from __future__ import annotations

import os
import uuid
from datetime import datetime, timezone
from typing import Optional
from pathlib import Path
from sqlmodel import SQLModel, Field, create_engine, Session  # type: ignore[import-untyped]
from sqlalchemy import Column, DateTime, JSON, Index, Text

from .settings import settings

STORAGE_DIR = Path(settings.STORAGE_PATH)
STORAGE_DIR.mkdir(parents=True, exist_ok=True)

DATABASE_URL = settings.DATABASE_URL
ECHO = os.getenv("ECHO_SQL", "0") == "1"


def create_engine_from_env(url: str | None = None):
    """Create a SQLModel/SQLAlchemy engine from settings.

    Passing a url overrides settings resolution (useful for tests and the
    migration runner). SQLite connections disable check_same_thread.
    """
    resolved = url or DATABASE_URL
    connect_args = {"check_same_thread": False} if resolved.startswith("sqlite") else {}
    return create_engine(resolved, echo=ECHO, connect_args=connect_args)


engine = create_engine_from_env(DATABASE_URL)


def utcnow() -> datetime:
    """Naive UTC timestamp; every stored datetime uses this clock."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _timestamp(index: bool = False):
    # naive UTC in a plain DateTime column, whatever sqlmodel maps datetime to
    return Field(default_factory=utcnow, sa_column=Column(DateTime, nullable=False, index=index))


class Board(SQLModel, table=True):  # type: ignore[misc]
    """A persisted moodboard canvas.

    `board_id` is the public, immutable identifier used by the editor;
    `version` starts at 1 and grows by one on every successful update.
    """
    __tablename__ = "moodboards"
    __table_args__ = (
        Index("ix_moodboards_board_id_updated_at", "board_id", "updated_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    board_id: str = Field(index=True, unique=True, max_length=64)
    name: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    data: dict = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    settings: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))
    version: int = Field(default=1)
    last_saved_at: datetime = _timestamp(index=True)
    created_at: datetime = _timestamp()
    updated_at: datetime = _timestamp()


class Image(SQLModel, table=True):  # type: ignore[misc]
    __tablename__ = "images"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str
    original_name: str
    path: str
    mime_type: str
    size: int
    width: int
    height: int
    hash: Optional[str] = Field(default=None, index=True, unique=True, description="MD5 of the content, used for dedup")
    created_at: datetime = _timestamp(index=True)
    updated_at: datetime = _timestamp()


class StoredFile(SQLModel, table=True):  # type: ignore[misc]
    """Generic uploaded file (not necessarily an image)."""
    __tablename__ = "files"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    filename: str
    path: str
    mime_type: str = Field(index=True)
    size: int
    extension: Optional[str] = Field(default=None)
    hash: Optional[str] = Field(default=None, index=True, unique=True, description="SHA-256 of the content, used for dedup")
    created_at: datetime = _timestamp(index=True)
    updated_at: datetime = _timestamp()


def create_db():  # idempotent
    if settings.RUN_MIGRATIONS:
        from .migrations.runner import run_migrations
        run_migrations(DATABASE_URL)
        return
    SQLModel.metadata.create_all(engine)


def get_session() -> Session:
    return Session(engine)


__all__ = [
    'Board', 'Image', 'StoredFile',
    'create_engine_from_env', 'create_db', 'get_session', 'utcnow', 'engine',
]
