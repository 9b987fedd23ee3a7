"""Board document service.

Boards are stored as one JSON document per row. Before persisting, image
objects that reference an uploaded Image by `imageId` are stripped of inline
payloads (`src`, `base64`); on load those references are resolved back into
fully-qualified URLs. Image references are weak: a deleted Image leaves the
board intact and the object is flagged at read time instead.

Every successful update bumps `version` by exactly one. Updates are
last-write-wins unless the caller passes `expected_version`, which turns the
update into a compare-and-swap.
"""
from __future__ import annotations

import copy
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from jsonschema import ValidationError as SchemaError, validate as json_validate
from loguru import logger
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ..models import Board, Image, get_session, utcnow
from .errors import NotFound, SaveFailed, ServiceError, ValidationFailed, VersionConflict
from .storage import random_token

SHORT_ID_LENGTH = 11
DEFAULT_BOARD_ID = "default"
UNTITLED_NAME = "Untitled Board"
NEW_BOARD_NAME = "New Board"
MISSING_IMAGE_ERROR = "Image not found"

DOCUMENT_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": ["string", "null"], "maxLength": 255},
        "description": {"type": ["string", "null"]},
        "objects": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string"},
                    "imageId": {"type": ["string", "null"]},
                },
            },
        },
    },
}

ImageUrl = Callable[[str], str]


def default_settings() -> Dict[str, Any]:
    return {
        'backgroundColor': '#F5F5F5',
        'grid': {'type': 'line', 'size': 20, 'visible': True, 'color': '#E0E0E0'},
        'zoom': {'min': 0.1, 'max': 5.0, 'default': 1.0},
        'canvas': {'width': 2000, 'height': 2000},
    }


def _iso(value: datetime) -> str:
    return value.strftime('%Y-%m-%dT%H:%M:%S.%fZ')


def _is_image_ref(obj: Any) -> bool:
    return isinstance(obj, dict) and obj.get('type') == 'image' and obj.get('imageId') is not None


def validate_document(document: Any, field: str = 'boardData') -> None:
    try:
        json_validate(document, DOCUMENT_SCHEMA)
    except SchemaError as e:
        path = '.'.join(str(p) for p in e.absolute_path)
        raise ValidationFailed.field(f"{field}.{path}" if path else field, e.message)


def strip_image_payloads(document: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of the document with inline image data removed.

    Image objects without an imageId keep their src: there is nothing to
    restore it from on load.
    """
    cleaned = copy.deepcopy(document)
    for obj in cleaned.get('objects') or []:
        if _is_image_ref(obj):
            obj.pop('src', None)
            obj.pop('base64', None)
    return cleaned


def restore_image_urls(session: Session, objects: List[Any], image_url: ImageUrl) -> List[Any]:
    refs = [obj for obj in objects if _is_image_ref(obj)]
    if not refs:
        return objects
    ids = sorted({str(obj['imageId']) for obj in refs})
    found = {img.id: img for img in session.exec(select(Image).where(Image.id.in_(ids)))}  # type: ignore[attr-defined]
    for obj in refs:
        image = found.get(str(obj['imageId']))
        if image is None:
            obj['src'] = None
            obj['error'] = MISSING_IMAGE_ERROR
            continue
        # width/height stay as the user resized them
        obj['src'] = image_url(image.id)
        obj['name'] = image.name
    return objects


def full_data(board: Board) -> Dict[str, Any]:
    return {
        'id': board.board_id,
        'name': board.name,
        'description': board.description,
        'objects': copy.deepcopy((board.data or {}).get('objects') or []),
        'settings': board.settings,
        'version': board.version,
        'created': _iso(board.created_at),
        'lastSaved': _iso(board.last_saved_at),
        'updated': _iso(board.updated_at),
    }


def summary(board: Board) -> Dict[str, Any]:
    return {
        'id': board.board_id,
        'name': board.name,
        'description': board.description,
        'version': board.version,
        'created': _iso(board.created_at),
        'updated': _iso(board.updated_at),
        'lastSaved': _iso(board.last_saved_at),
    }


def object_counts(board: Board) -> Dict[str, Any]:
    objects = (board.data or {}).get('objects') or []
    by_type: Dict[str, int] = {}
    for obj in objects:
        kind = (obj.get('type') if isinstance(obj, dict) else None) or 'unknown'
        by_type[kind] = by_type.get(kind, 0) + 1
    return {'total': len(objects), 'by_type': by_type}


def generate_short_id(session: Session) -> str:
    while True:
        candidate = random_token(SHORT_ID_LENGTH)
        if session.exec(select(Board.id).where(Board.board_id == candidate)).first() is None:
            return candidate


def _find_board(session: Session, board_id: str) -> Optional[Board]:
    return session.exec(select(Board).where(Board.board_id == board_id)).first()


def _new_board(board_id: str, document: Dict[str, Any], board_settings: Optional[dict]) -> Board:
    name = document.get('name') or UNTITLED_NAME
    description = document.get('description')
    return Board(
        board_id=board_id,
        name=name,
        description=description,
        data={'objects': [], 'name': name, 'description': description, **document},
        settings=board_settings if board_settings is not None else default_settings(),
    )


def _update_board(session: Session, board_id: str, document: Dict[str, Any],
                  board_settings: Optional[dict], expected_version: Optional[int]) -> None:
    now = utcnow()
    values: Dict[str, Any] = {
        'data': document,
        'version': Board.version + 1,
        'last_saved_at': now,
        'updated_at': now,
    }
    if board_settings is not None:
        values['settings'] = board_settings
    if document.get('name'):
        values['name'] = document['name']
    if 'description' in document:
        values['description'] = document['description']

    stmt = update(Board).where(Board.board_id == board_id)  # type: ignore[arg-type]
    if expected_version is not None:
        stmt = stmt.where(Board.version == expected_version)  # type: ignore[arg-type]
    result = session.execute(stmt.values(**values).execution_options(synchronize_session=False))
    if result.rowcount == 0:
        if expected_version is None:
            # row vanished between the lookup and the update
            raise NotFound("Board not found")
        raise VersionConflict(f"Board {board_id} was modified after version {expected_version}")


def save_board(board_id: Optional[str], document: Optional[Dict[str, Any]],
               board_settings: Optional[dict] = None,
               expected_version: Optional[int] = None) -> Board:
    """Create or update a board in a single transaction.

    An empty id or the sentinel "default" gets a freshly generated one. Any
    failure rolls the transaction back and surfaces as SaveFailed; a failed
    expected-version check surfaces as VersionConflict and a board deleted
    mid-save as NotFound.
    """
    cleaned = strip_image_payloads(document or {})
    with get_session() as session:
        try:
            if not board_id or board_id == DEFAULT_BOARD_ID:
                board_id = generate_short_id(session)
            board = _find_board(session, board_id)
            created = board is None
            if board is None:
                board = _new_board(board_id, cleaned, board_settings)
                session.add(board)
            else:
                _update_board(session, board_id, cleaned, board_settings, expected_version)
            session.commit()
            session.refresh(board)
        except ServiceError:
            session.rollback()
            raise
        except Exception as e:
            session.rollback()
            logger.exception({"type": "board_save_failed", "board_id": board_id, "error": str(e)})
            raise SaveFailed("Failed to save board") from e
    logger.info({"type": "board_created" if created else "board_updated",
                 "board_id": board.board_id, "version": board.version})
    return board


def load_board(board_id: str, image_url: ImageUrl) -> Tuple[Dict[str, Any], bool]:
    """Return (full board data with resolved image URLs, created_flag).

    An unknown board id is created empty on first load.
    """
    with get_session() as session:
        board = _find_board(session, board_id)
        if board is not None:
            data = full_data(board)
            data['objects'] = restore_image_urls(session, data['objects'], image_url)
            return data, False

        board = Board(board_id=board_id, name=NEW_BOARD_NAME, data={'objects': []}, settings=default_settings())
        session.add(board)
        try:
            session.commit()
        except IntegrityError:
            # a concurrent load created it first
            session.rollback()
            existing = _find_board(session, board_id)
            if existing is None:
                raise
            data = full_data(existing)
            data['objects'] = restore_image_urls(session, data['objects'], image_url)
            return data, False
        session.refresh(board)
        logger.info({"type": "board_created", "board_id": board_id, "via": "load"})
        return full_data(board), True


def get_board(board_id: str) -> Board:
    with get_session() as session:
        board = _find_board(session, board_id)
        if board is None:
            raise NotFound("Board not found")
        return board


def list_boards() -> List[Dict[str, Any]]:
    with get_session() as session:
        rows = session.exec(select(Board).order_by(Board.updated_at.desc())).all()  # type: ignore[attr-defined]
        return [summary(b) for b in rows]


def delete_board(board_id: str) -> None:
    with get_session() as session:
        board = _find_board(session, board_id)
        if board is None:
            raise NotFound("Board not found")
        session.delete(board)
        session.commit()
    logger.info({"type": "board_deleted", "board_id": board_id})


def duplicate_board(board_id: str) -> Board:
    """Copy a board under a new id. Referenced images stay shared."""
    with get_session() as session:
        original = _find_board(session, board_id)
        if original is None:
            raise NotFound("Board not found")
        copy_ = Board(
            board_id=generate_short_id(session),
            name=f"{original.name} (copy)",
            description=original.description,
            data=copy.deepcopy(original.data),
            settings=copy.deepcopy(original.settings),
        )
        session.add(copy_)
        session.commit()
        session.refresh(copy_)
    logger.info({"type": "board_duplicated", "board_id": board_id, "copy_id": copy_.board_id})
    return copy_


def object_stats(board_id: str) -> Dict[str, Any]:
    return object_counts(get_board(board_id))


__all__ = [
    'save_board', 'load_board', 'get_board', 'list_boards', 'delete_board', 'duplicate_board',
    'object_stats', 'object_counts', 'strip_image_payloads', 'restore_image_urls', 'validate_document',
    'generate_short_id', 'full_data', 'summary', 'default_settings',
]
