"""Moodboard document endpoints.

POST   /api/moodboard/save                     create or update a board
GET    /api/moodboard/list                     board summaries, newest first
GET    /api/moodboard/{boardId}                load (alias of /load/{boardId})
GET    /api/moodboard/load/{boardId}           load with resolved image URLs
GET    /api/moodboard/show/{boardId}           stored board as-is
DELETE /api/moodboard/delete/{boardId}
POST   /api/moodboard/duplicate/{boardId}
GET    /api/moodboard/{boardId}/images/stats   object counts by type
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Request
from pydantic import BaseModel, ConfigDict

from ..services import boards
from ..services.errors import ValidationFailed
from .responses import failure_message, ok

router = APIRouter(prefix="/moodboard", tags=["moodboard"])


class SaveRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    boardId: Optional[Union[str, int]] = None
    cardId: Optional[Union[str, int]] = None
    boardData: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, Any]] = None
    settings: Optional[Dict[str, Any]] = None
    expectedVersion: Optional[int] = None


def _image_url(request: Request):
    return lambda image_id: str(request.url_for("image_file", image_id=image_id))


@router.post("/save")
def save(payload: SaveRequest):
    board_id = payload.boardId if payload.boardId is not None else payload.cardId
    if board_id is None or str(board_id) == "":
        raise ValidationFailed.field("boardId", "The boardId field is required.")
    document = payload.boardData if payload.boardData is not None else (payload.data or {})
    boards.validate_document(document)

    board = boards.save_board(str(board_id), document, payload.settings, payload.expectedVersion)
    return ok(
        message="Board saved",
        boardId=board.board_id,
        version=board.version,
        timestamp=boards.full_data(board)["lastSaved"],
    )


@router.get("/list")
def index():
    with failure_message("Failed to load board list"):
        return ok(boards.list_boards())


@router.get("/load/{board_id}")
@router.get("/{board_id}")
def load(board_id: str, request: Request):
    with failure_message("Failed to load board"):
        data, created = boards.load_board(board_id, _image_url(request))
    return ok(data, "New board created" if created else "Board loaded")


@router.get("/show/{board_id}")
def show(board_id: str):
    with failure_message("Failed to load board"):
        return ok(boards.full_data(boards.get_board(board_id)))


@router.delete("/delete/{board_id}")
def destroy(board_id: str):
    with failure_message("Failed to delete board"):
        boards.delete_board(board_id)
    return ok(message="Board deleted")


@router.post("/duplicate/{board_id}")
def duplicate(board_id: str):
    with failure_message("Failed to duplicate board"):
        copy_ = boards.duplicate_board(board_id)
    return ok({"id": copy_.board_id, "name": copy_.name}, "Board duplicated")


@router.get("/{board_id}/images/stats")
def image_stats(board_id: str):
    with failure_message("Failed to compute board statistics"):
        return ok(boards.object_stats(board_id))
