"""Unit tests for the board document service helpers."""
import re

import pytest

from moodboard.models import Board, get_session
from moodboard.services import boards
from moodboard.services.errors import NotFound, ValidationFailed


def test_strip_image_payloads_does_not_mutate_input():
    doc = {"objects": [
        {"type": "image", "imageId": "abc", "src": "data:image/png;base64,xx", "base64": "xx", "x": 1},
        {"type": "image", "src": "https://cdn.example/pic.png"},
        {"type": "text", "src": "not-an-image-field"},
    ]}
    cleaned = boards.strip_image_payloads(doc)
    assert cleaned["objects"][0] == {"type": "image", "imageId": "abc", "x": 1}
    assert cleaned["objects"][1]["src"] == "https://cdn.example/pic.png"
    assert cleaned["objects"][2]["src"] == "not-an-image-field"
    assert "src" in doc["objects"][0]


def test_strip_handles_missing_objects():
    assert boards.strip_image_payloads({"name": "x"}) == {"name": "x"}


def test_generate_short_id_shape():
    with get_session() as session:
        ids = {boards.generate_short_id(session) for _ in range(20)}
    assert all(re.fullmatch(r"[A-Za-z0-9]{11}", i) for i in ids)
    assert len(ids) == 20


def test_generate_short_id_retries_on_collision(monkeypatch):
    boards.save_board("AAAAAAAAAAA", {"objects": []})
    tokens = iter(["AAAAAAAAAAA", "BBBBBBBBBBB"])
    monkeypatch.setattr(boards, "random_token", lambda length: next(tokens))
    with get_session() as session:
        assert boards.generate_short_id(session) == "BBBBBBBBBBB"


def test_object_counts_by_type():
    board = boards.save_board("counts", {"objects": [{"type": "note"}, {"type": "note"}, {"type": "image"}]})
    assert boards.object_counts(board) == {"total": 3, "by_type": {"note": 2, "image": 1}}


def test_save_keeps_settings_unless_given():
    board = boards.save_board("settings", {"objects": []})
    assert board.settings == boards.default_settings()
    custom = {"backgroundColor": "#000000"}
    board = boards.save_board("settings", {"objects": []}, board_settings=custom)
    assert board.settings == custom
    board = boards.save_board("settings", {"objects": [{"type": "text"}]})
    assert board.settings == custom
    assert board.version == 3


def test_update_renames_when_document_carries_name():
    boards.save_board("rename", {"name": "Old", "objects": []})
    board = boards.save_board("rename", {"name": "New", "description": "d", "objects": []})
    assert board.name == "New"
    assert board.description == "d"


def test_full_data_shape():
    board = boards.save_board("shape", {"objects": [{"type": "text"}]})
    data = boards.full_data(board)
    assert set(data) == {"id", "name", "description", "objects", "settings", "version", "created", "lastSaved", "updated"}
    assert data["id"] == "shape"


def test_load_uses_url_builder():
    boards.save_board("urls", {"objects": [{"type": "image", "imageId": "missing"}]})
    data, created = boards.load_board("urls", lambda image_id: f"https://cdn.test/{image_id}")
    assert created is False
    assert data["objects"][0]["src"] is None


def test_missing_board_raises():
    with pytest.raises(NotFound):
        boards.get_board("missing")
    with pytest.raises(NotFound):
        boards.delete_board("missing")


def test_validate_document_reports_field():
    with pytest.raises(ValidationFailed) as exc:
        boards.validate_document({"objects": [{"type": 3}]})
    assert "boardData.objects.0.type" in exc.value.errors
    boards.validate_document({"objects": [{"type": "image", "imageId": None}]})


def test_save_of_board_deleted_mid_save_is_not_a_version_conflict(monkeypatch):
    # lookup still sees the board, but the row is gone by the time of the update
    monkeypatch.setattr(boards, "_find_board", lambda session, board_id: Board(board_id=board_id, name="gone", data={}))
    with pytest.raises(NotFound):
        boards.save_board("vanished", {"objects": []})
