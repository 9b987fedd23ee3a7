from fastapi.testclient import TestClient
from moodboard.main import app
from moodboard.models import Board, get_session
from moodboard.services import boards
from sqlmodel import Session, select

from _images import make_png

client = TestClient(app)


def _save(board_id, objects, **extra):
    payload = {"boardId": board_id, "boardData": {"objects": objects}, **extra}
    return client.post("/api/moodboard/save", json=payload)


def _upload_image(color=(10, 120, 200)):
    files = {"image": ("photo.png", make_png(color), "image/png")}
    r = client.post("/api/images/upload", files=files)
    assert r.status_code == 200, r.text
    return r.json()["data"]


def _stored_objects(board_id):
    with get_session() as session:
        row = session.exec(select(Board).where(Board.board_id == board_id)).one()
        return row.data["objects"]


def test_save_creates_board_with_version_one():
    r = _save("board-a", [{"id": "t1", "type": "text", "x": 10, "y": 20, "text": "hi"}])
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["success"] is True
    assert body["boardId"] == "board-a"
    assert body["version"] == 1
    assert body["timestamp"].endswith("Z")


def test_each_update_bumps_version_by_one():
    versions = [_save("board-v", [{"type": "text", "text": str(i)}]).json()["version"] for i in range(4)]
    assert versions == [1, 2, 3, 4]


def test_save_strips_inline_image_data():
    image = _upload_image()
    obj = {"id": "i1", "type": "image", "imageId": image["imageId"], "src": "data:image/png;base64,AAAA",
           "base64": "AAAA", "x": 5, "y": 5, "width": 300, "height": 200}
    assert _save("board-s", [obj]).status_code == 200

    stored = _stored_objects("board-s")[0]
    assert "src" not in stored
    assert "base64" not in stored
    assert stored["imageId"] == image["imageId"]


def test_image_without_reference_keeps_src():
    obj = {"id": "i2", "type": "image", "src": "data:image/png;base64,BBBB"}
    assert _save("board-inline", [obj]).status_code == 200
    assert _stored_objects("board-inline")[0]["src"] == "data:image/png;base64,BBBB"


def test_load_restores_urls_and_keeps_user_size():
    image = _upload_image()
    text = {"id": "t1", "type": "text", "text": "caption", "style": {"fontSize": 14, "bold": True}}
    pic = {"id": "i1", "type": "image", "imageId": image["imageId"], "src": "data:...", "width": 123, "height": 45}
    _save("board-l", [text, pic])

    r = client.get("/api/moodboard/board-l")
    assert r.status_code == 200, r.text
    objects = r.json()["data"]["objects"]
    assert objects[0] == text
    assert objects[1]["src"] == f"http://testserver/api/images/{image['imageId']}/file"
    assert objects[1]["width"] == 123
    assert objects[1]["height"] == 45
    assert objects[1]["name"] == "photo.png"
    assert "error" not in objects[1]


def test_load_alias_matches():
    _save("board-alias", [{"type": "shape", "kind": "circle"}])
    a = client.get("/api/moodboard/board-alias").json()["data"]
    b = client.get("/api/moodboard/load/board-alias").json()["data"]
    assert a == b


def test_load_flags_missing_image_without_failing():
    _save("board-m", [{"id": "i1", "type": "image", "imageId": "gone-image-id", "width": 10, "height": 10}])
    r = client.get("/api/moodboard/load/board-m")
    assert r.status_code == 200, r.text
    obj = r.json()["data"]["objects"][0]
    assert obj["src"] is None
    assert obj["error"] == "Image not found"


def test_load_after_image_deleted():
    image = _upload_image(color=(1, 2, 3))
    _save("board-d", [{"type": "image", "imageId": image["imageId"]}])
    assert client.delete(f"/api/images/{image['imageId']}").status_code == 200
    obj = client.get("/api/moodboard/board-d").json()["data"]["objects"][0]
    assert obj["src"] is None
    assert obj["error"] == "Image not found"


def test_load_unknown_board_creates_empty_one():
    r = client.get("/api/moodboard/load/fresh-board")
    assert r.status_code == 200
    body = r.json()
    assert body["message"] == "New board created"
    assert body["data"]["objects"] == []
    assert body["data"]["version"] == 1
    assert body["data"]["settings"]["canvas"] == {"width": 2000, "height": 2000}
    assert client.get("/api/moodboard/show/fresh-board").status_code == 200


def test_default_board_id_is_replaced():
    r = _save("default", [])
    board_id = r.json()["boardId"]
    assert board_id != "default"
    assert len(board_id) == 11 and board_id.isalnum()


def test_new_board_takes_name_from_document():
    client.post("/api/moodboard/save", json={"boardId": "named", "data": {"name": "Kitchen ideas", "objects": []}})
    data = client.get("/api/moodboard/show/named").json()["data"]
    assert data["name"] == "Kitchen ideas"
    unnamed = _save("unnamed", []).json()
    assert client.get("/api/moodboard/show/unnamed").json()["data"]["name"] == "Untitled Board"
    assert unnamed["version"] == 1


def test_list_orders_by_last_update():
    _save("first", [])
    _save("second", [])
    _save("first", [{"type": "text"}])
    r = client.get("/api/moodboard/list")
    assert r.status_code == 200
    ids = [b["id"] for b in r.json()["data"]]
    assert ids == ["first", "second"]


def test_show_delete_and_not_found():
    assert client.get("/api/moodboard/show/nope").status_code == 404
    assert client.delete("/api/moodboard/delete/nope").status_code == 404

    _save("to-delete", [])
    r = client.delete("/api/moodboard/delete/to-delete")
    assert r.status_code == 200
    assert r.json()["success"] is True
    r = client.get("/api/moodboard/show/to-delete")
    assert r.status_code == 404
    assert r.json() == {"success": False, "message": "Board not found"}


def test_duplicate_shares_document_and_images():
    image = _upload_image(color=(9, 9, 9))
    objects = [{"type": "image", "imageId": image["imageId"], "width": 50, "height": 40}, {"type": "text", "text": "x"}]
    client.post("/api/moodboard/save", json={"boardId": "orig", "boardData": {"name": "Mood", "objects": objects}})

    r = client.post("/api/moodboard/duplicate/orig")
    assert r.status_code == 200, r.text
    copy_ = r.json()["data"]
    assert copy_["id"] != "orig"
    assert copy_["name"] == "Mood (copy)"
    assert _stored_objects(copy_["id"]) == _stored_objects("orig")
    assert client.post("/api/moodboard/duplicate/missing").status_code == 404


def test_object_stats():
    objects = [{"type": "image", "imageId": "a"}, {"type": "text"}, {"type": "text"}, {"x": 1}]
    _save("stats", objects)
    r = client.get("/api/moodboard/stats/images/stats")
    assert r.status_code == 200
    assert r.json()["data"] == {"total": 4, "by_type": {"image": 1, "text": 2, "unknown": 1}}
    assert client.get("/api/moodboard/nothing-here/images/stats").status_code == 404


def test_save_requires_board_id():
    r = client.post("/api/moodboard/save", json={"boardData": {"objects": []}})
    assert r.status_code == 422
    body = r.json()
    assert body["success"] is False
    assert "boardId" in body["errors"]


def test_save_accepts_card_id_alias():
    r = client.post("/api/moodboard/save", json={"cardId": 42, "data": {"objects": []}})
    assert r.status_code == 200, r.text
    assert r.json()["boardId"] == "42"


def test_save_rejects_malformed_document():
    r = client.post("/api/moodboard/save", json={"boardId": "bad", "boardData": [1, 2]})
    assert r.status_code == 422
    assert "boardData" in r.json()["errors"]

    r = client.post("/api/moodboard/save", json={"boardId": "bad", "boardData": {"objects": "nope"}})
    assert r.status_code == 422
    assert "boardData.objects" in r.json()["errors"]


def test_expected_version_conflict():
    _save("cas", [])
    assert _save("cas", [{"type": "text"}], expectedVersion=1).json()["version"] == 2
    r = _save("cas", [{"type": "text", "text": "stale"}], expectedVersion=1)
    assert r.status_code == 409
    assert r.json()["success"] is False
    assert boards.get_board("cas").version == 2
    assert _stored_objects("cas") == [{"type": "text"}]


class _FailingCommitSession(Session):
    def commit(self):
        raise RuntimeError("disk full")


def test_failed_update_rolls_back(monkeypatch):
    from moodboard.models import engine
    _save("rollback", [{"type": "text", "text": "before"}])

    monkeypatch.setattr(boards, "get_session", lambda: _FailingCommitSession(engine))
    r = _save("rollback", [{"type": "text", "text": "after"}])
    monkeypatch.undo()

    assert r.status_code == 500
    assert r.json() == {"success": False, "message": "Failed to save board"}
    board = boards.get_board("rollback")
    assert board.version == 1
    assert board.data["objects"] == [{"type": "text", "text": "before"}]


def test_failed_create_leaves_nothing(monkeypatch):
    from moodboard.models import engine
    monkeypatch.setattr(boards, "get_session", lambda: _FailingCommitSession(engine))
    r = _save("never-created", [])
    monkeypatch.undo()
    assert r.status_code == 500
    assert client.get("/api/moodboard/show/never-created").status_code == 404
