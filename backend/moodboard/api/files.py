"""Generic file endpoints.

POST   /api/files/upload          multipart 'file' (+ optional name)
GET    /api/files/{id}            metadata
PUT    /api/files/{id}            {"name": ...}
GET    /api/files/{id}/download   attachment named after the record
DELETE /api/files/{id}
POST   /api/files/cleanup         age-based cleanup
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field

from ..models import StoredFile
from ..services import files
from .responses import failure_message, ok

router = APIRouter(prefix="/files", tags=["files"])


class FileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=255)


def _url(request: Request, row: StoredFile) -> str:
    return str(request.url_for("file_download", file_id=row.id))


@router.post("/upload")
async def upload(request: Request, file: UploadFile = File(...), name: Optional[str] = Form(None)):
    content = await file.read()
    with failure_message("File upload failed"):
        row, created = files.store_file(content, file.filename or "file", file.content_type, name=name)
    data = files.describe(row, _url(request, row))
    return ok(data, "File uploaded" if created else "File already exists")


@router.post("/cleanup")
def cleanup():
    with failure_message("File cleanup failed"):
        count = files.cleanup()
    return ok(message=f"Cleanup finished. Deleted {count} files", deleted=count)


@router.get("/{file_id}")
def show(file_id: int, request: Request):
    with failure_message("Failed to load file"):
        row = files.get_file(file_id)
    return ok(files.describe(row, _url(request, row)))


@router.put("/{file_id}")
def update(file_id: int, payload: FileUpdate, request: Request):
    with failure_message("Failed to update file"):
        row = files.rename_file(file_id, payload.name)
    return ok(files.describe(row, _url(request, row)), "File updated")


@router.get("/{file_id}/download", name="file_download")
def download(file_id: int):
    with failure_message("Failed to download file"):
        row = files.get_file(file_id)
        path = files.file_blob_path(row)
    return FileResponse(path, media_type=row.mime_type, filename=row.name)


@router.delete("/{file_id}")
def destroy(file_id: int):
    with failure_message("Failed to delete file"):
        files.delete_file(file_id)
    return ok(message="File deleted")
