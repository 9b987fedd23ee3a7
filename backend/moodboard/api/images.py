"""Image upload + serving endpoints.

POST   /api/images/upload        multipart 'image' (+ optional name/width/height)
GET    /api/images               list, newest first
GET    /api/images/{id}          metadata
GET    /api/images/{id}/file     raw blob, long-lived cache headers
DELETE /api/images/{id}
POST   /api/images/bulk-delete   {"ids": [...]}
POST   /api/images/cleanup       age-based cleanup (?keep_referenced=true spares used images)
"""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import FileResponse
from pydantic import BaseModel

from ..models import Image
from ..services import images
from .responses import failure_message, ok

router = APIRouter(prefix="/images", tags=["images"])

CACHE_CONTROL = "public, max-age=31536000"


class BulkDeleteRequest(BaseModel):
    ids: List[str]


def _url(request: Request, image: Image) -> str:
    return str(request.url_for("image_file", image_id=image.id))


def _describe(request: Request, image: Image) -> dict:
    return {
        "id": image.id,
        "name": image.name,
        "original_name": image.original_name,
        "url": _url(request, image),
        "width": image.width,
        "height": image.height,
        "size": image.size,
        "mime_type": image.mime_type,
        "created_at": image.created_at.isoformat() + "Z",
    }


@router.post("/upload")
async def upload(
    request: Request,
    image: UploadFile = File(...),
    name: Optional[str] = Form(None),
    width: Optional[int] = Form(None, ge=1),
    height: Optional[int] = Form(None, ge=1),
):
    content = await image.read()
    with failure_message("Image upload failed"):
        row, created = images.store_image(
            content, image.filename or "image", image.content_type, name=name, width=width, height=height,
        )
    data = {
        "imageId": row.id,
        "id": row.id,
        "url": _url(request, row),
        "name": row.name,
        "width": row.width,
        "height": row.height,
        "size": row.size,
    }
    return ok(data, "Image uploaded" if created else "Existing image reused")


@router.get("")
def index(request: Request):
    with failure_message("Failed to load image list"):
        return ok([_describe(request, img) for img in images.list_images()])


@router.post("/bulk-delete")
def bulk_delete(payload: BulkDeleteRequest):
    with failure_message("Bulk delete failed"):
        count = images.bulk_delete(payload.ids)
    return ok(message=f"Deleted {count} images", deleted=count)


@router.post("/cleanup")
def cleanup(keep_referenced: bool = False):
    with failure_message("Image cleanup failed"):
        count = images.cleanup(keep_referenced=keep_referenced)
    return ok(message=f"Cleanup finished. Deleted {count} images", deleted=count)


@router.get("/{image_id}")
def show(image_id: str, request: Request):
    with failure_message("Failed to load image"):
        return ok(_describe(request, images.get_image(image_id)))


@router.get("/{image_id}/file", name="image_file")
def file(image_id: str):
    with failure_message("Failed to read image file"):
        image = images.get_image(image_id)
        path = images.image_blob_path(image)
    return FileResponse(
        path,
        media_type=image.mime_type,
        filename=image.original_name,
        content_disposition_type="inline",
        headers={"Cache-Control": CACHE_CONTROL},
    )


@router.delete("/{image_id}")
def destroy(image_id: str):
    with failure_message("Failed to delete image"):
        images.delete_image(image_id)
    return ok(message="Image deleted")
