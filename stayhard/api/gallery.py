"""Progress photo endpoints (multipart upload, listing, streaming)."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import Response

from stayhard.core.auth import get_current_user_id
from stayhard.core.config import settings
from stayhard.core.logging import get_request_id
from stayhard.features.gallery.service import gallery_service

router = APIRouter(prefix="/v1/gallery", tags=["gallery"])


def _photo_payload(photo) -> dict:
    payload = photo.model_dump(mode="json")
    payload["url"] = f"/v1/gallery/{photo.photo_id}"
    return payload


@router.post("/upload", status_code=201)
async def upload_photo(
    request: Request,
    photo: UploadFile = File(...),
    challenge_id: str = Form(..., min_length=1),
    date: str = Form(...),
    local_timestamp: Optional[str] = Form(None),
    timezone: Optional[str] = Form(None),
    timezone_offset: Optional[int] = Form(None),
    user_id: str = Depends(get_current_user_id),
):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    # Read at most one byte past the limit
    data = await photo.read(settings.MAX_PHOTO_BYTES + 1)
    stored = gallery_service.upload_photo(
        user_id=user_id,
        challenge_id=challenge_id,
        date_label=date,
        data=data,
        content_type=photo.content_type,
        original_filename=photo.filename,
        local_timestamp=local_timestamp,
        timezone=timezone,
        timezone_offset=timezone_offset,
    )
    return {"data": _photo_payload(stored), "request_id": rid}


@router.get("")
def list_photos(
    request: Request,
    challenge_id: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    photos = gallery_service.list_photos(
        user_id=user_id,
        challenge_id=challenge_id,
        start_date=start_date,
        end_date=end_date,
    )
    return {"data": [_photo_payload(p) for p in photos], "request_id": rid}


@router.get("/challenge/{challenge_id}")
def list_challenge_photos(challenge_id: str, request: Request, user_id: str = Depends(get_current_user_id)):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    photos = gallery_service.list_challenge_photos(user_id=user_id, challenge_id=challenge_id)
    return {"data": [_photo_payload(p) for p in photos], "request_id": rid}


@router.get("/{photo_id}")
def stream_photo(photo_id: str, user_id: str = Depends(get_current_user_id)):
    photo, data = gallery_service.get_photo(user_id=user_id, photo_id=photo_id)
    return Response(
        content=data,
        media_type=photo.content_type,
        headers={"Content-Disposition": f'inline; filename="{photo.filename}"'},
    )


@router.delete("/{photo_id}")
def delete_photo(photo_id: str, request: Request, user_id: str = Depends(get_current_user_id)):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    gallery_service.delete_photo(user_id=user_id, photo_id=photo_id)
    return {"data": {"photo_id": photo_id, "deleted": True}, "request_id": rid}
