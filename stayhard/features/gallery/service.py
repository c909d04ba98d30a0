"""
Progress photo gallery.

Photos hang off a challenge the uploader owns. The date/timezone fields are
labels from the client and are never used for day arithmetic.
"""

import os
import re
import uuid
from datetime import date
from typing import List, Optional, Tuple

from stayhard.core.clock import Clock, utc_now
from stayhard.core.config import settings
from stayhard.core.errors import (
    NotFoundError,
    PayloadTooLargeError,
    PermissionError,
    ValidationError,
)
from stayhard.core.logging import log_event
from stayhard.features.challenges.persistence import ChallengePersistence
from stayhard.features.gallery.persistence import PhotoPersistence
from stayhard.models.photo import ProgressPhoto

_EXTENSION_RE = re.compile(r"^\.[A-Za-z0-9]{1,8}$")


def _validate_date_label(value: Optional[str], field: str) -> Optional[str]:
    if value is None:
        return None
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")
    return value


def _safe_filename(original: Optional[str]) -> str:
    ext = os.path.splitext(original or "")[1]
    if not _EXTENSION_RE.match(ext):
        ext = ".jpg"
    return f"{uuid.uuid4().hex}{ext.lower()}"


class GalleryService:
    def __init__(self, store=PhotoPersistence, challenge_store=ChallengePersistence, clock: Clock = utc_now):
        self._store = store
        self._challenges = challenge_store
        self._clock = clock

    def _check_challenge(self, user_id: str, challenge_id: str) -> None:
        challenge = self._challenges.get_challenge(challenge_id)
        if challenge is None:
            raise NotFoundError(f"Challenge {challenge_id} not found")
        if challenge.user_id != user_id:
            raise PermissionError("Challenge does not belong to this user")

    def upload_photo(
        self,
        *,
        user_id: str,
        challenge_id: str,
        date_label: str,
        data: bytes,
        content_type: Optional[str],
        original_filename: Optional[str] = None,
        local_timestamp: Optional[str] = None,
        timezone: Optional[str] = None,
        timezone_offset: Optional[int] = None,
    ) -> ProgressPhoto:
        if not content_type or not content_type.startswith("image/"):
            raise ValidationError("Only image uploads are allowed")
        if not data:
            raise ValidationError("No file uploaded")
        if len(data) > settings.MAX_PHOTO_BYTES:
            raise PayloadTooLargeError(f"Photo exceeds the {settings.MAX_PHOTO_BYTES} byte limit")
        _validate_date_label(date_label, "date")
        self._check_challenge(user_id, challenge_id)

        uploaded_at = self._clock()
        photo = ProgressPhoto(
            photo_id=str(uuid.uuid4()),
            user_id=user_id,
            challenge_id=challenge_id,
            date=date_label,
            filename=_safe_filename(original_filename),
            content_type=content_type,
            size_bytes=len(data),
            uploaded_at=uploaded_at,
            local_timestamp=local_timestamp or uploaded_at.isoformat(),
            timezone=timezone or "UTC",
            timezone_offset=timezone_offset or 0,
        )
        self._store.create_photo(photo, data)
        log_event(
            "info",
            "photo.uploaded",
            user_id=user_id,
            challenge_id=challenge_id,
            event_type="photo.uploaded",
            extra={"size_bytes": photo.size_bytes, "date": date_label},
        )
        return photo

    def list_photos(
        self,
        *,
        user_id: str,
        challenge_id: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[ProgressPhoto]:
        _validate_date_label(start_date, "start_date")
        _validate_date_label(end_date, "end_date")
        return self._store.list_photos(user_id, challenge_id, start_date, end_date)

    def list_challenge_photos(self, *, user_id: str, challenge_id: str) -> List[ProgressPhoto]:
        self._check_challenge(user_id, challenge_id)
        return self._store.list_photos(user_id, challenge_id)

    def get_photo(self, *, user_id: str, photo_id: str) -> Tuple[ProgressPhoto, bytes]:
        found = self._store.get_photo_data(photo_id)
        if found is None:
            raise NotFoundError(f"Photo {photo_id} not found")
        photo, data = found
        if photo.user_id != user_id:
            raise PermissionError("Photo does not belong to this user")
        return photo, data

    def delete_photo(self, *, user_id: str, photo_id: str) -> None:
        photo = self._store.get_photo(photo_id)
        if photo is None:
            raise NotFoundError(f"Photo {photo_id} not found")
        if photo.user_id != user_id:
            raise PermissionError("Photo does not belong to this user")
        self._store.delete_photo(photo_id)
        log_event(
            "info",
            "photo.deleted",
            user_id=user_id,
            challenge_id=photo.challenge_id,
            event_type="photo.deleted",
        )


gallery_service = GalleryService()
