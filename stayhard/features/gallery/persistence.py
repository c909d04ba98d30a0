"""
Database persistence for progress photos.

Image bytes live in the same row as their metadata; list queries never load
the blob column.
"""

from typing import List, Optional, Tuple

from sqlalchemy import select, insert, delete, and_

from stayhard.core.clock import ensure_utc
from stayhard.core.database import get_db_session, progress_photos
from stayhard.models.photo import ProgressPhoto

_METADATA_COLUMNS = [c for c in progress_photos.c if c.name != "data"]


def _row_to_photo(row) -> ProgressPhoto:
    return ProgressPhoto(
        photo_id=row.photo_id,
        user_id=row.user_id,
        challenge_id=row.challenge_id,
        date=row.date,
        filename=row.filename,
        content_type=row.content_type,
        size_bytes=row.size_bytes,
        uploaded_at=ensure_utc(row.uploaded_at),
        local_timestamp=row.local_timestamp,
        timezone=row.timezone,
        timezone_offset=row.timezone_offset,
    )


class PhotoPersistence:
    @staticmethod
    def create_photo(photo: ProgressPhoto, data: bytes) -> None:
        with get_db_session() as session:
            session.execute(
                insert(progress_photos).values(
                    data=data,
                    **photo.model_dump(),
                )
            )

    @staticmethod
    def get_photo(photo_id: str) -> Optional[ProgressPhoto]:
        with get_db_session() as session:
            row = session.execute(
                select(*_METADATA_COLUMNS).where(progress_photos.c.photo_id == photo_id)
            ).first()
            return _row_to_photo(row) if row else None

    @staticmethod
    def get_photo_data(photo_id: str) -> Optional[Tuple[ProgressPhoto, bytes]]:
        with get_db_session() as session:
            row = session.execute(
                select(progress_photos).where(progress_photos.c.photo_id == photo_id)
            ).first()
            if not row:
                return None
            return _row_to_photo(row), bytes(row.data)

    @staticmethod
    def list_photos(
        user_id: str,
        challenge_id: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[ProgressPhoto]:
        """Photos for a user; date bounds are inclusive YYYY-MM-DD labels."""
        conditions = [progress_photos.c.user_id == user_id]
        if challenge_id:
            conditions.append(progress_photos.c.challenge_id == challenge_id)
        if start_date:
            conditions.append(progress_photos.c.date >= start_date)
        if end_date:
            conditions.append(progress_photos.c.date <= end_date)

        with get_db_session() as session:
            rows = session.execute(
                select(*_METADATA_COLUMNS)
                .where(and_(*conditions))
                .order_by(progress_photos.c.date, progress_photos.c.uploaded_at)
            ).all()
            return [_row_to_photo(row) for row in rows]

    @staticmethod
    def delete_photo(photo_id: str) -> bool:
        with get_db_session() as session:
            result = session.execute(
                delete(progress_photos).where(progress_photos.c.photo_id == photo_id)
            )
            return bool(result.rowcount)
