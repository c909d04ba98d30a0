"""Progress photo models.

date, local_timestamp, timezone and timezone_offset are client-supplied
labels; they are stored and echoed but never used for day arithmetic.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class ProgressPhoto(BaseModel):
    model_config = ConfigDict(frozen=True)

    photo_id: str
    user_id: str
    challenge_id: str
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    filename: str
    content_type: str
    size_bytes: int
    uploaded_at: datetime
    local_timestamp: Optional[str] = None
    timezone: str = "UTC"
    timezone_offset: int = 0
