from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict


class User(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    created_at: datetime
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    status: str = "active"
    current_challenge_id: Optional[str] = None
    last_login: Optional[datetime] = None

    @staticmethod
    def normalized_display_name(user_id: str, display_name: Optional[str] = None) -> str:
        if display_name and display_name.strip():
            return display_name.strip()
        # Deterministic fallback handle
        import hashlib
        h = hashlib.sha1(user_id.encode("utf-8")).hexdigest()
        return f"@u_{h[-6:]}"


class Achievements(BaseModel):
    user_id: str
    longest_streak: int = 0
    completed_challenges: int = 0
    total_tasks_completed: int = 0
    member_since: datetime


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    display_name: str
    longest_streak: int
    completed_challenges: int
