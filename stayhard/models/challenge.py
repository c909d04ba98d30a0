from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import List, Literal, Optional

ChallengeLevel = Literal["Soft", "Hard", "Custom"]
ChallengeStatus = Literal["active", "completed", "failed", "abandoned"]

CHALLENGE_LEVELS = ("Soft", "Hard", "Custom")
ALLOWED_CHALLENGE_DAYS = (21, 45, 60, 75)


@dataclass
class TaskTemplate:
    """One entry of a Custom challenge's task list; ids are stable across days."""

    id: str
    text: str

    def to_dict(self) -> dict:
        return {"id": self.id, "text": self.text}


@dataclass
class ChallengeStats:
    completed_days: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    average_completion_rate: float = 0.0
    total_days_elapsed: int = 0

    def to_dict(self) -> dict:
        return {
            "completed_days": self.completed_days,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "average_completion_rate": self.average_completion_rate,
            "total_days_elapsed": self.total_days_elapsed,
        }


@dataclass
class Challenge:
    """
    Domain model for a user's N-day challenge. Day-level arithmetic is UTC only.
    """

    challenge_id: str
    user_id: str
    start_date: datetime
    duration_days: int
    level: ChallengeLevel
    status: ChallengeStatus = "active"
    task_template: List[TaskTemplate] = field(default_factory=list)
    stats: ChallengeStats = field(default_factory=ChallengeStats)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None

    @property
    def start_day(self) -> date:
        aware = self.start_date if self.start_date.tzinfo else self.start_date.replace(tzinfo=timezone.utc)
        return aware.astimezone(timezone.utc).date()

    @property
    def end_date(self) -> date:
        """Last calendar day that belongs to the challenge."""
        return self.start_day + timedelta(days=self.duration_days - 1)

    def days_remaining(self, today: date) -> int:
        if self.status != "active":
            return 0
        return max(0, (self.end_date - today).days + 1)

    def to_dict(self, today: Optional[date] = None) -> dict:
        payload = {
            "challenge_id": self.challenge_id,
            "user_id": self.user_id,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "duration_days": self.duration_days,
            "level": self.level,
            "status": self.status,
            "task_template": [t.to_dict() for t in self.task_template],
            "stats": self.stats.to_dict(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "failed_at": self.failed_at.isoformat() if self.failed_at else None,
            "failure_reason": self.failure_reason,
        }
        if today is not None:
            payload["days_remaining"] = self.days_remaining(today)
        return payload
