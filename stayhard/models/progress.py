from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional


@dataclass
class Task:
    id: str
    text: str
    completed: bool = False
    completed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class DailyProgress:
    """
    Tasks and completion state for one calendar day of one challenge.

    completion_rate is derived from tasks and cannot be assigned.
    """

    progress_id: str
    user_id: str
    challenge_id: str
    date: date
    day_number: int
    tasks: List[Task] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def completion_rate(self) -> float:
        if not self.tasks:
            return 0.0
        completed = sum(1 for task in self.tasks if task.completed)
        return completed / len(self.tasks)

    @property
    def is_complete(self) -> bool:
        return self.completion_rate == 1

    def find_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def to_dict(self) -> dict:
        return {
            "progress_id": self.progress_id,
            "user_id": self.user_id,
            "challenge_id": self.challenge_id,
            "date": self.date.isoformat(),
            "day_number": self.day_number,
            "tasks": [t.to_dict() for t in self.tasks],
            "completion_rate": self.completion_rate,
        }
