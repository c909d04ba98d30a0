"""Task-level mutations on a single DailyProgress record.

All functions mutate the record in place and return it. completion_rate is a
derived property of DailyProgress, so it is always consistent afterwards.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from stayhard.core.errors import ImmutableTaskSetError, NotFoundError, ValidationError
from stayhard.features.challenges.templates import normalize_task_text
from stayhard.models.progress import DailyProgress, Task


def _require_custom(level: str, action: str) -> None:
    if level != "Custom":
        raise ImmutableTaskSetError(f"Cannot {action} tasks on a {level} challenge; only Custom challenges have editable tasks")


def _require_task(record: DailyProgress, task_id: str) -> Task:
    task = record.find_task(task_id)
    if task is None:
        raise NotFoundError(f"Task {task_id} not found")
    return task


def toggle_task(record: DailyProgress, task_id: str, completed: bool, now: datetime) -> DailyProgress:
    if not isinstance(completed, bool):
        raise ValidationError("completed must be a boolean")
    task = _require_task(record, task_id)
    task.completed = completed
    task.completed_at = now if completed else None
    record.updated_at = now
    return record


def add_task(record: DailyProgress, level: str, text: str, now: datetime, task_id: Optional[str] = None) -> Task:
    _require_custom(level, "add")
    new_id = task_id or str(uuid.uuid4())
    if record.find_task(new_id) is not None:
        raise ValidationError(f"Task {new_id} already exists")
    task = Task(id=new_id, text=normalize_task_text(text))
    record.tasks.append(task)
    record.updated_at = now
    return task


def edit_task_text(record: DailyProgress, level: str, task_id: str, text: str, now: datetime) -> Task:
    _require_custom(level, "edit")
    task = _require_task(record, task_id)
    task.text = normalize_task_text(text)
    record.updated_at = now
    return task


def remove_task(record: DailyProgress, level: str, task_id: str, now: datetime) -> Task:
    _require_custom(level, "delete")
    task = _require_task(record, task_id)
    record.tasks = [t for t in record.tasks if t.id != task_id]
    record.updated_at = now
    return task
