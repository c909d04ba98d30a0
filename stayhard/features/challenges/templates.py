from __future__ import annotations

import uuid
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from stayhard.core.errors import InvalidLevelError, ValidationError
from stayhard.models.challenge import CHALLENGE_LEVELS, TaskTemplate
from stayhard.models.progress import Task


# Static task tables per fixed level
TASK_TEMPLATES: Mapping[str, Sequence[str]] = {
    "Soft": (
        "Eat healthy & balanced diet",
        "45-min exercise (5 days/week)",
        "Drink 3 liters of water",
        "Read 10 pages (nonfiction)",
        "Practice mindfulness/reflection",
    ),
    "Hard": (
        "Follow strict diet (no cheats/alcohol)",
        "Two 45-min workouts (1 outdoor)",
        "Drink 1 gallon of water",
        "Read 10 pages (nonfiction book)",
        "Take daily progress picture",
        "No cheat meals or alcohol",
    ),
}

MAX_TASK_TEXT_LENGTH = 200

CustomTaskInput = Union[str, Mapping[str, object], TaskTemplate]


def _new_task_id() -> str:
    return str(uuid.uuid4())


def normalize_task_text(text: object) -> str:
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("task text is required")
    cleaned = text.strip()
    if len(cleaned) > MAX_TASK_TEXT_LENGTH:
        raise ValidationError(f"task text must be at most {MAX_TASK_TEXT_LENGTH} characters")
    return cleaned


def build_custom_template(custom_template: Iterable[CustomTaskInput]) -> List[TaskTemplate]:
    """Normalize caller-supplied custom tasks, keeping ids that are present."""
    entries: List[TaskTemplate] = []
    seen_ids = set()
    for item in custom_template:
        if isinstance(item, TaskTemplate):
            task_id, text = item.id, item.text
        elif isinstance(item, str):
            task_id, text = None, item
        elif isinstance(item, Mapping):
            task_id, text = item.get("id"), item.get("text")
        else:
            raise ValidationError("custom tasks must be strings or objects with a text field")
        task_id = str(task_id) if task_id else _new_task_id()
        if task_id in seen_ids:
            raise ValidationError(f"duplicate custom task id: {task_id}")
        seen_ids.add(task_id)
        entries.append(TaskTemplate(id=task_id, text=normalize_task_text(text)))
    return entries


def instantiate_tasks(
    level: str,
    custom_template: Optional[Iterable[CustomTaskInput]] = None,
    *,
    templates: Optional[Mapping[str, Sequence[str]]] = None,
) -> List[Task]:
    """Build a fresh, all-incomplete task list for one day.

    Soft/Hard draw from the static tables (new ids every call); Custom uses
    the caller's template verbatim and only fills in missing ids.
    """
    if level not in CHALLENGE_LEVELS:
        raise InvalidLevelError(f"Invalid challenge level '{level}'. Must be one of: {', '.join(CHALLENGE_LEVELS)}")

    if level == "Custom":
        entries = build_custom_template(custom_template or [])
        return [Task(id=entry.id, text=entry.text) for entry in entries]

    table = templates if templates is not None else TASK_TEMPLATES
    if level not in table:
        raise InvalidLevelError(f"No task template configured for level '{level}'")
    return [Task(id=_new_task_id(), text=text) for text in table[level]]
