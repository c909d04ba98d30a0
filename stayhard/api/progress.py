"""Daily progress endpoints.

Reads backfill missing days and refresh challenge stats before answering;
every task mutation answers with the updated record and the challenge stats.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field, StrictBool

from stayhard.core.auth import get_current_user_id
from stayhard.core.logging import get_request_id
from stayhard.features.progress.service import progress_service

router = APIRouter(prefix="/v1/progress", tags=["progress"])


class ToggleTaskRequest(BaseModel):
    completed: StrictBool


class TaskTextRequest(BaseModel):
    text: str = Field(..., min_length=1)


def _payload(record, challenge) -> dict:
    return {"progress": record.to_dict(), "stats": challenge.stats.to_dict(), "challenge_status": challenge.status}


@router.get("")
def get_progress_for_date(
    request: Request,
    challenge_id: str = Query(..., min_length=1),
    day: Optional[date] = Query(None, alias="date"),
    user_id: str = Depends(get_current_user_id),
):
    """Tasks for one day (defaults to today), created on first access."""
    rid = getattr(request.state, "request_id", None) or get_request_id()
    record, challenge = progress_service.get_tasks_for_date(user_id=user_id, challenge_id=challenge_id, target=day)
    return {"data": _payload(record, challenge), "request_id": rid}


@router.get("/challenge/{challenge_id}")
def list_challenge_progress(challenge_id: str, request: Request, user_id: str = Depends(get_current_user_id)):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    records, challenge = progress_service.list_progress(user_id=user_id, challenge_id=challenge_id)
    return {
        "data": {
            "progress": [record.to_dict() for record in records],
            "stats": challenge.stats.to_dict(),
            "challenge_status": challenge.status,
        },
        "request_id": rid,
    }


@router.patch("/{progress_id}/tasks/{task_id}")
def toggle_task(
    progress_id: str,
    task_id: str,
    body: ToggleTaskRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    record, challenge = progress_service.toggle_task(
        user_id=user_id,
        progress_id=progress_id,
        task_id=task_id,
        completed=body.completed,
    )
    return {"data": _payload(record, challenge), "request_id": rid}


@router.post("/{progress_id}/tasks", status_code=201)
def add_task(
    progress_id: str,
    body: TaskTextRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    record, task, challenge = progress_service.add_task(user_id=user_id, progress_id=progress_id, text=body.text)
    payload = _payload(record, challenge)
    payload["task"] = task.to_dict()
    return {"data": payload, "request_id": rid}


@router.patch("/{progress_id}/tasks/{task_id}/text")
def edit_task_text(
    progress_id: str,
    task_id: str,
    body: TaskTextRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    record, task, challenge = progress_service.edit_task_text(
        user_id=user_id,
        progress_id=progress_id,
        task_id=task_id,
        text=body.text,
    )
    payload = _payload(record, challenge)
    payload["task"] = task.to_dict()
    return {"data": payload, "request_id": rid}


@router.delete("/{progress_id}/tasks/{task_id}")
def remove_task(
    progress_id: str,
    task_id: str,
    request: Request,
    user_id: str = Depends(get_current_user_id),
):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    record, challenge = progress_service.remove_task(user_id=user_id, progress_id=progress_id, task_id=task_id)
    return {"data": _payload(record, challenge), "request_id": rid}
