"""Challenge lifecycle endpoints.

All endpoints require auth; a challenge is only visible to its owner.
"""

from __future__ import annotations

from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field

from stayhard.core.auth import get_current_user_id
from stayhard.core.logging import get_request_id
from stayhard.features.challenges.service import challenge_service

router = APIRouter(prefix="/v1/challenges", tags=["challenges"])


class CustomTaskBody(BaseModel):
    id: Optional[str] = None
    text: str = Field(..., min_length=1)


CustomTasks = Optional[List[Union[str, CustomTaskBody]]]


class StartChallengeRequest(BaseModel):
    duration_days: Optional[int] = None
    level: Optional[str] = None
    custom_tasks: CustomTasks = None


class UpdateDaysRequest(BaseModel):
    duration_days: int


class UpdateDifficultyRequest(BaseModel):
    level: str = Field(..., min_length=1)
    custom_tasks: CustomTasks = None
    purge: Optional[bool] = None


def _custom_tasks(items: CustomTasks):
    if items is None:
        return None
    return [item if isinstance(item, str) else item.model_dump() for item in items]


def _challenge_payload(challenge) -> dict:
    return challenge.to_dict(today=challenge_service.calculator.today())


@router.post("/start")
def start_challenge(
    body: StartChallengeRequest,
    request: Request,
    response: Response,
    user_id: str = Depends(get_current_user_id),
):
    """Start a challenge; returns the active one (200) if it already exists."""
    rid = getattr(request.state, "request_id", None) or get_request_id()
    challenge, created = challenge_service.start_challenge(
        user_id=user_id,
        duration_days=body.duration_days,
        level=body.level,
        custom_tasks=_custom_tasks(body.custom_tasks),
    )
    response.status_code = 201 if created else 200
    return {"data": {"challenge": _challenge_payload(challenge), "created": created}, "request_id": rid}


@router.get("/current")
def get_current_challenge(request: Request, user_id: str = Depends(get_current_user_id)):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    challenge = challenge_service.get_current_challenge(user_id=user_id)
    return {"data": _challenge_payload(challenge), "request_id": rid}


@router.get("/{challenge_id}")
def get_challenge(challenge_id: str, request: Request, user_id: str = Depends(get_current_user_id)):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    challenge = challenge_service.get_challenge(user_id=user_id, challenge_id=challenge_id)
    return {"data": _challenge_payload(challenge), "request_id": rid}


@router.patch("/{challenge_id}/days")
def update_days(
    challenge_id: str,
    body: UpdateDaysRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    challenge = challenge_service.update_days(
        user_id=user_id,
        challenge_id=challenge_id,
        duration_days=body.duration_days,
    )
    return {"data": _challenge_payload(challenge), "request_id": rid}


@router.patch("/{challenge_id}/difficulty")
def update_difficulty(
    challenge_id: str,
    body: UpdateDifficultyRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    challenge, deleted = challenge_service.update_difficulty(
        user_id=user_id,
        challenge_id=challenge_id,
        level=body.level,
        custom_tasks=_custom_tasks(body.custom_tasks),
        purge=body.purge,
    )
    return {
        "data": {"challenge": _challenge_payload(challenge), "deleted_progress": deleted},
        "request_id": rid,
    }


@router.post("/{challenge_id}/reset")
def reset_challenge(challenge_id: str, request: Request, user_id: str = Depends(get_current_user_id)):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    challenge, deleted = challenge_service.reset_challenge(user_id=user_id, challenge_id=challenge_id)
    return {
        "data": {"challenge": _challenge_payload(challenge), "deleted_progress": deleted},
        "request_id": rid,
    }


@router.post("/{challenge_id}/abandon")
def abandon_challenge(challenge_id: str, request: Request, user_id: str = Depends(get_current_user_id)):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    challenge = challenge_service.abandon_challenge(user_id=user_id, challenge_id=challenge_id)
    return {"data": _challenge_payload(challenge), "request_id": rid}
