"""User profile, achievements and leaderboard endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from stayhard.core.auth import get_current_user_id
from stayhard.core.logging import get_request_id
from stayhard.features.users import service as user_service

router = APIRouter(prefix="/v1/users", tags=["users"])


class UpdateProfileRequest(BaseModel):
    display_name: Optional[str] = Field(None, max_length=200)
    photo_url: Optional[str] = None


@router.get("/me")
def get_me(request: Request, user_id: str = Depends(get_current_user_id)):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    user = user_service.get_user(user_id)
    return {"data": user.model_dump(mode="json"), "request_id": rid}


@router.patch("/me")
def update_me(body: UpdateProfileRequest, request: Request, user_id: str = Depends(get_current_user_id)):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    user = user_service.update_profile(user_id, display_name=body.display_name, photo_url=body.photo_url)
    return {"data": user.model_dump(mode="json"), "request_id": rid}


@router.get("/me/achievements")
def get_my_achievements(request: Request, user_id: str = Depends(get_current_user_id)):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    achievements = user_service.get_achievements(user_id)
    return {"data": achievements.model_dump(mode="json"), "request_id": rid}


@router.get("/leaderboard")
def get_leaderboard(
    request: Request,
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
):
    rid = getattr(request.state, "request_id", None) or get_request_id()
    entries = user_service.get_leaderboard(limit)
    return {"data": [entry.model_dump() for entry in entries], "request_id": rid}
