"""
User domain service.
- get_or_create_user(user_id)
- get_user(user_id)
- set_current_challenge(), update_profile()
- get_achievements(), get_leaderboard()
"""

from datetime import datetime, timezone
from typing import List, Optional
from sqlalchemy import select, insert, update, func, case

from stayhard.core.config import settings
from stayhard.core.database import get_db_session, users as app_users, challenges, create_all_tables
from stayhard.core.clock import ensure_utc
from stayhard.core.errors import NotFoundError, ValidationError
from stayhard.core.logging import log_event
from stayhard.features.progress.persistence import ProgressPersistence
from stayhard.models.user import Achievements, LeaderboardEntry, User

MAX_DISPLAY_NAME_LENGTH = 80


def normalize_display_name(user_id: str, display_name: Optional[str]) -> str:
    return User.normalized_display_name(user_id, display_name)


def _row_to_user(row) -> User:
    return User(
        user_id=row.user_id,
        created_at=ensure_utc(row.created_at),
        email=row.email,
        display_name=row.display_name or normalize_display_name(row.user_id, None),
        photo_url=row.photo_url,
        status=row.status,
        current_challenge_id=row.current_challenge_id,
        last_login=ensure_utc(row.last_login),
    )


def get_user(user_id: str) -> Optional[User]:
    with get_db_session() as session:
        row = session.execute(select(app_users).where(app_users.c.user_id == user_id)).first()
        if not row:
            return None
        return _row_to_user(row)


def get_or_create_user(user_id: str, email: Optional[str] = None, display_name: Optional[str] = None) -> User:
    """Upsert on first sight; a brand new user gets the default challenge started."""
    # Ensure tables exist (idempotent in tests/dev)
    create_all_tables()

    now = datetime.now(timezone.utc)
    existing = get_user(user_id)
    if existing:
        with get_db_session() as session:
            session.execute(
                update(app_users).where(app_users.c.user_id == user_id).values(last_login=now)
            )
        return existing.model_copy(update={"last_login": now})

    display = normalize_display_name(user_id, display_name)
    with get_db_session() as session:
        session.execute(
            insert(app_users).values(
                user_id=user_id,
                email=email,
                display_name=display,
                status="active",
                created_at=now,
                last_login=now,
            )
        )
    log_event("info", "user.created", user_id=user_id, event_type="user.created")

    current_challenge_id = None
    if settings.AUTO_START_CHALLENGE:
        try:
            from stayhard.features.challenges.service import challenge_service
            challenge, _ = challenge_service.start_challenge(user_id=user_id)
            current_challenge_id = challenge.challenge_id
        except Exception as e:
            # Signup still succeeds; the user can start a challenge explicitly
            log_event(
                "warning",
                "user.default_challenge_failed",
                user_id=user_id,
                event_type="user.default_challenge_failed",
                extra={"error": str(e)},
            )

    return User(
        user_id=user_id,
        created_at=now,
        email=email,
        display_name=display,
        status="active",
        current_challenge_id=current_challenge_id,
        last_login=now,
    )


def set_current_challenge(user_id: str, challenge_id: Optional[str]) -> None:
    with get_db_session() as session:
        session.execute(
            update(app_users)
            .where(app_users.c.user_id == user_id)
            .values(current_challenge_id=challenge_id)
        )


def update_profile(
    user_id: str,
    display_name: Optional[str] = None,
    photo_url: Optional[str] = None,
) -> User:
    values = {}
    if display_name is not None:
        cleaned = display_name.strip()
        if not cleaned:
            raise ValidationError("display_name cannot be empty")
        if len(cleaned) > MAX_DISPLAY_NAME_LENGTH:
            raise ValidationError(f"display_name must be at most {MAX_DISPLAY_NAME_LENGTH} characters")
        values["display_name"] = cleaned
    if photo_url is not None:
        values["photo_url"] = photo_url.strip() or None

    if get_user(user_id) is None:
        raise NotFoundError(f"User {user_id} not found")
    if values:
        with get_db_session() as session:
            session.execute(update(app_users).where(app_users.c.user_id == user_id).values(**values))
    return get_user(user_id)


def get_achievements(user_id: str) -> Achievements:
    user = get_user(user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")

    with get_db_session() as session:
        row = session.execute(
            select(
                func.coalesce(func.max(challenges.c.longest_streak), 0).label("longest_streak"),
                func.coalesce(
                    func.sum(case((challenges.c.status == "completed", 1), else_=0)), 0
                ).label("completed_challenges"),
            ).where(challenges.c.user_id == user_id)
        ).one()

    total_tasks = sum(
        1
        for record in ProgressPersistence.list_for_user(user_id)
        for task in record.tasks
        if task.completed
    )
    return Achievements(
        user_id=user_id,
        longest_streak=int(row.longest_streak),
        completed_challenges=int(row.completed_challenges),
        total_tasks_completed=total_tasks,
        member_since=user.created_at,
    )


def get_leaderboard(limit: int = 10) -> List[LeaderboardEntry]:
    """Users ranked by best longest streak, then completed challenges."""
    longest = func.max(challenges.c.longest_streak).label("longest_streak")
    completed = func.sum(case((challenges.c.status == "completed", 1), else_=0)).label("completed_challenges")
    with get_db_session() as session:
        rows = session.execute(
            select(app_users.c.user_id, app_users.c.display_name, longest, completed)
            .select_from(app_users.join(challenges, challenges.c.user_id == app_users.c.user_id))
            .group_by(app_users.c.user_id, app_users.c.display_name)
            .order_by(longest.desc(), completed.desc(), app_users.c.user_id)
            .limit(limit)
        ).all()

    return [
        LeaderboardEntry(
            rank=index,
            user_id=row.user_id,
            display_name=row.display_name or normalize_display_name(row.user_id, None),
            longest_streak=int(row.longest_streak or 0),
            completed_challenges=int(row.completed_challenges or 0),
        )
        for index, row in enumerate(rows, start=1)
    ]
