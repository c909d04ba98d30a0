from __future__ import annotations

import uuid
from typing import Iterable, Optional, Tuple

from stayhard.core.config import Settings, settings as default_settings
from stayhard.core.errors import (
    ConflictError,
    InvalidLevelError,
    InvalidStateError,
    NotFoundError,
    PermissionError,
    ValidationError,
)
from stayhard.core.logging import log_event
from stayhard.features.challenges.persistence import ChallengePersistence
from stayhard.features.challenges.templates import CustomTaskInput, build_custom_template
from stayhard.features.progress.calculator import day_number
from stayhard.features.progress.service import ProgressService, progress_service as default_progress_service
from stayhard.features.users.service import set_current_challenge
from stayhard.models.challenge import (
    ALLOWED_CHALLENGE_DAYS,
    CHALLENGE_LEVELS,
    Challenge,
    ChallengeStats,
    TaskTemplate,
)


class ChallengeService:
    """Challenge lifecycle: start, duration/difficulty changes, reset, abandon.

    State machine:
        active -> completed | failed   (settled on read once the last day passes)
        active -> abandoned            (explicit)
        active | failed -> active      (reset: new start, purge, fresh day 1)
    """

    def __init__(
        self,
        progress_service: Optional[ProgressService] = None,
        store=ChallengePersistence,
        settings_obj: Optional[Settings] = None,
    ):
        self._progress = progress_service or default_progress_service
        self._store = store
        self._settings = settings_obj or default_settings

    @property
    def calculator(self):
        return self._progress.calculator

    # Validation helpers ---------------------------------------------
    @staticmethod
    def _validate_days(duration_days: int) -> int:
        if duration_days not in ALLOWED_CHALLENGE_DAYS:
            allowed = ", ".join(str(d) for d in ALLOWED_CHALLENGE_DAYS)
            raise ValidationError(f"Invalid challenge days. Must be one of: {allowed}")
        return duration_days

    @staticmethod
    def _resolve_template(level: str, custom_tasks: Optional[Iterable[CustomTaskInput]]) -> list[TaskTemplate]:
        if level not in CHALLENGE_LEVELS:
            raise InvalidLevelError(f"Invalid challenge level '{level}'. Must be one of: {', '.join(CHALLENGE_LEVELS)}")
        if level != "Custom":
            return []
        template = build_custom_template(custom_tasks or [])
        if not template:
            raise ValidationError("custom_tasks required when setting level to Custom")
        return template

    def _owned(self, user_id: str, challenge_id: str) -> Challenge:
        challenge = self._store.get_challenge(challenge_id)
        if challenge is None:
            raise NotFoundError(f"Challenge {challenge_id} not found")
        if challenge.user_id != user_id:
            raise PermissionError("Challenge does not belong to this user")
        return challenge

    def _restart_clock(self, challenge: Challenge) -> None:
        now = self.calculator.now()
        challenge.start_date = now
        challenge.stats = ChallengeStats()
        challenge.updated_at = now

    # Operations -------------------------------------------------------
    def start_challenge(
        self,
        *,
        user_id: str,
        duration_days: Optional[int] = None,
        level: Optional[str] = None,
        custom_tasks: Optional[Iterable[CustomTaskInput]] = None,
    ) -> Tuple[Challenge, bool]:
        """Start a challenge, or return the user's active one (idempotent).

        Returns:
            (challenge, created)
        """
        existing = self._store.get_active_for_user(user_id)
        if existing:
            return self._progress.refresh_challenge(existing), False

        days = self._validate_days(
            duration_days if duration_days is not None else self._settings.DEFAULT_CHALLENGE_DAYS
        )
        chosen_level = level or self._settings.DEFAULT_CHALLENGE_LEVEL
        template = self._resolve_template(chosen_level, custom_tasks)

        now = self.calculator.now()
        challenge = Challenge(
            challenge_id=str(uuid.uuid4()),
            user_id=user_id,
            start_date=now,
            duration_days=days,
            level=chosen_level,  # type: ignore[arg-type]
            status="active",
            task_template=template,
            created_at=now,
            updated_at=now,
        )

        if not self._store.create_challenge(challenge):
            # Lost a race against another start for the same user
            existing = self._store.get_active_for_user(user_id)
            if existing:
                return existing, False
            raise ConflictError("Could not start challenge")

        self._progress.seed_day_one(challenge)
        set_current_challenge(user_id, challenge.challenge_id)
        log_event(
            "info",
            "challenge.started",
            user_id=user_id,
            challenge_id=challenge.challenge_id,
            event_type="challenge.started",
            extra={"duration_days": days, "level": chosen_level},
        )
        return challenge, True

    def get_challenge(self, *, user_id: str, challenge_id: str) -> Challenge:
        return self._progress.refresh_challenge(self._owned(user_id, challenge_id))

    def get_current_challenge(self, *, user_id: str) -> Challenge:
        challenge = self._store.get_active_for_user(user_id)
        if challenge is None:
            raise NotFoundError("No active challenge found")
        return self._progress.refresh_challenge(challenge)

    def update_days(self, *, user_id: str, challenge_id: str, duration_days: int) -> Challenge:
        challenge = self._progress.refresh_challenge(self._owned(user_id, challenge_id))
        if challenge.status != "active":
            raise InvalidStateError("Can only update duration of active challenges")
        self._validate_days(duration_days)

        current_day = day_number(challenge.start_date, self.calculator.today())
        if current_day > duration_days:
            raise ValidationError(
                f"Challenge is already on day {current_day}; duration cannot be shortened to {duration_days}"
            )

        challenge.duration_days = duration_days
        challenge.updated_at = self.calculator.now()
        self._store.save_challenge(challenge)
        log_event(
            "info",
            "challenge.days_updated",
            user_id=user_id,
            challenge_id=challenge_id,
            event_type="challenge.days_updated",
            extra={"duration_days": duration_days},
        )
        return self._progress.refresh_challenge(challenge)

    def update_difficulty(
        self,
        *,
        user_id: str,
        challenge_id: str,
        level: str,
        custom_tasks: Optional[Iterable[CustomTaskInput]] = None,
        purge: Optional[bool] = None,
    ) -> Tuple[Challenge, int]:
        """Switch level. With purge (default from settings) history is wiped and
        the challenge restarts today; without it, only days created later use
        the new task list.

        Returns:
            (challenge, number of progress records deleted)
        """
        challenge = self._progress.refresh_challenge(self._owned(user_id, challenge_id))
        if challenge.status != "active":
            raise InvalidStateError("Can only update difficulty of active challenges")
        template = self._resolve_template(level, custom_tasks)
        should_purge = self._settings.PURGE_PROGRESS_ON_DIFFICULTY_CHANGE if purge is None else purge

        challenge.level = level  # type: ignore[assignment]
        challenge.task_template = template
        challenge.updated_at = self.calculator.now()

        if should_purge:
            self._restart_clock(challenge)
        if not self._store.save_challenge(challenge):
            raise ConflictError("Could not update challenge difficulty")

        deleted = 0
        if should_purge:
            deleted = self._progress.purge(challenge)
            self._progress.seed_day_one(challenge)

        log_event(
            "info",
            "challenge.difficulty_updated",
            user_id=user_id,
            challenge_id=challenge_id,
            event_type="challenge.difficulty_updated",
            extra={"level": level, "purged": should_purge, "deleted": deleted},
        )
        return self._progress.refresh_challenge(challenge), deleted

    def reset_challenge(self, *, user_id: str, challenge_id: str) -> Tuple[Challenge, int]:
        """Restart an active or failed challenge with the default level and duration.

        Returns:
            (challenge, number of progress records deleted)
        """
        challenge = self._progress.refresh_challenge(self._owned(user_id, challenge_id))
        if challenge.status not in ("active", "failed"):
            raise InvalidStateError("Can only reset active or failed challenges")

        other = self._store.get_active_for_user(user_id)
        if other and other.challenge_id != challenge_id:
            raise InvalidStateError("Another challenge is already active for this user")

        self._restart_clock(challenge)
        challenge.duration_days = self._settings.DEFAULT_CHALLENGE_DAYS
        challenge.level = self._settings.DEFAULT_CHALLENGE_LEVEL  # type: ignore[assignment]
        challenge.task_template = []
        challenge.status = "active"
        challenge.completed_at = None
        challenge.failed_at = None
        challenge.failure_reason = None

        # Row first: a lost race must leave the old history in place
        if not self._store.save_challenge(challenge):
            raise ConflictError("Another challenge is already active for this user")

        deleted = self._progress.purge(challenge)
        self._progress.seed_day_one(challenge)
        set_current_challenge(user_id, challenge_id)
        log_event(
            "info",
            "challenge.reset",
            user_id=user_id,
            challenge_id=challenge_id,
            event_type="challenge.reset",
            extra={"deleted": deleted},
        )
        return self._progress.refresh_challenge(challenge), deleted

    def abandon_challenge(self, *, user_id: str, challenge_id: str) -> Challenge:
        challenge = self._owned(user_id, challenge_id)
        if challenge.status != "active":
            raise InvalidStateError("Can only abandon active challenges")

        # Settle stats first so the abandoned record keeps final numbers
        challenge = self._progress.refresh_challenge(challenge)
        if challenge.status != "active":
            return challenge

        challenge.status = "abandoned"
        challenge.updated_at = self.calculator.now()
        self._store.save_challenge(challenge)
        set_current_challenge(user_id, None)
        log_event(
            "info",
            "challenge.abandoned",
            user_id=user_id,
            challenge_id=challenge_id,
            event_type="challenge.abandoned",
        )
        return challenge


# Singleton service
challenge_service = ChallengeService()
