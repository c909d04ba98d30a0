"""Daily progress service.

Every read path runs backfill followed by a full statistics recompute, so the
stats stored on the challenge are never patched incrementally.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional, Tuple

from stayhard.core.errors import InvalidStateError, NotFoundError, PermissionError, ValidationError
from stayhard.core.logging import log_event
from stayhard.features.challenges.persistence import ChallengePersistence
from stayhard.features.progress import mutations
from stayhard.features.progress.calculator import ChallengeProgressCalculator, day_number
from stayhard.features.progress.persistence import ProgressPersistence
from stayhard.features.users.service import set_current_challenge
from stayhard.models.challenge import Challenge, TaskTemplate
from stayhard.models.progress import DailyProgress, Task


class ProgressService:
    """Backfill, stats refresh and task mutations for daily progress records."""

    def __init__(
        self,
        calculator: Optional[ChallengeProgressCalculator] = None,
        progress_store=ProgressPersistence,
        challenge_store=ChallengePersistence,
    ):
        self.calculator = calculator or ChallengeProgressCalculator()
        self._progress = progress_store
        self._challenges = challenge_store

    # Backfill / recompute --------------------------------------------
    def ensure_progress_through(self, challenge: Challenge, today: Optional[date] = None) -> int:
        """Create missing records from the start through min(today, end). Idempotent."""
        existing = self._progress.list_for_challenge(challenge.user_id, challenge.challenge_id)
        created = 0
        for record in self.calculator.build_missing_records(challenge, existing, today):
            # False means a concurrent writer created the day first
            if self._progress.create_progress(record):
                created += 1
        if created:
            log_event(
                "info",
                "progress.backfilled",
                user_id=challenge.user_id,
                challenge_id=challenge.challenge_id,
                event_type="progress.backfilled",
                extra={"days_created": created},
            )
        return created

    def refresh_challenge(self, challenge: Challenge) -> Challenge:
        """Backfill, recompute stats and settle a finished challenge."""
        if challenge.status != "active":
            return challenge

        today = self.calculator.today()
        self.ensure_progress_through(challenge, today)
        records = self._progress.list_for_challenge(challenge.user_id, challenge.challenge_id)
        challenge.stats = self.calculator.recompute_stats(challenge, records, today)

        if self.calculator.is_finished(challenge, today):
            now = self.calculator.now()
            if challenge.stats.completed_days == challenge.duration_days:
                challenge.status = "completed"
                challenge.completed_at = now
            else:
                challenge.status = "failed"
                challenge.failed_at = now
                challenge.failure_reason = "incomplete_days"
            set_current_challenge(challenge.user_id, None)
            log_event(
                "info",
                f"challenge.{challenge.status}",
                user_id=challenge.user_id,
                challenge_id=challenge.challenge_id,
                event_type=f"challenge.{challenge.status}",
                extra={"completed_days": challenge.stats.completed_days},
            )

        challenge.updated_at = self.calculator.now()
        self._challenges.save_challenge(challenge)
        return challenge

    def seed_day_one(self, challenge: Challenge) -> DailyProgress:
        record = self.calculator.new_record(challenge, challenge.start_day)
        if not self._progress.create_progress(record):
            existing = self._progress.get_for_date(challenge.user_id, challenge.challenge_id, challenge.start_day)
            if existing is None:
                raise InvalidStateError("Could not create the first day of the challenge")
            return existing
        return record

    def purge(self, challenge: Challenge) -> int:
        deleted = self._progress.delete_for_challenge(challenge.challenge_id)
        log_event(
            "info",
            "progress.purged",
            user_id=challenge.user_id,
            challenge_id=challenge.challenge_id,
            event_type="progress.purged",
            extra={"deleted": deleted},
        )
        return deleted

    # Reads -------------------------------------------------------------
    def _owned_challenge(self, user_id: str, challenge_id: str) -> Challenge:
        challenge = self._challenges.get_challenge(challenge_id)
        if challenge is None:
            raise NotFoundError(f"Challenge {challenge_id} not found")
        if challenge.user_id != user_id:
            raise PermissionError("Challenge does not belong to this user")
        return challenge

    def get_tasks_for_date(
        self,
        *,
        user_id: str,
        challenge_id: str,
        target: Optional[date] = None,
    ) -> Tuple[DailyProgress, Challenge]:
        """Find the record for a day, creating it (and any gap before it) if needed."""
        challenge = self._owned_challenge(user_id, challenge_id)
        today = self.calculator.today()
        day = target or today

        number = day_number(challenge.start_date, day)
        if number <= 0:
            raise ValidationError(f"{day.isoformat()} is before the challenge start ({challenge.start_day.isoformat()})")
        if number > challenge.duration_days:
            raise ValidationError(f"{day.isoformat()} is after the challenge end ({challenge.end_date.isoformat()})")
        if day > today:
            raise ValidationError(f"{day.isoformat()} is in the future")

        challenge = self.refresh_challenge(challenge)
        record = self._progress.get_for_date(user_id, challenge_id, day)
        if record is None:
            raise NotFoundError(f"No progress recorded for {day.isoformat()}")
        return record, challenge

    def list_progress(self, *, user_id: str, challenge_id: str) -> Tuple[List[DailyProgress], Challenge]:
        challenge = self.refresh_challenge(self._owned_challenge(user_id, challenge_id))
        return self._progress.list_for_challenge(user_id, challenge_id), challenge

    # Mutations ---------------------------------------------------------
    def _mutable_record(self, user_id: str, progress_id: str) -> Tuple[DailyProgress, Challenge]:
        record = self._progress.get_progress(progress_id)
        if record is None:
            raise NotFoundError(f"Progress entry {progress_id} not found")
        if record.user_id != user_id:
            raise PermissionError("Progress entry does not belong to this user")
        # A run past its last day is settled before any edit
        challenge = self.refresh_challenge(self._owned_challenge(user_id, record.challenge_id))
        if challenge.status != "active":
            raise InvalidStateError(f"Cannot change tasks of a {challenge.status} challenge")
        return record, challenge

    def _is_latest_day(self, record: DailyProgress, challenge: Challenge) -> bool:
        return record.date == self.calculator.last_tracked_day(challenge)

    def toggle_task(
        self, *, user_id: str, progress_id: str, task_id: str, completed: bool
    ) -> Tuple[DailyProgress, Challenge]:
        record, challenge = self._mutable_record(user_id, progress_id)
        mutations.toggle_task(record, task_id, completed, self.calculator.now())
        self._progress.save_progress(record)
        log_event(
            "info",
            "task.toggled",
            user_id=user_id,
            challenge_id=challenge.challenge_id,
            event_type="task.toggled",
            extra={"day_number": record.day_number, "completed": completed, "completion_rate": record.completion_rate},
        )
        return record, self.refresh_challenge(challenge)

    def add_task(self, *, user_id: str, progress_id: str, text: str) -> Tuple[DailyProgress, Task, Challenge]:
        record, challenge = self._mutable_record(user_id, progress_id)
        task = mutations.add_task(record, challenge.level, text, self.calculator.now())
        self._progress.save_progress(record)
        if self._is_latest_day(record, challenge):
            challenge.task_template.append(TaskTemplate(id=task.id, text=task.text))
        return record, task, self.refresh_challenge(challenge)

    def edit_task_text(
        self, *, user_id: str, progress_id: str, task_id: str, text: str
    ) -> Tuple[DailyProgress, Task, Challenge]:
        record, challenge = self._mutable_record(user_id, progress_id)
        task = mutations.edit_task_text(record, challenge.level, task_id, text, self.calculator.now())
        self._progress.save_progress(record)
        if self._is_latest_day(record, challenge):
            for entry in challenge.task_template:
                if entry.id == task_id:
                    entry.text = task.text
        return record, task, self.refresh_challenge(challenge)

    def remove_task(self, *, user_id: str, progress_id: str, task_id: str) -> Tuple[DailyProgress, Challenge]:
        record, challenge = self._mutable_record(user_id, progress_id)
        mutations.remove_task(record, challenge.level, task_id, self.calculator.now())
        self._progress.save_progress(record)
        if self._is_latest_day(record, challenge):
            challenge.task_template = [entry for entry in challenge.task_template if entry.id != task_id]
        return record, self.refresh_challenge(challenge)


# Singleton service used by routes
progress_service = ProgressService()
