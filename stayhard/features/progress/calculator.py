from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from stayhard.core.clock import Clock, utc_now
from stayhard.features.challenges.templates import instantiate_tasks
from stayhard.models.challenge import Challenge, ChallengeStats
from stayhard.models.progress import DailyProgress, Task

DateLike = Union[date, datetime]


def normalize_day(moment: DateLike) -> date:
    """Collapse a date or datetime to its UTC calendar day (naive means UTC)."""
    if isinstance(moment, datetime):
        aware = moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)
        return aware.astimezone(timezone.utc).date()
    return moment


def day_number(start_date: DateLike, target_date: DateLike) -> int:
    """1-based day of target_date within a challenge starting on start_date.

    Values <= 0 mean the target precedes the start; callers decide how to fail.
    """
    return (normalize_day(target_date) - normalize_day(start_date)).days + 1


def date_for_day(start_date: DateLike, number: int) -> date:
    return normalize_day(start_date) + timedelta(days=number - 1)


class ChallengeProgressCalculator:
    """Day numbering, backfill planning and streak statistics for a challenge."""

    def __init__(
        self,
        clock: Clock = utc_now,
        templates: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        self._clock = clock
        self._templates = templates

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return normalize_day(self._clock())

    def instantiate_tasks(self, challenge: Challenge) -> List[Task]:
        return instantiate_tasks(
            challenge.level,
            challenge.task_template if challenge.level == "Custom" else None,
            templates=self._templates,
        )

    def new_record(self, challenge: Challenge, target: date, now: Optional[datetime] = None) -> DailyProgress:
        moment = now or self.now()
        return DailyProgress(
            progress_id=str(uuid.uuid4()),
            user_id=challenge.user_id,
            challenge_id=challenge.challenge_id,
            date=target,
            day_number=day_number(challenge.start_date, target),
            tasks=self.instantiate_tasks(challenge),
            created_at=moment,
            updated_at=moment,
        )

    def last_tracked_day(self, challenge: Challenge, today: Optional[date] = None) -> Optional[date]:
        """Latest day that should have a record, or None before the start."""
        current = today or self.today()
        last = min(current, challenge.end_date)
        if last < challenge.start_day:
            return None
        return last

    def missing_days(
        self,
        challenge: Challenge,
        existing_dates: Iterable[date],
        today: Optional[date] = None,
    ) -> List[Tuple[date, int]]:
        """(date, day_number) for every elapsed challenge day without a record."""
        last = self.last_tracked_day(challenge, today)
        if last is None:
            return []
        present = set(existing_dates)
        missing: List[Tuple[date, int]] = []
        cursor = challenge.start_day
        while cursor <= last:
            if cursor not in present:
                missing.append((cursor, day_number(challenge.start_date, cursor)))
            cursor += timedelta(days=1)
        return missing

    def build_missing_records(
        self,
        challenge: Challenge,
        existing: Iterable[DailyProgress],
        today: Optional[date] = None,
    ) -> List[DailyProgress]:
        now = self.now()
        gaps = self.missing_days(challenge, (record.date for record in existing), today)
        return [self.new_record(challenge, target, now) for target, _ in gaps]

    def total_days_elapsed(self, challenge: Challenge, today: Optional[date] = None) -> int:
        current = today or self.today()
        return max(0, min(day_number(challenge.start_date, current), challenge.duration_days))

    def recompute_stats(
        self,
        challenge: Challenge,
        records: Iterable[DailyProgress],
        today: Optional[date] = None,
    ) -> ChallengeStats:
        current = today or self.today()
        elapsed = self.total_days_elapsed(challenge, current)
        if elapsed == 0:
            return ChallengeStats()

        by_day: Dict[int, DailyProgress] = {record.day_number: record for record in records}

        completed_days = 0
        running = 0
        longest = 0
        rate_total = 0.0
        streak_before_last = 0
        for number in range(1, elapsed + 1):
            record = by_day.get(number)
            rate = record.completion_rate if record else 0.0
            rate_total += rate
            if number == elapsed:
                streak_before_last = running
            if rate == 1:
                completed_days += 1
                running += 1
                longest = max(longest, running)
            else:
                running = 0

        # An unfinished today does not break the streak yet
        last_is_today = date_for_day(challenge.start_date, elapsed) == current
        last_record = by_day.get(elapsed)
        last_complete = bool(last_record and last_record.is_complete)
        if last_is_today and not last_complete:
            current_streak = streak_before_last
        else:
            current_streak = running

        return ChallengeStats(
            completed_days=completed_days,
            current_streak=current_streak,
            longest_streak=longest,
            average_completion_rate=rate_total / elapsed,
            total_days_elapsed=elapsed,
        )

    def is_finished(self, challenge: Challenge, today: Optional[date] = None) -> bool:
        """True once every challenge day is in the past."""
        current = today or self.today()
        return current > challenge.end_date
