"""
Database persistence for challenges.

Maps rows of the challenges table to the Challenge domain model.
"""

from typing import Optional

from sqlalchemy import select, insert, update, and_
from sqlalchemy.exc import IntegrityError

from stayhard.core.clock import ensure_utc
from stayhard.core.database import get_db_session, challenges
from stayhard.models.challenge import Challenge, ChallengeStats, TaskTemplate


def _row_to_challenge(row) -> Challenge:
    return Challenge(
        challenge_id=row.challenge_id,
        user_id=row.user_id,
        start_date=ensure_utc(row.start_date),
        duration_days=row.duration_days,
        level=row.level,
        status=row.status,
        task_template=[TaskTemplate(id=t["id"], text=t["text"]) for t in (row.task_template or [])],
        stats=ChallengeStats(
            completed_days=row.completed_days,
            current_streak=row.current_streak,
            longest_streak=row.longest_streak,
            average_completion_rate=row.average_completion_rate,
            total_days_elapsed=row.total_days_elapsed,
        ),
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
        completed_at=ensure_utc(row.completed_at),
        failed_at=ensure_utc(row.failed_at),
        failure_reason=row.failure_reason,
    )


def _mutable_values(challenge: Challenge) -> dict:
    return {
        'duration_days': challenge.duration_days,
        'level': challenge.level,
        'status': challenge.status,
        'start_date': challenge.start_date,
        'task_template': [t.to_dict() for t in challenge.task_template],
        'completed_days': challenge.stats.completed_days,
        'current_streak': challenge.stats.current_streak,
        'longest_streak': challenge.stats.longest_streak,
        'average_completion_rate': challenge.stats.average_completion_rate,
        'total_days_elapsed': challenge.stats.total_days_elapsed,
        'completed_at': challenge.completed_at,
        'failed_at': challenge.failed_at,
        'failure_reason': challenge.failure_reason,
        'updated_at': challenge.updated_at,
    }


class ChallengePersistence:
    """Challenge rows keyed by challenge_id, with per-user lookups."""

    @staticmethod
    def create_challenge(challenge: Challenge) -> bool:
        """
        Persist a new challenge.

        Returns:
            True if created, False if it collides with an existing row
            (duplicate id or a second active challenge for the user)
        """
        try:
            with get_db_session() as session:
                session.execute(
                    insert(challenges).values(
                        challenge_id=challenge.challenge_id,
                        user_id=challenge.user_id,
                        created_at=challenge.created_at,
                        **_mutable_values(challenge),
                    )
                )
            return True
        except IntegrityError:
            return False

    @staticmethod
    def get_challenge(challenge_id: str) -> Optional[Challenge]:
        with get_db_session() as session:
            row = session.execute(
                select(challenges).where(challenges.c.challenge_id == challenge_id)
            ).first()
            return _row_to_challenge(row) if row else None

    @staticmethod
    def get_active_for_user(user_id: str) -> Optional[Challenge]:
        with get_db_session() as session:
            row = session.execute(
                select(challenges).where(
                    and_(challenges.c.user_id == user_id, challenges.c.status == 'active')
                )
            ).first()
            return _row_to_challenge(row) if row else None

    @staticmethod
    def save_challenge(challenge: Challenge) -> bool:
        """
        Write back every mutable field.

        Returns:
            False when the update would violate the one-active-challenge rule
        """
        try:
            with get_db_session() as session:
                session.execute(
                    update(challenges)
                    .where(challenges.c.challenge_id == challenge.challenge_id)
                    .values(**_mutable_values(challenge))
                )
            return True
        except IntegrityError:
            return False
