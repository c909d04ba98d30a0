"""
Database persistence for daily progress records.

Uniqueness of (user_id, challenge_id, date) is enforced by the table; a
losing concurrent insert surfaces as create_progress() returning False.
"""

from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import select, insert, update, delete, and_
from sqlalchemy.exc import IntegrityError

from stayhard.core.clock import ensure_utc
from stayhard.core.database import get_db_session, daily_progress
from stayhard.models.progress import DailyProgress, Task


def _task_to_json(task: Task) -> dict:
    return {
        "id": task.id,
        "text": task.text,
        "completed": task.completed,
        "completed_at": task.completed_at.isoformat() if task.completed_at else None,
    }


def _task_from_json(payload: dict) -> Task:
    completed_at = payload.get("completed_at")
    return Task(
        id=payload["id"],
        text=payload["text"],
        completed=bool(payload.get("completed", False)),
        completed_at=ensure_utc(datetime.fromisoformat(completed_at)) if completed_at else None,
    )


def _row_to_progress(row) -> DailyProgress:
    return DailyProgress(
        progress_id=row.progress_id,
        user_id=row.user_id,
        challenge_id=row.challenge_id,
        date=row.date,
        day_number=row.day_number,
        tasks=[_task_from_json(t) for t in (row.tasks or [])],
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


class ProgressPersistence:
    """DailyProgress rows keyed by progress_id and by (user, challenge, date)."""

    @staticmethod
    def create_progress(record: DailyProgress) -> bool:
        """
        Persist a new daily record.

        Returns:
            True if created, False if a record for that day already exists
        """
        try:
            with get_db_session() as session:
                session.execute(
                    insert(daily_progress).values(
                        progress_id=record.progress_id,
                        user_id=record.user_id,
                        challenge_id=record.challenge_id,
                        date=record.date,
                        day_number=record.day_number,
                        tasks=[_task_to_json(t) for t in record.tasks],
                        completion_rate=record.completion_rate,
                        created_at=record.created_at,
                        updated_at=record.updated_at,
                    )
                )
            return True
        except IntegrityError:
            return False

    @staticmethod
    def get_progress(progress_id: str) -> Optional[DailyProgress]:
        with get_db_session() as session:
            row = session.execute(
                select(daily_progress).where(daily_progress.c.progress_id == progress_id)
            ).first()
            return _row_to_progress(row) if row else None

    @staticmethod
    def get_for_date(user_id: str, challenge_id: str, target: date) -> Optional[DailyProgress]:
        with get_db_session() as session:
            row = session.execute(
                select(daily_progress).where(
                    and_(
                        daily_progress.c.user_id == user_id,
                        daily_progress.c.challenge_id == challenge_id,
                        daily_progress.c.date == target,
                    )
                )
            ).first()
            return _row_to_progress(row) if row else None

    @staticmethod
    def list_for_challenge(user_id: str, challenge_id: str) -> List[DailyProgress]:
        """All records of a challenge ordered by day number."""
        with get_db_session() as session:
            rows = session.execute(
                select(daily_progress)
                .where(
                    and_(
                        daily_progress.c.user_id == user_id,
                        daily_progress.c.challenge_id == challenge_id,
                    )
                )
                .order_by(daily_progress.c.day_number)
            ).all()
            return [_row_to_progress(row) for row in rows]

    @staticmethod
    def list_for_user(user_id: str) -> List[DailyProgress]:
        with get_db_session() as session:
            rows = session.execute(
                select(daily_progress).where(daily_progress.c.user_id == user_id)
            ).all()
            return [_row_to_progress(row) for row in rows]

    @staticmethod
    def save_progress(record: DailyProgress) -> None:
        with get_db_session() as session:
            session.execute(
                update(daily_progress)
                .where(daily_progress.c.progress_id == record.progress_id)
                .values(
                    tasks=[_task_to_json(t) for t in record.tasks],
                    completion_rate=record.completion_rate,
                    updated_at=record.updated_at,
                )
            )

    @staticmethod
    def delete_for_challenge(challenge_id: str) -> int:
        """Purge every record of a challenge. Returns the number deleted."""
        with get_db_session() as session:
            result = session.execute(
                delete(daily_progress).where(daily_progress.c.challenge_id == challenge_id)
            )
            return result.rowcount or 0
