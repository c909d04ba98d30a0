from datetime import date, datetime, timezone

import pytest

from stayhard.core.errors import (
    ConflictError,
    ImmutableTaskSetError,
    InvalidLevelError,
    InvalidStateError,
    NotFoundError,
    PermissionError,
    ValidationError,
)
from stayhard.features.challenges.persistence import ChallengePersistence
from stayhard.features.progress.persistence import ProgressPersistence
from stayhard.features.users.service import get_or_create_user, get_user


def mark_all_complete(user_id, challenge_id):
    for record in ProgressPersistence.list_for_challenge(user_id, challenge_id):
        for task in record.tasks:
            task.completed = True
        ProgressPersistence.save_progress(record)


def test_start_is_idempotent_while_active(services):
    _, challenges = services
    first, created = challenges.start_challenge(user_id="u1")
    second, created_again = challenges.start_challenge(user_id="u1", duration_days=75, level="Hard")

    assert created and not created_again
    assert second.challenge_id == first.challenge_id
    assert second.duration_days == 21


def test_start_validates_duration_and_level(services):
    _, challenges = services
    with pytest.raises(ValidationError):
        challenges.start_challenge(user_id="u1", duration_days=30)
    with pytest.raises(InvalidLevelError):
        challenges.start_challenge(user_id="u1", level="Extreme")
    with pytest.raises(ValidationError):
        challenges.start_challenge(user_id="u1", level="Custom")
    assert ChallengePersistence.get_active_for_user("u1") is None


def test_custom_start_uses_supplied_tasks(services):
    _, challenges = services
    challenge, _ = challenges.start_challenge(
        user_id="u1", duration_days=45, level="Custom", custom_tasks=["Run", {"id": "j", "text": "Journal"}]
    )

    day_one = ProgressPersistence.list_for_challenge("u1", challenge.challenge_id)[0]
    assert [t.text for t in day_one.tasks] == ["Run", "Journal"]
    assert day_one.tasks[1].id == "j"
    assert challenge.end_date == date(2024, 2, 14)


def test_only_one_active_challenge_per_user(services):
    _, challenges = services
    challenge, _ = challenges.start_challenge(user_id="u1")

    clone = ChallengePersistence.get_challenge(challenge.challenge_id)
    clone.challenge_id = "another"
    assert ChallengePersistence.create_challenge(clone) is False


def test_update_days(services, clock_at):
    _, challenges = services
    challenge, _ = challenges.start_challenge(user_id="u1", duration_days=45)

    updated = challenges.update_days(user_id="u1", challenge_id=challenge.challenge_id, duration_days=60)
    assert updated.duration_days == 60
    assert updated.end_date == date(2024, 2, 29)

    with pytest.raises(ValidationError):
        challenges.update_days(user_id="u1", challenge_id=challenge.challenge_id, duration_days=10)

    clock_at.set(datetime(2024, 1, 30, tzinfo=timezone.utc))
    with pytest.raises(ValidationError):
        challenges.update_days(user_id="u1", challenge_id=challenge.challenge_id, duration_days=21)


def test_difficulty_change_purges_and_restarts(services, clock_at):
    progress, challenges = services
    challenge, _ = challenges.start_challenge(user_id="u1")
    clock_at.set(datetime(2024, 1, 3, 10, 0, tzinfo=timezone.utc))
    progress.ensure_progress_through(challenge)

    updated, deleted = challenges.update_difficulty(
        user_id="u1", challenge_id=challenge.challenge_id, level="Hard"
    )

    assert deleted == 3
    assert updated.level == "Hard"
    assert updated.start_day == date(2024, 1, 3)
    assert updated.stats.total_days_elapsed == 1
    records = ProgressPersistence.list_for_challenge("u1", challenge.challenge_id)
    assert [r.day_number for r in records] == [1]
    assert len(records[0].tasks) == 6


def test_difficulty_change_without_purge_applies_to_later_days(services, clock_at):
    progress, challenges = services
    challenge, _ = challenges.start_challenge(user_id="u1")
    clock_at.set(datetime(2024, 1, 2, tzinfo=timezone.utc))
    progress.ensure_progress_through(challenge)

    _, deleted = challenges.update_difficulty(
        user_id="u1", challenge_id=challenge.challenge_id, level="Hard", purge=False
    )
    assert deleted == 0

    clock_at.set(datetime(2024, 1, 3, tzinfo=timezone.utc))
    records, refreshed = progress.list_progress(user_id="u1", challenge_id=challenge.challenge_id)
    assert [len(r.tasks) for r in records] == [5, 5, 6]
    assert refreshed.start_day == date(2024, 1, 1)


def test_difficulty_change_to_custom_requires_tasks(services):
    _, challenges = services
    challenge, _ = challenges.start_challenge(user_id="u1")
    with pytest.raises(ValidationError):
        challenges.update_difficulty(user_id="u1", challenge_id=challenge.challenge_id, level="Custom")
    with pytest.raises(InvalidLevelError):
        challenges.update_difficulty(user_id="u1", challenge_id=challenge.challenge_id, level="Brutal")


def test_finished_challenge_completes(services, clock_at):
    progress, challenges = services
    challenge, _ = challenges.start_challenge(user_id="u1")

    clock_at.set(datetime(2024, 1, 21, 20, 0, tzinfo=timezone.utc))
    progress.ensure_progress_through(challenge)
    mark_all_complete("u1", challenge.challenge_id)

    clock_at.set(datetime(2024, 1, 22, 1, 0, tzinfo=timezone.utc))
    finished = challenges.get_challenge(user_id="u1", challenge_id=challenge.challenge_id)
    assert finished.status == "completed"
    assert finished.completed_at is not None
    assert finished.stats.completed_days == 21
    assert finished.days_remaining(date(2024, 1, 22)) == 0


def test_finished_challenge_with_gaps_fails(services, clock_at, no_auto_start):
    _, challenges = services
    get_or_create_user("u1")
    challenge, _ = challenges.start_challenge(user_id="u1")
    assert get_user("u1").current_challenge_id == challenge.challenge_id

    clock_at.set(datetime(2024, 2, 1, tzinfo=timezone.utc))
    failed = challenges.get_challenge(user_id="u1", challenge_id=challenge.challenge_id)
    assert failed.status == "failed"
    assert failed.failure_reason == "incomplete_days"
    assert get_user("u1").current_challenge_id is None
    with pytest.raises(NotFoundError):
        challenges.get_current_challenge(user_id="u1")


def test_reset_active_challenge(services, clock_at):
    progress, challenges = services
    challenge, _ = challenges.start_challenge(user_id="u1", duration_days=60, level="Hard")
    clock_at.set(datetime(2024, 1, 4, tzinfo=timezone.utc))
    progress.ensure_progress_through(challenge)

    reset, deleted = challenges.reset_challenge(user_id="u1", challenge_id=challenge.challenge_id)

    assert deleted == 4
    assert reset.status == "active"
    assert reset.level == "Soft"
    assert reset.duration_days == 21
    assert reset.start_day == date(2024, 1, 4)
    assert len(ProgressPersistence.list_for_challenge("u1", challenge.challenge_id)) == 1


def test_reset_failed_challenge_reactivates(services, clock_at):
    _, challenges = services
    challenge, _ = challenges.start_challenge(user_id="u1")
    clock_at.set(datetime(2024, 2, 1, tzinfo=timezone.utc))
    assert challenges.get_challenge(user_id="u1", challenge_id=challenge.challenge_id).status == "failed"

    reset, _ = challenges.reset_challenge(user_id="u1", challenge_id=challenge.challenge_id)
    assert reset.status == "active"
    assert reset.failed_at is None
    assert reset.start_day == date(2024, 2, 1)
    records = ProgressPersistence.list_for_challenge("u1", challenge.challenge_id)
    assert [(r.day_number, r.completion_rate) for r in records] == [(1, 0.0)]
    assert challenges.get_current_challenge(user_id="u1").challenge_id == challenge.challenge_id


def test_reset_failed_blocked_by_other_active(services, clock_at):
    _, challenges = services
    old, _ = challenges.start_challenge(user_id="u1")
    clock_at.set(datetime(2024, 2, 1, tzinfo=timezone.utc))
    challenges.get_challenge(user_id="u1", challenge_id=old.challenge_id)

    new, created = challenges.start_challenge(user_id="u1")
    assert created and new.challenge_id != old.challenge_id

    with pytest.raises(InvalidStateError):
        challenges.reset_challenge(user_id="u1", challenge_id=old.challenge_id)


def test_abandon_freezes_challenge(services):
    progress, challenges = services
    challenge, _ = challenges.start_challenge(user_id="u1")
    abandoned = challenges.abandon_challenge(user_id="u1", challenge_id=challenge.challenge_id)
    assert abandoned.status == "abandoned"

    record = ProgressPersistence.list_for_challenge("u1", challenge.challenge_id)[0]
    with pytest.raises(InvalidStateError):
        progress.toggle_task(user_id="u1", progress_id=record.progress_id, task_id=record.tasks[0].id, completed=True)
    with pytest.raises(InvalidStateError):
        challenges.reset_challenge(user_id="u1", challenge_id=challenge.challenge_id)
    with pytest.raises(InvalidStateError):
        challenges.update_days(user_id="u1", challenge_id=challenge.challenge_id, duration_days=45)


def test_other_users_cannot_touch_challenge(services):
    _, challenges = services
    challenge, _ = challenges.start_challenge(user_id="u1")
    with pytest.raises(PermissionError):
        challenges.get_challenge(user_id="u2", challenge_id=challenge.challenge_id)
    with pytest.raises(PermissionError):
        challenges.abandon_challenge(user_id="u2", challenge_id=challenge.challenge_id)
    with pytest.raises(NotFoundError):
        challenges.get_challenge(user_id="u1", challenge_id="nope")


def test_fixed_level_task_set_is_immutable(services):
    progress, challenges = services
    challenge, _ = challenges.start_challenge(user_id="u1", level="Hard")
    record = ProgressPersistence.list_for_challenge("u1", challenge.challenge_id)[0]

    with pytest.raises(ImmutableTaskSetError):
        progress.add_task(user_id="u1", progress_id=record.progress_id, text="Extra")
    with pytest.raises(ImmutableTaskSetError):
        progress.remove_task(user_id="u1", progress_id=record.progress_id, task_id=record.tasks[0].id)


def test_custom_edits_on_latest_day_carry_forward(services, clock_at):
    progress, challenges = services
    challenge, _ = challenges.start_challenge(user_id="u1", level="Custom", custom_tasks=["Run", "Read"])
    day_one = ProgressPersistence.list_for_challenge("u1", challenge.challenge_id)[0]

    _, added, refreshed = progress.add_task(user_id="u1", progress_id=day_one.progress_id, text="Stretch")
    assert [t.text for t in refreshed.task_template] == ["Run", "Read", "Stretch"]
    progress.remove_task(user_id="u1", progress_id=day_one.progress_id, task_id=day_one.tasks[0].id)

    clock_at.set(datetime(2024, 1, 2, tzinfo=timezone.utc))
    day_two, _ = progress.get_tasks_for_date(user_id="u1", challenge_id=challenge.challenge_id)
    assert [t.text for t in day_two.tasks] == ["Read", "Stretch"]
    assert day_two.tasks[1].id == added.id

    # Editing an older day stays local to that day
    record, _, current = progress.edit_task_text(
        user_id="u1", progress_id=day_one.progress_id, task_id=added.id, text="Yoga"
    )
    assert record.find_task(added.id).text == "Yoga"
    assert [t.text for t in current.task_template] == ["Read", "Stretch"]


def test_late_toggle_cannot_rescue_ended_challenge(services, clock_at):
    progress, challenges = services
    challenge, _ = challenges.start_challenge(user_id="u1")

    clock_at.set(datetime(2024, 1, 21, 20, 0, tzinfo=timezone.utc))
    progress.ensure_progress_through(challenge)
    mark_all_complete("u1", challenge.challenge_id)
    last_day = ProgressPersistence.list_for_challenge("u1", challenge.challenge_id)[-1]
    open_task = last_day.tasks[0]
    progress.toggle_task(user_id="u1", progress_id=last_day.progress_id, task_id=open_task.id, completed=False)

    clock_at.set(datetime(2024, 1, 25, tzinfo=timezone.utc))
    with pytest.raises(InvalidStateError):
        progress.toggle_task(user_id="u1", progress_id=last_day.progress_id, task_id=open_task.id, completed=True)

    settled = ChallengePersistence.get_challenge(challenge.challenge_id)
    assert settled.status == "failed"
    assert ProgressPersistence.get_progress(last_day.progress_id).find_task(open_task.id).completed is False


def test_ended_challenge_cannot_be_extended_or_reworked(services, clock_at):
    _, challenges = services
    challenge, _ = challenges.start_challenge(user_id="u1")

    clock_at.set(datetime(2024, 1, 30, tzinfo=timezone.utc))
    with pytest.raises(InvalidStateError):
        challenges.update_days(user_id="u1", challenge_id=challenge.challenge_id, duration_days=45)
    with pytest.raises(InvalidStateError):
        challenges.update_difficulty(user_id="u1", challenge_id=challenge.challenge_id, level="Hard")

    stored = ChallengePersistence.get_challenge(challenge.challenge_id)
    assert stored.status == "failed"
    assert stored.duration_days == 21
    assert stored.level == "Soft"


def test_reset_keeps_history_when_save_loses(services, clock_at, monkeypatch):
    progress, challenges = services
    challenge, _ = challenges.start_challenge(user_id="u1")
    clock_at.set(datetime(2024, 1, 3, tzinfo=timezone.utc))
    progress.ensure_progress_through(challenge)

    monkeypatch.setattr(ChallengePersistence, "save_challenge", staticmethod(lambda c: False))
    with pytest.raises(ConflictError):
        challenges.reset_challenge(user_id="u1", challenge_id=challenge.challenge_id)
    with pytest.raises(ConflictError):
        challenges.update_difficulty(user_id="u1", challenge_id=challenge.challenge_id, level="Hard")

    records = ProgressPersistence.list_for_challenge("u1", challenge.challenge_id)
    assert [r.day_number for r in records] == [1, 2, 3]
    assert ChallengePersistence.get_challenge(challenge.challenge_id).start_day == date(2024, 1, 1)


def test_explicit_zero_duration_is_rejected(services):
    _, challenges = services
    with pytest.raises(ValidationError):
        challenges.start_challenge(user_id="u1", duration_days=0)
    assert ChallengePersistence.get_active_for_user("u1") is None
