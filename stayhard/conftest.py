# stayhard/conftest.py
import os
from datetime import datetime, timezone

import pytest

# Must be set before stayhard.core.config is imported
os.environ.setdefault("ENV", "test")
os.environ.setdefault("SKIP_ENV_VALIDATION", "1")
os.environ.setdefault("JWT_SECRET", "test-secret-at-least-32-bytes-long!")


@pytest.fixture(scope="function", autouse=True)
def sqlite_db():
    """
    Point the engine at a fresh in-memory SQLite database for every test.

    A new engine per test means a new StaticPool connection, so no rows leak
    between tests.
    """
    from stayhard.core.database import init_engine, create_all_tables, get_engine

    init_engine("sqlite://")
    create_all_tables()
    yield
    get_engine().dispose()


@pytest.fixture
def fixed_now():
    """Pinned 'now' for calculator and service tests: 2024-01-05 12:00 UTC."""
    return datetime(2024, 1, 5, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock_at():
    """Mutable clock: call .set(datetime) to move time inside a test."""

    class MovableClock:
        def __init__(self):
            self.moment = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

        def set(self, moment: datetime) -> None:
            self.moment = moment

        def __call__(self) -> datetime:
            return self.moment

    return MovableClock()


@pytest.fixture
def services(clock_at):
    """ProgressService + ChallengeService sharing the movable clock."""
    from stayhard.features.challenges.service import ChallengeService
    from stayhard.features.progress.calculator import ChallengeProgressCalculator
    from stayhard.features.progress.service import ProgressService

    progress = ProgressService(calculator=ChallengeProgressCalculator(clock=clock_at))
    challenges = ChallengeService(progress_service=progress)
    return progress, challenges


@pytest.fixture
def no_auto_start(monkeypatch):
    """Disable starting a default challenge on a user's first request."""
    from stayhard.core.config import settings

    monkeypatch.setattr(settings, "AUTO_START_CHALLENGE", False)
