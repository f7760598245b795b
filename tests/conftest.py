"""Shared fixtures for Allowance Tracker tests."""

import shutil
from datetime import date, datetime, timedelta, timezone

import pytest

from allowance_tracker.config import get_settings
from allowance_tracker.models.family import Child
from allowance_tracker.orchestrator import create_app_components


EST = timezone(timedelta(hours=-5))

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


class FixedClock:
    """A settable clock for services."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FixedClock:
    # Monday
    return FixedClock(datetime(2025, 1, 20, 10, 0, 0, tzinfo=EST))


@pytest.fixture
def tracker(tmp_path, clock):
    return create_app_components(data_dir=tmp_path, clock=clock, versioning_enabled=False)


@pytest.fixture
def child(tracker) -> Child:
    return tracker.profiles.create_child("Alex", date(2015, 6, 1))


def make_child(directory: str = "alex") -> Child:
    stamp = datetime(2025, 1, 1, 9, 0, 0, tzinfo=EST)
    return Child(
        id="child::1735740000000",
        name="Alex",
        birthdate=date(2015, 6, 1),
        directory=directory,
        created_at=stamp,
        updated_at=stamp,
    )
