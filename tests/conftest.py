"""Shared fixtures: in-memory storage and a controllable clock."""

from __future__ import annotations

from datetime import datetime

import pytest

from readgoals.goals.engine import ReadingGoalsEngine
from readgoals.library.models import CatalogVolume, VolumeProgress
from readgoals.storage.backend import MemoryBackend


class FakeClock:
    """Callable clock returning a settable local time."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 15, 12, 0))


@pytest.fixture()
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture()
def engine(backend, clock) -> ReadingGoalsEngine:
    return ReadingGoalsEngine(backend, clock=clock)


def volume(progress=0, completed=False, last_update=None, completed_at=None) -> VolumeProgress:
    return VolumeProgress(
        progress=progress,
        completed=completed,
        last_progress_update=last_update,
        completed_at=completed_at,
    )


def catalog_entry(page_count: int) -> CatalogVolume:
    return CatalogVolume(page_count=page_count)
