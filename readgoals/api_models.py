"""HTTP request and response models."""

from dataclasses import asdict
from datetime import datetime
from typing import Optional

from readgoals.goals.models import (
    CamelModel,
    GoalPeriod,
    GoalProgress,
    GoalSettings,
    GoalsData,
    GoalSnapshot,
    PeriodGoalType,
)


class TargetRequest(CamelModel):
    goal_type: PeriodGoalType
    period_key: str
    target_volumes: float


class CustomGoalRequest(CamelModel):
    name: str
    target_volumes: float
    start_date: str
    end_date: str
    enabled: bool = True


class AnnualGoalRequest(CamelModel):
    target_volumes: float
    year: Optional[int] = None


class DeadlineRequest(CamelModel):
    deadline: str  # YYYY-MM-DD


class ProgressResponse(CamelModel):
    """Response for the progress endpoints."""

    title: str
    target_volumes: float
    completed_volumes: int
    in_progress_volumes: int
    total_progress: float
    progress_percent: float
    expected_progress_percent: float
    status: str
    pages_per_day_for_goal: int
    days_remaining: int
    period_label: str
    is_closed: bool

    @classmethod
    def from_progress(cls, progress: GoalProgress) -> "ProgressResponse":
        return cls(**asdict(progress))


class PeriodResponse(CamelModel):
    goal_type: str
    period_key: str
    label: str
    start: datetime
    end: datetime

    @classmethod
    def from_period(cls, period: GoalPeriod) -> "PeriodResponse":
        return cls(**asdict(period))


class PaceResponse(CamelModel):
    volume_id: str
    deadline: Optional[str] = None
    pages_per_day: Optional[int] = None


class SettingsSyncRequest(CamelModel):
    data: GoalSettings
    updated_at: str


class GoalsSyncRequest(CamelModel):
    data: GoalsData
    updated_at: str


class SnapshotsSyncRequest(CamelModel):
    data: dict[str, GoalSnapshot]
    updated_at: str


class CompletedAtSyncRequest(CamelModel):
    data: dict[str, str]
    updated_at: str
