"""Data models for reading goals, periods, snapshots and progress."""

from dataclasses import dataclass
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

GoalType = Literal["year", "season", "month", "today", "custom"]
PeriodGoalType = Literal["year", "season", "month", "today"]
GoalStatus = Literal["ahead", "on-track", "behind", "far-behind"]

PERIOD_GOAL_TYPES: tuple[str, ...] = ("year", "season", "month", "today")


class CamelModel(BaseModel):
    """Base for persisted models; serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class GoalTarget(CamelModel):
    """Target volume count for one recurring period."""

    goal_type: PeriodGoalType
    period_key: str
    target_volumes: float
    created_at: str


class CustomGoal(CamelModel):
    """A goal over an arbitrary inclusive date range."""

    id: str
    name: str
    target_volumes: float
    start_date: str  # YYYY-MM-DD, local
    end_date: str  # YYYY-MM-DD, local, inclusive
    enabled: bool = True
    created_at: str


class PeriodSelection(CamelModel):
    goal_type: PeriodGoalType
    period_key: str


class CustomSelection(CamelModel):
    goal_type: Literal["custom"] = "custom"
    custom_id: str


GoalSelection = Annotated[Union[PeriodSelection, CustomSelection], Field(discriminator="goal_type")]


class GoalsData(CamelModel):
    """Targets, custom goals and the active selection, persisted together."""

    targets: list[GoalTarget] = Field(default_factory=list)
    custom_goals: list[CustomGoal] = Field(default_factory=list)
    active_selection: GoalSelection


class GoalSnapshot(CamelModel):
    """Frozen completions of a closed period."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    goal_type: GoalType
    period_key: str
    start_date: str
    end_date: str
    closed_at: str
    completed: dict[str, str] = Field(default_factory=dict)  # volume id -> completedAt


class AnnualGoal(CamelModel):
    year: int
    target_volumes: float


class GoalSettings(CamelModel):
    """Legacy settings: yearly targets and per-volume deadlines."""

    annual_goals: list[AnnualGoal] = Field(default_factory=list)
    volume_deadlines: dict[str, str] = Field(default_factory=dict)  # volume id -> YYYY-MM-DD


@dataclass(frozen=True)
class GoalPeriod:
    """A resolved ``[start, end)`` interval. Never persisted."""

    goal_type: str
    period_key: str
    label: str
    start: datetime
    end: datetime


@dataclass
class GoalProgress:
    """Progress report for one goal period."""

    title: str
    target_volumes: float
    completed_volumes: int = 0
    in_progress_volumes: int = 0
    total_progress: float = 0.0
    progress_percent: float = 0.0
    expected_progress_percent: float = 0.0
    status: str = "behind"  # "ahead", "on-track", "behind", "far-behind"
    pages_per_day_for_goal: int = 0
    days_remaining: int = 0
    period_label: str = ""
    is_closed: bool = False
