"""Legacy goal settings: yearly targets and per-volume deadlines."""

import logging
import math
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional

from pydantic import TypeAdapter

from readgoals._util import Clock
from readgoals.reactive import Writable
from readgoals.storage.backend import StorageBackend
from readgoals.storage.datasets import PersistedDataset, decode_field

from .models import AnnualGoal, GoalSettings
from .periods import calculate_days_remaining

logger = logging.getLogger(__name__)

GOAL_SETTINGS_KEY = "goalSettings"
GOAL_SETTINGS_UPDATED_AT_KEY = "goalSettingsUpdatedAt"

_annual_goals_adapter = TypeAdapter(list[AnnualGoal])
_deadlines_adapter = TypeAdapter(dict[str, str])


def decode_goal_settings(raw: Any, default: GoalSettings) -> GoalSettings:
    if not isinstance(raw, dict):
        return default
    return GoalSettings(
        annual_goals=decode_field(
            _annual_goals_adapter, raw.get("annualGoals"), default.annual_goals
        ),
        volume_deadlines=decode_field(
            _deadlines_adapter, raw.get("volumeDeadlines"), default.volume_deadlines
        ),
    )


def calculate_pages_per_day(
    remaining_pages: float, deadline: Optional[str], now: datetime
) -> Optional[int]:
    """
    Pages per day needed to finish by a deadline.

    Returns:
        None without a deadline or when nothing remains; all remaining
        pages once the deadline has passed
    """
    if not deadline or remaining_pages <= 0:
        return None

    days_remaining = calculate_days_remaining(deadline, now)
    if days_remaining <= 0:
        return math.ceil(remaining_pages)

    return math.ceil(remaining_pages / days_remaining)


class GoalSettingsStore:
    """Annual goals and volume deadlines, persisted as ``goalSettings``."""

    def __init__(
        self,
        backend: StorageBackend,
        clock: Clock = datetime.now,
        default_target: float = 52,
    ):
        self.clock = clock
        self.default_target = default_target
        self.dataset = PersistedDataset(
            backend, GOAL_SETTINGS_KEY, GOAL_SETTINGS_UPDATED_AT_KEY, clock
        )
        default = GoalSettings(
            annual_goals=[AnnualGoal(year=clock().year, target_volumes=default_target)],
            volume_deadlines={},
        )
        self.settings: Writable[GoalSettings] = Writable(
            decode_goal_settings(self.dataset.load(), default)
        )
        self.settings.subscribe(lambda value: self.dataset.save(value.to_json()))

    def get_annual_goal(self, year: Optional[int] = None) -> float:
        year = year or self.clock().year
        goal = next((g for g in self.settings.get().annual_goals if g.year == year), None)
        return goal.target_volumes if goal else self.default_target

    def set_annual_goal(self, target_volumes: float, year: Optional[int] = None) -> None:
        if target_volumes <= 0:
            logger.warning(f"Ignoring non-positive annual goal {target_volumes}")
            return
        year = year or self.clock().year

        def apply(settings: GoalSettings) -> GoalSettings:
            goals = [
                g.model_copy(update={"target_volumes": target_volumes}) if g.year == year else g
                for g in settings.annual_goals
            ]
            if not any(g.year == year for g in goals):
                goals.append(AnnualGoal(year=year, target_volumes=target_volumes))
            return settings.model_copy(update={"annual_goals": goals})

        self.settings.update(apply)
        logger.info(f"Annual goal for {year} set to {target_volumes}")

    @property
    def volume_deadlines(self) -> Mapping[str, str]:
        return MappingProxyType(self.settings.get().volume_deadlines)

    def get_volume_deadline(self, volume_id: str) -> Optional[str]:
        return self.settings.get().volume_deadlines.get(volume_id) or None

    def set_volume_deadline(self, volume_id: str, deadline: str) -> None:
        self.settings.update(
            lambda s: s.model_copy(
                update={"volume_deadlines": {**s.volume_deadlines, volume_id: deadline}}
            )
        )

    def remove_volume_deadline(self, volume_id: str) -> None:
        current = self.settings.get()
        if volume_id not in current.volume_deadlines:
            return
        deadlines = {k: v for k, v in current.volume_deadlines.items() if k != volume_id}
        self.settings.set(current.model_copy(update={"volume_deadlines": deadlines}))

    def pages_per_day(self, volume_id: str, remaining_pages: float) -> Optional[int]:
        return calculate_pages_per_day(
            remaining_pages, self.get_volume_deadline(volume_id), self.clock()
        )

    def replace(self, settings: GoalSettings, updated_at: str) -> None:
        """Replace with a remote copy and adopt its stamp."""
        self.settings.set(settings)
        self.dataset.save(settings.to_json(), updated_at=updated_at)
