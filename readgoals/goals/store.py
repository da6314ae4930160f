"""Goal store: period targets, custom goals and the active selection."""

import logging
import uuid
from datetime import datetime
from typing import Any, Iterable, Optional, Union

from pydantic import TypeAdapter

from readgoals._util import Clock, format_timestamp
from readgoals.reactive import Writable
from readgoals.storage.backend import StorageBackend
from readgoals.storage.datasets import PersistedDataset, decode_field

from .models import (
    CustomGoal,
    CustomSelection,
    GoalSelection,
    GoalsData,
    GoalTarget,
    PeriodSelection,
)
from .periods import build_year_key, get_current_period_key, parse_date

logger = logging.getLogger(__name__)

GOALS_DATA_KEY = "goalsData"
GOALS_DATA_UPDATED_AT_KEY = "goalsDataUpdatedAt"

_targets_adapter = TypeAdapter(list[GoalTarget])
_custom_goals_adapter = TypeAdapter(list[CustomGoal])
_selection_adapter = TypeAdapter(GoalSelection)


def default_goals_data(now: datetime, target_volumes: float = 52) -> GoalsData:
    """One yearly target for the current year, selected."""
    year_key = build_year_key(now.year)
    return GoalsData(
        targets=[
            GoalTarget(
                goal_type="year",
                period_key=year_key,
                target_volumes=target_volumes,
                created_at=format_timestamp(now),
            )
        ],
        custom_goals=[],
        active_selection=PeriodSelection(goal_type="year", period_key=year_key),
    )


def get_target_for_selection(
    selection: Union[PeriodSelection, CustomSelection],
    targets: Iterable[GoalTarget],
    custom_goals: Iterable[CustomGoal],
) -> float:
    """Target volume count for a selection, 0 if none is set."""
    if selection.goal_type == "custom":
        goal = next((g for g in custom_goals if g.id == selection.custom_id), None)
        return goal.target_volumes if goal else 0

    target = next(
        (
            t
            for t in targets
            if t.goal_type == selection.goal_type and t.period_key == selection.period_key
        ),
        None,
    )
    return target.target_volumes if target else 0


def decode_goals_data(raw: Any, default: GoalsData) -> GoalsData:
    """Decode persisted goals data field by field, defaulting what is malformed."""
    if not isinstance(raw, dict):
        return default
    return GoalsData(
        targets=decode_field(_targets_adapter, raw.get("targets"), default.targets),
        custom_goals=decode_field(
            _custom_goals_adapter, raw.get("customGoals"), default.custom_goals
        ),
        active_selection=decode_field(
            _selection_adapter, raw.get("activeSelection"), default.active_selection
        ),
    )


class GoalStore:
    """
    Holds every goal the reader has set up in one ``GoalsData`` aggregate.

    Each operation builds a new aggregate and persists it as a whole, so a
    single write always captures a consistent view.
    """

    def __init__(
        self,
        backend: StorageBackend,
        clock: Clock = datetime.now,
        default_target: float = 52,
    ):
        self.clock = clock
        self.dataset = PersistedDataset(backend, GOALS_DATA_KEY, GOALS_DATA_UPDATED_AT_KEY, clock)
        default = default_goals_data(clock(), default_target)
        self.data: Writable[GoalsData] = Writable(decode_goals_data(self.dataset.load(), default))
        self.data.subscribe(self._persist)

    def _persist(self, data: GoalsData) -> None:
        self.dataset.save(data.to_json())

    # ----- reads -----

    @property
    def targets(self) -> list[GoalTarget]:
        return self.data.get().targets

    @property
    def custom_goals(self) -> list[CustomGoal]:
        return self.data.get().custom_goals

    @property
    def active_selection(self) -> Union[PeriodSelection, CustomSelection]:
        return self.data.get().active_selection

    def get_custom_goal(self, custom_id: str) -> Optional[CustomGoal]:
        return next((g for g in self.custom_goals if g.id == custom_id), None)

    def get_target(self, selection: Union[PeriodSelection, CustomSelection]) -> float:
        data = self.data.get()
        return get_target_for_selection(selection, data.targets, data.custom_goals)

    # ----- targets -----

    def set_target(self, goal_type: str, period_key: str, target_volumes: float) -> None:
        """Create or update the target for ``(goal_type, period_key)``.

        An existing target keeps its identity and creation time; only the
        volume count changes.
        """
        if target_volumes <= 0:
            logger.warning(f"Ignoring non-positive target {target_volumes} for {goal_type}:{period_key}")
            return

        def apply(data: GoalsData) -> GoalsData:
            targets = list(data.targets)
            for i, target in enumerate(targets):
                if target.goal_type == goal_type and target.period_key == period_key:
                    targets[i] = target.model_copy(update={"target_volumes": target_volumes})
                    break
            else:
                targets.append(
                    GoalTarget(
                        goal_type=goal_type,
                        period_key=period_key,
                        target_volumes=target_volumes,
                        created_at=format_timestamp(self.clock()),
                    )
                )
            return data.model_copy(update={"targets": targets})

        self.data.update(apply)
        logger.info(f"Target set: {goal_type}:{period_key} = {target_volumes}")

    def remove_target(self, goal_type: str, period_key: str) -> None:
        data = self.data.get()
        targets = [
            t for t in data.targets if not (t.goal_type == goal_type and t.period_key == period_key)
        ]
        if len(targets) == len(data.targets):
            return
        self.data.set(data.model_copy(update={"targets": targets}))
        logger.info(f"Target removed: {goal_type}:{period_key}")

    # ----- selection -----

    def set_active_selection(self, selection: Union[PeriodSelection, CustomSelection]) -> None:
        self.data.update(lambda data: data.model_copy(update={"active_selection": selection}))

    # ----- custom goals -----

    def create_custom_goal(
        self,
        name: str,
        target_volumes: float,
        start_date: str,
        end_date: str,
        enabled: bool = True,
    ) -> Optional[CustomGoal]:
        """
        Add a custom goal and make it the active selection.

        Returns:
            The new goal, or None if a required field is missing or invalid
        """
        if not _valid_custom_fields(name, target_volumes, start_date, end_date):
            logger.warning(f"Ignoring invalid custom goal {name!r}")
            return None

        goal = CustomGoal(
            id=str(uuid.uuid4()),
            name=name.strip(),
            target_volumes=target_volumes,
            start_date=start_date,
            end_date=end_date,
            enabled=enabled,
            created_at=format_timestamp(self.clock()),
        )
        self.data.update(
            lambda data: data.model_copy(
                update={
                    "custom_goals": [*data.custom_goals, goal],
                    "active_selection": CustomSelection(custom_id=goal.id),
                }
            )
        )
        logger.info(f"Custom goal created: {goal.name} ({goal.id})")
        return goal

    def update_custom_goal(self, goal: CustomGoal) -> bool:
        """Replace the custom goal with the same id. Returns False if unknown."""
        if self.get_custom_goal(goal.id) is None:
            return False
        if not _valid_custom_fields(goal.name, goal.target_volumes, goal.start_date, goal.end_date):
            logger.warning(f"Ignoring invalid update to custom goal {goal.id}")
            return False

        self.data.update(
            lambda data: data.model_copy(
                update={
                    "custom_goals": [goal if g.id == goal.id else g for g in data.custom_goals]
                }
            )
        )
        return True

    def remove_custom_goal(self, custom_id: str) -> None:
        """Delete a custom goal; if it was selected, fall back to this year's target."""

        def apply(data: GoalsData) -> GoalsData:
            selection = data.active_selection
            if selection.goal_type == "custom" and selection.custom_id == custom_id:
                selection = PeriodSelection(
                    goal_type="year", period_key=get_current_period_key("year", self.clock())
                )
            return data.model_copy(
                update={
                    "custom_goals": [g for g in data.custom_goals if g.id != custom_id],
                    "active_selection": selection,
                }
            )

        self.data.update(apply)
        logger.info(f"Custom goal removed: {custom_id}")

    # ----- sync -----

    def replace(self, data: GoalsData, updated_at: str) -> None:
        """Replace everything with a remote copy and adopt its stamp."""
        self.data.set(data)
        self.dataset.save(data.to_json(), updated_at=updated_at)


def _valid_custom_fields(name: str, target_volumes: float, start_date: str, end_date: str) -> bool:
    return (
        bool(name and name.strip())
        and target_volumes > 0
        and parse_date(start_date) is not None
        and parse_date(end_date) is not None
    )
