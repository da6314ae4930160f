"""Snapshots: frozen completion sets of closed goal periods."""

import logging
from datetime import datetime
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from readgoals._util import Clock, format_timestamp
from readgoals.reactive import Writable
from readgoals.storage.backend import StorageBackend
from readgoals.storage.datasets import PersistedDataset

from .ledger import CompletionLedger
from .models import CustomSelection, GoalSnapshot, PeriodSelection
from .periods import custom_period, format_date, is_within_range, resolve_period
from .store import GoalStore

logger = logging.getLogger(__name__)

GOAL_SNAPSHOTS_KEY = "goalSnapshots"
GOAL_SNAPSHOTS_UPDATED_AT_KEY = "goalSnapshotsUpdatedAt"

GoalSnapshots = dict[str, GoalSnapshot]


def build_snapshot_key(goal_type: str, period_key: str) -> str:
    return f"{goal_type}:{period_key}"


def snapshot_key_for_selection(selection: Union[PeriodSelection, CustomSelection]) -> str:
    """Snapshot key of a selection, using its period key exactly as stored."""
    if selection.goal_type == "custom":
        return build_snapshot_key("custom", selection.custom_id)
    return build_snapshot_key(selection.goal_type, selection.period_key)


def decode_snapshots(raw: Any) -> GoalSnapshots:
    """Decode persisted snapshots, dropping entries that do not validate."""
    if not isinstance(raw, dict):
        return {}

    snapshots = {}
    for key, value in raw.items():
        try:
            snapshots[key] = GoalSnapshot.model_validate(value)
        except ValidationError:
            logger.debug(f"Dropping malformed snapshot {key}")
    return snapshots


class SnapshotFinalizer:
    """
    Freezes goal periods once they have ended.

    At most one snapshot ever exists per key: finalizing an already
    snapshotted period leaves the stored snapshot untouched, so the sweep
    can run as often as callers like.
    """

    def __init__(
        self,
        ledger: CompletionLedger,
        goal_store: GoalStore,
        backend: StorageBackend,
        clock: Clock = datetime.now,
    ):
        self.ledger = ledger
        self.goal_store = goal_store
        self.clock = clock
        self.dataset = PersistedDataset(
            backend, GOAL_SNAPSHOTS_KEY, GOAL_SNAPSHOTS_UPDATED_AT_KEY, clock
        )
        self.snapshots: Writable[GoalSnapshots] = Writable(decode_snapshots(self.dataset.load()))
        self.snapshots.subscribe(self._persist)

    def _persist(self, snapshots: GoalSnapshots) -> None:
        self.dataset.save({key: snapshot.to_json() for key, snapshot in snapshots.items()})

    def query(self) -> Mapping[str, GoalSnapshot]:
        return MappingProxyType(self.snapshots.get())

    def get_snapshot(self, goal_type: str, period_key: str) -> Optional[GoalSnapshot]:
        return self.snapshots.get().get(build_snapshot_key(goal_type, period_key))

    def create_snapshot_for_period(
        self, goal_type: str, period_key: str, start: datetime, end: datetime
    ) -> GoalSnapshot:
        """Build (without storing) a snapshot of ledger entries in ``[start, end)``."""
        completed = {
            volume_id: completed_at
            for volume_id, completed_at in self.ledger.query().items()
            if completed_at and is_within_range(completed_at, start, end)
        }
        return GoalSnapshot(
            goal_type=goal_type,
            period_key=period_key,
            start_date=format_date(start),
            end_date=format_date(end),
            closed_at=format_timestamp(self.clock()),
            completed=completed,
        )

    def finalize_goal_snapshot(
        self, goal_type: str, period_key: str, start: datetime, end: datetime
    ) -> bool:
        """
        Store a snapshot for the period unless one already exists.

        Returns:
            True if a snapshot was inserted
        """
        key = build_snapshot_key(goal_type, period_key)
        current = self.snapshots.get()
        if key in current:
            return False

        snapshot = self.create_snapshot_for_period(goal_type, period_key, start, end)
        self.snapshots.set({**current, key: snapshot})
        logger.info(f"Finalized snapshot {key}: {len(snapshot.completed)} completed")
        return True

    def finalize_closed_goal_snapshots(self) -> list[str]:
        """
        Snapshot every ended period that has a target or an enabled custom goal.

        Returns:
            Keys of the snapshots created by this sweep
        """
        now = self.clock()
        created = []

        for target in self.goal_store.targets:
            period = resolve_period(
                PeriodSelection(goal_type=target.goal_type, period_key=target.period_key)
            )
            if not period or period.end > now:
                continue
            # keyed by the stored period key, even when it is not canonical
            if self.finalize_goal_snapshot(
                target.goal_type, target.period_key, period.start, period.end
            ):
                created.append(build_snapshot_key(target.goal_type, target.period_key))

        for goal in self.goal_store.custom_goals:
            if not goal.enabled:
                continue
            period = custom_period(goal)
            if not period or period.end > now:
                continue
            if self.finalize_goal_snapshot("custom", goal.id, period.start, period.end):
                created.append(build_snapshot_key("custom", goal.id))

        return created

    def replace(self, snapshots: GoalSnapshots, updated_at: str) -> None:
        """Replace all snapshots with a remote copy and adopt its stamp."""
        self.snapshots.set(dict(snapshots))
        self._persist(snapshots)
        self.dataset.set_updated_at(updated_at)
