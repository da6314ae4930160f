"""Reconcile remote copies of goal datasets with local state."""

import logging
from typing import Any, Mapping

from readgoals._util import EPOCH_TIMESTAMP
from readgoals.storage.backend import StorageBackend

from .ledger import COMPLETED_AT_UPDATED_AT_KEY, CompletionLedger
from .models import GoalSettings, GoalsData
from .settings_store import GoalSettingsStore
from .snapshots import GoalSnapshots, SnapshotFinalizer
from .store import GoalStore

logger = logging.getLogger(__name__)


class SyncMerge:
    """
    Applies payloads delivered by a sync transport.

    Settings, goals data and snapshots are last-write-wins: the caller only
    applies a remote copy it knows to be newer, and the local stamp becomes
    the remote one. Completion stamps merge per volume, earliest wins.
    """

    def __init__(
        self,
        settings_store: GoalSettingsStore,
        goal_store: GoalStore,
        finalizer: SnapshotFinalizer,
        ledger: CompletionLedger,
        backend: StorageBackend,
    ):
        self.settings_store = settings_store
        self.goal_store = goal_store
        self.finalizer = finalizer
        self.ledger = ledger
        self.backend = backend

    # ----- inbound -----

    def set_goal_settings_from_sync(self, settings: GoalSettings, updated_at: str) -> None:
        self.settings_store.replace(settings, updated_at)
        logger.info(f"Goal settings replaced from sync ({updated_at})")

    def set_goals_data_from_sync(self, data: GoalsData, updated_at: str) -> None:
        self.goal_store.replace(data, updated_at)
        logger.info(f"Goals data replaced from sync ({updated_at})")

    def set_goal_snapshots_from_sync(self, snapshots: GoalSnapshots, updated_at: str) -> None:
        self.finalizer.replace(snapshots, updated_at)
        logger.info(f"{len(snapshots)} goal snapshots replaced from sync ({updated_at})")

    def merge_completed_at_from_sync(self, completed_at: Mapping[str, str], updated_at: str) -> None:
        self.ledger.merge_from_sync(completed_at, updated_at)

    # ----- outbound -----

    def get_goal_settings_updated_at(self) -> str:
        return self.settings_store.dataset.get_updated_at()

    def get_goals_data_updated_at(self) -> str:
        return self.goal_store.dataset.get_updated_at()

    def get_goal_snapshots_updated_at(self) -> str:
        return self.finalizer.dataset.get_updated_at()

    def get_completed_at_updated_at(self) -> str:
        return self.backend.get_item(COMPLETED_AT_UPDATED_AT_KEY) or EPOCH_TIMESTAMP

    def export_state(self) -> dict[str, Any]:
        """Every dataset with its stamp, for sending to other devices."""
        return {
            "goalSettings": {
                "data": self.settings_store.settings.get().to_json(),
                "updatedAt": self.get_goal_settings_updated_at(),
            },
            "goalsData": {
                "data": self.goal_store.data.get().to_json(),
                "updatedAt": self.get_goals_data_updated_at(),
            },
            "goalSnapshots": {
                "data": {key: s.to_json() for key, s in self.finalizer.query().items()},
                "updatedAt": self.get_goal_snapshots_updated_at(),
            },
            "completedAt": {
                "data": dict(self.ledger.query()),
                "updatedAt": self.get_completed_at_updated_at(),
            },
        }
