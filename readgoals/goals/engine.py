"""Wires the goal stores, ledger and calculators into one engine."""

import logging
from datetime import datetime
from typing import Optional

from readgoals._util import Clock
from readgoals.library.catalog import Catalog
from readgoals.library.progress_log import ProgressLog
from readgoals.reactive import Derived
from readgoals.storage.backend import StorageBackend

from .ledger import CompletionLedger
from .models import GoalPeriod, GoalProgress, GoalSnapshot
from .periods import resolve_period
from .progress import FALLBACK_PAGES_PER_VOLUME, ProgressCalculator
from .settings_store import GoalSettingsStore
from .snapshots import SnapshotFinalizer, snapshot_key_for_selection
from .store import GoalStore
from .sync import SyncMerge

logger = logging.getLogger(__name__)


class ReadingGoalsEngine:
    """
    One instance per process or session, passed to whoever needs it.

    Completion backfill runs whenever the progress log or the catalog
    changes. Derived values (``active_progress`` etc.) recompute from their
    inputs every time they are read.
    """

    def __init__(
        self,
        backend: StorageBackend,
        clock: Clock = datetime.now,
        default_annual_target: float = 52,
        fallback_pages_per_volume: int = FALLBACK_PAGES_PER_VOLUME,
        catalog: Optional[Catalog] = None,
    ):
        self.backend = backend
        self.clock = clock

        self.progress_log = ProgressLog(backend, clock)
        self.catalog = catalog or Catalog()
        self.ledger = CompletionLedger(self.progress_log, backend, clock)
        self.settings_store = GoalSettingsStore(backend, clock, default_annual_target)
        self.goal_store = GoalStore(backend, clock, default_annual_target)
        self.finalizer = SnapshotFinalizer(self.ledger, self.goal_store, backend, clock)
        self.sync = SyncMerge(
            self.settings_store, self.goal_store, self.finalizer, self.ledger, backend
        )
        self.calculator = ProgressCalculator(fallback_pages_per_volume)

        self.progress_log.volumes.subscribe(lambda _volumes: self.backfill())
        self.catalog.volumes.subscribe(lambda _catalog: self.backfill())
        self.backfill()

        self.active_period: Derived[Optional[GoalPeriod]] = Derived(
            [self.goal_store.data], lambda data: resolve_period(data.active_selection, data.custom_goals)
        )
        self.active_snapshot: Derived[Optional[GoalSnapshot]] = Derived(
            [self.goal_store.data, self.finalizer.snapshots], self._active_snapshot
        )
        self.active_progress: Derived[GoalProgress] = Derived(
            [
                self.goal_store.data,
                self.progress_log.volumes,
                self.catalog.volumes,
                self.finalizer.snapshots,
                self.ledger.completed_at,
            ],
            self._active_progress,
        )
        self.annual_progress: Derived[GoalProgress] = Derived(
            [self.settings_store.settings, self.progress_log.volumes, self.catalog.volumes],
            self._annual_progress,
        )

    def backfill(self) -> list[str]:
        return self.ledger.backfill(self.progress_log.volumes.get(), self.catalog.volumes.get())

    def _active_snapshot(self, data, snapshots) -> Optional[GoalSnapshot]:
        period = resolve_period(data.active_selection, data.custom_goals)
        if period is None:
            return None
        return snapshots.get(snapshot_key_for_selection(data.active_selection))

    def _active_progress(self, data, volumes, catalog, snapshots, completed_at) -> GoalProgress:
        return self.calculator.calculate(
            data.active_selection,
            data.targets,
            data.custom_goals,
            volumes,
            catalog,
            snapshots,
            completed_at,
            now=self.clock(),
        )

    def _annual_progress(self, settings, volumes, catalog) -> GoalProgress:
        now = self.clock()
        return self.calculator.calculate_annual(
            self.settings_store.get_annual_goal(now.year), volumes, catalog, now=now
        )
