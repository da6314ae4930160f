"""Goal progress, pace and status calculation."""

import logging
import math
from datetime import datetime
from typing import Iterable, Mapping, Optional, Union

from readgoals.library.models import CatalogVolume, VolumeProgress

from .ledger import is_volume_completed
from .models import (
    CustomGoal,
    CustomSelection,
    GoalProgress,
    GoalSnapshot,
    GoalTarget,
    PeriodSelection,
)
from .periods import (
    calculate_days_remaining,
    days_in_year,
    days_into_year,
    days_remaining_in_period,
    end_of_year,
    expected_progress_percent,
    is_within_range,
    resolve_period,
)
from .snapshots import snapshot_key_for_selection
from .store import get_target_for_selection

logger = logging.getLogger(__name__)

TITLE = "Reading Goal"
FALLBACK_PAGES_PER_VOLUME = 200

Selection = Union[PeriodSelection, CustomSelection]


def classify_status(progress_percent: float, expected_percent: float) -> str:
    """
    Compare actual to expected progress.

    Returns:
        "ahead", "on-track", "behind" or "far-behind"

    Example:
        progress 55%, expected 50% -> ratio 1.1 -> "ahead"
    """
    if expected_percent > 0:
        ratio = progress_percent / expected_percent
    else:
        # nothing expected yet: any progress is ahead
        ratio = 2 if progress_percent > 0 else 1

    if ratio >= 1.1:
        return "ahead"
    elif ratio >= 0.9:
        return "on-track"
    elif ratio >= 0.5:
        return "behind"
    else:
        return "far-behind"


class ProgressCalculator:
    """Calculates progress toward reading goals from the completion ledger."""

    def __init__(self, fallback_pages_per_volume: int = FALLBACK_PAGES_PER_VOLUME):
        self.fallback_pages_per_volume = fallback_pages_per_volume

    def calculate(
        self,
        selection: Selection,
        targets: Iterable[GoalTarget],
        custom_goals: Iterable[CustomGoal],
        volumes: Mapping[str, VolumeProgress],
        catalog: Mapping[str, CatalogVolume],
        snapshots: Mapping[str, GoalSnapshot],
        completed_at: Mapping[str, str],
        now: Optional[datetime] = None,
    ) -> GoalProgress:
        """
        Calculate progress for the selected goal period.

        A closed period with a snapshot counts only the snapshot's volumes.
        Otherwise completions come from the ledger, and volumes read during
        the period but not finished add fractional progress.

        Args:
            selection: Goal period to report on
            targets: Period targets
            custom_goals: Custom goals
            volumes: Progress log records by volume id
            catalog: Catalog entries by volume id
            snapshots: Stored snapshots by snapshot key
            completed_at: Completion ledger
            now: Reference time (defaults to the current local time)

        Returns:
            GoalProgress report
        """
        now = now or datetime.now()
        custom_goals = list(custom_goals)
        period = resolve_period(selection, custom_goals)
        target_volumes = get_target_for_selection(selection, targets, custom_goals) or 0

        if period is None:
            return GoalProgress(
                title=TITLE,
                target_volumes=target_volumes,
                status="behind",
                period_label="Unknown period",
            )

        is_closed = period.end <= now
        snapshot = (
            snapshots.get(snapshot_key_for_selection(selection))
            if is_closed
            else None
        )

        completed_volumes = 0
        in_progress_volumes = 0
        partial_progress = 0.0
        remaining_pages = 0.0

        if snapshot is not None:
            completed_volumes = len(snapshot.completed)
        else:
            for volume_id, volume in volumes.items():
                entry = catalog.get(volume_id)
                total_pages = entry.page_count if entry else 0
                current_page = volume.progress or 0
                stamp = completed_at.get(volume_id)

                if stamp and is_within_range(stamp, period.start, period.end):
                    completed_volumes += 1
                    continue

                # Page 1 counts as not started
                if current_page > 1 and total_pages > 0:
                    if is_within_range(volume.last_progress_update, period.start, period.end):
                        in_progress_volumes += 1
                        partial_progress += current_page / total_pages
                        remaining_pages += total_pages - current_page

        total_progress = completed_volumes + partial_progress
        progress_percent = total_progress / target_volumes * 100 if target_volumes > 0 else 0.0
        expected = expected_progress_percent(period.start, period.end, now)
        days_remaining = days_remaining_in_period(period.end, now)

        report = GoalProgress(
            title=TITLE,
            target_volumes=target_volumes,
            completed_volumes=completed_volumes,
            in_progress_volumes=in_progress_volumes,
            total_progress=total_progress,
            progress_percent=progress_percent,
            expected_progress_percent=expected,
            status=classify_status(progress_percent, expected),
            pages_per_day_for_goal=self._pages_per_day_for_goal(
                target_volumes, total_progress, remaining_pages, in_progress_volumes, days_remaining
            ),
            days_remaining=days_remaining,
            period_label=period.label,
            is_closed=is_closed,
        )
        logger.debug(
            f"{period.label}: {total_progress:.2f}/{target_volumes} "
            f"(expected {expected:.1f}%, status: {report.status})"
        )
        return report

    def calculate_annual(
        self,
        target_volumes: float,
        volumes: Mapping[str, VolumeProgress],
        catalog: Mapping[str, CatalogVolume],
        now: Optional[datetime] = None,
    ) -> GoalProgress:
        """
        Year-to-date progress toward an annual goal.

        Unlike ``calculate`` this ignores completion dates: every completed
        volume counts, and every started one adds partial progress.
        """
        now = now or datetime.now()

        completed_volumes = 0
        in_progress_volumes = 0
        partial_progress = 0.0
        remaining_pages = 0.0

        for volume_id, volume in volumes.items():
            entry = catalog.get(volume_id)
            total_pages = entry.page_count if entry else 0
            current_page = volume.progress or 0

            if is_volume_completed(volume, total_pages):
                completed_volumes += 1
            elif current_page > 1 and total_pages > 0:
                in_progress_volumes += 1
                partial_progress += current_page / total_pages
                remaining_pages += total_pages - current_page

        total_progress = completed_volumes + partial_progress
        progress_percent = total_progress / target_volumes * 100 if target_volumes > 0 else 0.0
        expected = days_into_year(now) / days_in_year(now) * 100
        days_remaining = calculate_days_remaining(end_of_year(now.year), now)

        return GoalProgress(
            title=TITLE,
            target_volumes=target_volumes,
            completed_volumes=completed_volumes,
            in_progress_volumes=in_progress_volumes,
            total_progress=total_progress,
            progress_percent=progress_percent,
            expected_progress_percent=expected,
            status=classify_status(progress_percent, expected),
            pages_per_day_for_goal=self._pages_per_day_for_goal(
                target_volumes, total_progress, remaining_pages, in_progress_volumes, days_remaining
            ),
            days_remaining=days_remaining,
            period_label=f"{now.year}",
            is_closed=False,
        )

    def _pages_per_day_for_goal(
        self,
        target_volumes: float,
        total_progress: float,
        remaining_pages: float,
        in_progress_volumes: int,
        days_remaining: int,
    ) -> int:
        """
        Pages per day needed to reach the target by the end of the period.

        The size of an unread volume is estimated from the pages left in
        volumes being read, or a fixed fallback if none are.
        """
        remaining_volume_equivalent = max(0.0, target_volumes - total_progress)
        if remaining_pages > 0 and in_progress_volumes > 0:
            avg_pages_per_volume = remaining_pages / in_progress_volumes
        else:
            avg_pages_per_volume = self.fallback_pages_per_volume

        if days_remaining <= 0:
            return 0
        return math.ceil(remaining_volume_equivalent * avg_pages_per_volume / days_remaining)
