"""Completion ledger: when each volume was first seen complete."""

import logging
from datetime import datetime
from types import MappingProxyType
from typing import Mapping

from readgoals._util import Clock, format_timestamp, parse_timestamp
from readgoals.library.models import CatalogVolume, VolumeProgress
from readgoals.library.progress_log import ProgressLog
from readgoals.reactive import Writable, defer
from readgoals.storage.backend import StorageBackend

logger = logging.getLogger(__name__)

COMPLETED_AT_UPDATED_AT_KEY = "completedAtUpdatedAt"


def is_volume_completed(volume: VolumeProgress, total_pages: int) -> bool:
    return volume.completed or (total_pages > 0 and volume.progress >= total_pages)


def _is_earlier(incoming: str, existing: str) -> bool:
    """True if ``incoming`` should replace ``existing`` (earliest valid wins)."""
    incoming_time = parse_timestamp(incoming)
    if incoming_time is None:
        return False
    existing_time = parse_timestamp(existing)
    return existing_time is None or incoming_time < existing_time


class CompletionLedger:
    """
    Maps volume id -> completedAt timestamp.

    Entries are discovered by ``backfill`` and never overwritten by it; only
    ``merge_from_sync`` may move an entry, and only to an earlier time.
    The stamps also live in the progress log's own records, where they are
    written back after every change.
    """

    def __init__(
        self,
        progress_log: ProgressLog,
        backend: StorageBackend,
        clock: Clock = datetime.now,
    ):
        self.progress_log = progress_log
        self.backend = backend
        self.clock = clock
        self.completed_at: Writable[dict[str, str]] = Writable(progress_log.completed_at_map())

    def query(self) -> Mapping[str, str]:
        """Read-only view of the full ledger."""
        return MappingProxyType(self.completed_at.get())

    def backfill(
        self,
        volumes: Mapping[str, VolumeProgress],
        catalog: Mapping[str, CatalogVolume],
    ) -> list[str]:
        """
        Record a completion stamp for every newly completed volume.

        A volume counts as completed when flagged so by the log or when its
        current page reached the catalog page count. The stamp is the
        volume's last progress update, or now if it has none.

        Args:
            volumes: Progress log records by volume id
            catalog: Catalog entries by volume id

        Returns:
            Ids of volumes added to the ledger (empty when nothing changed)
        """
        current = self.completed_at.get()
        updated = current
        added = []

        for volume_id, volume in volumes.items():
            if current.get(volume_id):
                continue

            entry = catalog.get(volume_id)
            total_pages = entry.page_count if entry else 0
            if not is_volume_completed(volume, total_pages):
                continue

            if updated is current:
                updated = dict(current)
            updated[volume_id] = volume.last_progress_update or format_timestamp(self.clock())
            added.append(volume_id)

        if not added:
            return added

        self.completed_at.set(updated)
        logger.info(f"Backfilled completion for {len(added)} volumes")
        defer(lambda: self._write_back(updated))
        return added

    def merge_from_sync(self, incoming: Mapping[str, str], updated_at: str) -> None:
        """
        Merge remote completion stamps, keeping the earliest per volume.

        An unparseable incoming stamp never replaces a valid local one.
        """
        merged = dict(self.completed_at.get())
        changed = 0
        for volume_id, completed_at in incoming.items():
            if not completed_at:
                continue
            existing = merged.get(volume_id)
            if not existing or _is_earlier(completed_at, existing):
                merged[volume_id] = completed_at
                changed += 1

        self.completed_at.set(merged)
        self._write_back(merged)
        self.backend.set_item(COMPLETED_AT_UPDATED_AT_KEY, updated_at)
        logger.info(f"Merged {changed} completion stamps from sync")

    def _write_back(self, completed_at: Mapping[str, str]) -> None:
        """Best effort: a failed write leaves the in-memory ledger authoritative."""
        try:
            if self.progress_log.write_completed_at(completed_at):
                self.backend.set_item(
                    COMPLETED_AT_UPDATED_AT_KEY, format_timestamp(self.clock())
                )
        except Exception:
            logger.debug("Could not write completion stamps to progress log", exc_info=True)
