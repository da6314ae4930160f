"""Adapter for the external reading-progress log (the ``volumes`` dataset)."""

import logging
from datetime import datetime
from typing import Mapping

from pydantic import ValidationError

from readgoals._util import Clock
from readgoals.reactive import Writable
from readgoals.storage.backend import StorageBackend
from readgoals.storage.datasets import PersistedDataset

from .models import VolumeProgress

logger = logging.getLogger(__name__)

VOLUMES_KEY = "volumes"
VOLUMES_UPDATED_AT_KEY = "volumesUpdatedAt"


class ProgressLog:
    """Per-volume reading state, persisted as one JSON object keyed by volume id."""

    def __init__(self, backend: StorageBackend, clock: Clock = datetime.now):
        self.dataset = PersistedDataset(backend, VOLUMES_KEY, VOLUMES_UPDATED_AT_KEY, clock)
        self.volumes: Writable[dict[str, VolumeProgress]] = Writable(self._load())

    def _load(self) -> dict[str, VolumeProgress]:
        raw = self.dataset.load()
        if not isinstance(raw, dict):
            return {}

        volumes = {}
        for volume_id, record in raw.items():
            try:
                volumes[volume_id] = VolumeProgress.model_validate(record)
            except ValidationError:
                logger.debug(f"Skipping malformed progress record for {volume_id}")
        return volumes

    def replace(self, volumes: Mapping[str, VolumeProgress]) -> None:
        """Replace the whole log, keeping known completion stamps.

        A record that arrives without ``completedAt`` keeps the one already
        stored for that volume.
        """
        stored = self.completed_at_map()
        merged = {}
        for volume_id, volume in volumes.items():
            if not volume.completed_at and volume_id in stored:
                volume = volume.model_copy(update={"completed_at": stored[volume_id]})
            merged[volume_id] = volume

        self.dataset.save(
            {
                volume_id: volume.model_dump(by_alias=True, exclude_none=True)
                for volume_id, volume in merged.items()
            }
        )
        self.volumes.set(merged)
        logger.info(f"Progress log replaced ({len(merged)} volumes)")

    def completed_at_map(self) -> dict[str, str]:
        """Completion stamps embedded in the persisted records."""
        raw = self.dataset.load()
        if not isinstance(raw, dict):
            return {}

        stamps = {}
        for volume_id, record in raw.items():
            if not isinstance(record, dict):
                continue
            candidate = record.get("completedAt")
            if isinstance(candidate, str) and candidate:
                stamps[volume_id] = candidate
        return stamps

    def write_completed_at(self, completed_at: Mapping[str, str]) -> bool:
        """Patch ``completedAt`` into the persisted records of known volumes.

        Volumes missing from the log are skipped. Returns False when there is
        no persisted log to patch.
        """
        raw = self.dataset.load()
        if not isinstance(raw, dict):
            return False

        patched = dict(raw)
        for volume_id, stamp in completed_at.items():
            record = patched.get(volume_id)
            if not isinstance(record, dict):
                continue
            patched[volume_id] = {**record, "completedAt": stamp}

        self.dataset.save(patched)
        return True
