"""In-memory view of the catalog's page counts."""

import logging
from typing import Mapping, Optional

from readgoals.reactive import Writable

from .models import CatalogVolume

logger = logging.getLogger(__name__)


class Catalog:
    """Catalog volumes keyed by volume id."""

    def __init__(self, volumes: Optional[Mapping[str, CatalogVolume]] = None):
        self.volumes: Writable[dict[str, CatalogVolume]] = Writable(dict(volumes or {}))

    def replace(self, volumes: Mapping[str, CatalogVolume]) -> None:
        self.volumes.set(dict(volumes))
        logger.info(f"Catalog replaced ({len(volumes)} volumes)")
