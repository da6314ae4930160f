"""Named JSON datasets with a separately stored "last updated" stamp."""

import json
import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import TypeAdapter, ValidationError

from readgoals._util import EPOCH_TIMESTAMP, Clock, format_timestamp

from .backend import StorageBackend

logger = logging.getLogger(__name__)


class PersistedDataset:
    """One logical dataset stored as JSON under a stable name."""

    def __init__(
        self,
        backend: StorageBackend,
        name: str,
        updated_at_key: str,
        clock: Clock = datetime.now,
    ):
        self.backend = backend
        self.name = name
        self.updated_at_key = updated_at_key
        self.clock = clock

    def load(self) -> Optional[Any]:
        """Return the parsed payload, or None if absent or unparseable."""
        stored = self.backend.get_item(self.name)
        if not stored:
            return None
        try:
            return json.loads(stored)
        except json.JSONDecodeError:
            logger.debug(f"Ignoring unparseable {self.name} payload")
            return None

    def save(self, payload: Any, updated_at: Optional[str] = None) -> None:
        """Write the payload and stamp it (now, unless a stamp is given)."""
        self.backend.set_item(self.name, json.dumps(payload, ensure_ascii=False))
        self.set_updated_at(updated_at or format_timestamp(self.clock()))

    def get_updated_at(self) -> str:
        return self.backend.get_item(self.updated_at_key) or EPOCH_TIMESTAMP

    def set_updated_at(self, updated_at: str) -> None:
        self.backend.set_item(self.updated_at_key, updated_at)


def decode_field(adapter: TypeAdapter, value: Any, default: Any) -> Any:
    """Validate one field of a persisted payload, or return ``default``."""
    if value is None:
        return default
    try:
        return adapter.validate_python(value)
    except ValidationError:
        logger.debug(f"Falling back to default for malformed field: {value!r:.80}")
        return default
