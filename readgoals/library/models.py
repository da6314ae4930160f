"""Data models for the reading-progress log and the catalog."""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class VolumeProgress(BaseModel):
    """Reading state of one volume, as kept by the progress log."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    progress: float = 0  # current page
    completed: bool = False
    last_progress_update: Optional[str] = None
    completed_at: Optional[str] = None


class CatalogVolume(BaseModel):
    """Catalog entry. Only the page count matters here."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    page_count: int = 0
