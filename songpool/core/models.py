from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, Field, computed_field

UNKNOWN = "Unknown"
UNKNOWN_ARTIST = "Unknown Artist"


class TrackRecord(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    title: str = "Unknown Title"
    artists: list[str] = Field(default_factory=list)
    stream_url: str | None = None
    download_url: str | None = None
    thumbnail_url: str | None = None
    genre: str = UNKNOWN
    mood: str = UNKNOWN
    duration: str = UNKNOWN
    release_date: str = UNKNOWN
    tags: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def artist(self) -> str:
        return ", ".join(self.artists) if self.artists else UNKNOWN_ARTIST


class PoolStatus(BaseModel):
    name: str
    track_count: int = 0
    last_refreshed_at: datetime | None = None
    is_fresh: bool = False
    ttl_sec: int
    page_offset: int
    max_pages: int
