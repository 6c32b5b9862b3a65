from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from .catalog import CatalogSource, normalize_track
from .errors import CatalogUnavailable, InvalidRecord
from .models import PoolStatus, TrackRecord
from .selection import validate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Snapshot:
    tracks: tuple[TrackRecord, ...]
    refreshed_mono: float
    refreshed_at: datetime


class CachePool:
    """In-memory pool of usable tracks paged in from a catalog source.

    Readers always see a complete snapshot: a refresh builds the new track list
    locally and publishes it with a single attribute assignment.
    """

    def __init__(
        self,
        source: CatalogSource,
        name: str = "trending",
        page_offset: int = 1,
        max_pages: int = 20,
        ttl_sec: int = 300,
        page_delay_sec: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.source = source
        self.name = name
        self.page_offset = max(1, page_offset)
        self.max_pages = max_pages
        self.ttl_sec = ttl_sec
        self.page_delay_sec = page_delay_sec
        self._clock = clock
        self._sleep = sleep
        self._snapshot: _Snapshot | None = None

    @property
    def tracks(self) -> tuple[TrackRecord, ...]:
        snapshot = self._snapshot
        return snapshot.tracks if snapshot else ()

    @property
    def last_refreshed_at(self) -> datetime | None:
        snapshot = self._snapshot
        return snapshot.refreshed_at if snapshot else None

    def is_stale(self) -> bool:
        snapshot = self._snapshot
        if snapshot is None or not snapshot.tracks:
            return True
        return self._clock() - snapshot.refreshed_mono >= self.ttl_sec

    def _collect(self, raw_tracks: list) -> tuple[list[TrackRecord], int]:
        usable: list[TrackRecord] = []
        dropped = 0
        for raw in raw_tracks:
            try:
                track = normalize_track(raw)
            except InvalidRecord as exc:
                logger.debug("[%s] dropping malformed record: %s", self.name, exc.message)
                dropped += 1
                continue
            if not validate(track):
                dropped += 1
                continue
            usable.append(track)
        return usable, dropped

    def refresh(self, max_pages: int | None = None) -> tuple[TrackRecord, ...]:
        pages = self.max_pages if max_pages is None else max_pages
        first = self.page_offset
        last = first + pages - 1
        logger.info("[%s] refreshing from pages %d-%d", self.name, first, last)

        collected: list[TrackRecord] = []
        dropped = 0
        for page in range(first, last + 1):
            try:
                raw_tracks = self.source.get_page(page)
            except Exception as exc:
                logger.warning("[%s] failed to fetch page %d: %s", self.name, page, exc)
                if page == first:
                    raise CatalogUnavailable(
                        "CATALOG_UNAVAILABLE", f"Failed to fetch {self.name} songs: {exc}"
                    ) from exc
                break

            if not raw_tracks:
                logger.info("[%s] page %d: no more songs, stopping", self.name, page)
                break

            usable, skipped = self._collect(raw_tracks)
            collected.extend(usable)
            dropped += skipped
            logger.debug("[%s] page %d: %d songs (%d unusable)", self.name, page, len(usable), skipped)

            if page < last and self.page_delay_sec > 0:
                self._sleep(self.page_delay_sec)

        if dropped:
            logger.info("[%s] dropped %d records without a usable URL", self.name, dropped)
        if not collected:
            raise CatalogUnavailable("CATALOG_EMPTY", f"No {self.name} songs found")

        snapshot = _Snapshot(
            tracks=tuple(collected),
            refreshed_mono=self._clock(),
            refreshed_at=datetime.now(timezone.utc),
        )
        self._snapshot = snapshot
        logger.info("[%s] cached %d songs", self.name, len(snapshot.tracks))
        return snapshot.tracks

    def get_pool(self) -> tuple[TrackRecord, ...]:
        snapshot = self._snapshot
        if not self.is_stale() and snapshot is not None:
            return snapshot.tracks

        try:
            return self.refresh()
        except CatalogUnavailable as exc:
            stale = self._snapshot
            if stale is not None and stale.tracks:
                logger.warning("[%s] using stale cache due to fetch error: %s", self.name, exc.message)
                return stale.tracks
            raise

    def status(self) -> PoolStatus:
        return PoolStatus(
            name=self.name,
            track_count=len(self.tracks),
            last_refreshed_at=self.last_refreshed_at,
            is_fresh=not self.is_stale(),
            ttl_sec=self.ttl_sec,
            page_offset=self.page_offset,
            max_pages=self.max_pages,
        )
