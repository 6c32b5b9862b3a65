from __future__ import annotations

import logging
import random
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any

import requests

from .cache import CachePool
from .catalog import CatalogSource, build_catalog_source, normalize_track
from .errors import CatalogSourceError, CatalogUnavailable, InvalidRecord
from .models import TrackRecord
from .selection import MAX_BATCH, search, select_many, validate
from .settings import catalog_config, load_settings, pool_config

logger = logging.getLogger(__name__)

POOL_KINDS: dict[str, tuple[str, ...]] = {
    "all": ("trending", "all_time"),
    "trending": ("trending",),
    "alltime": ("all_time",),
}


class SongService:
    def __init__(self, pools: dict[str, CachePool], source: CatalogSource, rng: random.Random | None = None):
        self.pools = pools
        self.source = source
        self.rng = rng
        self.started_mono = time.monotonic()

    @classmethod
    def from_settings(cls, settings: dict[str, Any] | None = None) -> SongService:
        runtime_settings = settings if settings is not None else load_settings()
        source = build_catalog_source(runtime_settings)
        delay = catalog_config(runtime_settings)["page_delay_sec"]
        pools = {
            name: CachePool(source, name=name, page_delay_sec=delay, **pool_config(runtime_settings, name))
            for name in ("trending", "all_time")
        }
        return cls(pools, source)

    def combined_pool(self, kind: str = "all") -> list[TrackRecord]:
        names = POOL_KINDS.get(kind)
        if names is None:
            raise ValueError(f"Unknown pool type '{kind}'; expected one of {', '.join(POOL_KINDS)}")

        combined: list[TrackRecord] = []
        last_error: CatalogUnavailable | None = None
        for name in names:
            try:
                combined.extend(self.pools[name].get_pool())
            except CatalogUnavailable as exc:
                logger.warning("Skipping %s pool: %s", name, exc.message)
                last_error = exc
        if not combined and last_error is not None:
            raise last_error
        return combined

    def random_tracks(self, count: int = 1, kind: str = "all", max_count: int = MAX_BATCH) -> tuple[list[TrackRecord], int]:
        pool = self.combined_pool(kind)
        return select_many(pool, count, rng=self.rng, max_count=max_count), len(pool)

    def search(self, query: str) -> list[TrackRecord]:
        text = (query or "").strip()
        if not text:
            return []

        found: list[TrackRecord] = []
        try:
            raw_tracks = self.source.search_by_query(text)
        except (CatalogSourceError, requests.RequestException) as exc:
            logger.warning("Upstream search failed for %r, using local search: %s", text, exc)
            raw_tracks = []

        for raw in raw_tracks:
            try:
                track = normalize_track(raw)
            except InvalidRecord:
                continue
            if validate(track):
                found.append(track)

        if not found:
            logger.info("No upstream results for %r, searching trending pool", text)
            found = search(self.pools["trending"].get_pool(), text)
        logger.info("Found %d songs matching %r", len(found), text)
        return found

    def warm(self) -> dict[str, bool]:
        def _refresh(pool: CachePool) -> bool:
            try:
                pool.get_pool()
            except CatalogUnavailable as exc:
                logger.error("Failed to pre-load %s cache: %s", pool.name, exc.message)
                return False
            return True

        with ThreadPoolExecutor(max_workers=len(self.pools) or 1) as executor:
            results = dict(zip(self.pools, executor.map(_refresh, self.pools.values())))
        logger.info("Cache warm-up finished: %s", results)
        return results

    def health(self) -> dict[str, Any]:
        statuses = {name: pool.status() for name, pool in self.pools.items()}
        healthy = all(status.track_count > 0 for status in statuses.values())
        return {
            "status": "healthy" if healthy else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime_sec": round(time.monotonic() - self.started_mono, 3),
            "pools": {name: status.model_dump(mode="json") for name, status in statuses.items()},
        }
