from __future__ import annotations

import logging
import math
import random
from collections.abc import Sequence
from typing import Any

from .errors import EmptyPool
from .models import TrackRecord

logger = logging.getLogger(__name__)

TOP_SLICE = 0.6
POPULAR_SLICE = 0.8
TOP_CHANCE = 0.70
POPULAR_CHANCE = 0.90

MAX_BATCH = 10
UNIQUE_ATTEMPTS = 10


def validate(track: Any) -> bool:
    """True when the record has at least one playable or downloadable URL."""
    if isinstance(track, TrackRecord):
        urls = (track.stream_url, track.download_url)
    elif isinstance(track, dict):
        urls = (track.get("stream_url"), track.get("download_url"))
    else:
        return False
    return any(isinstance(url, str) and url.strip() for url in urls)


def _usable(pool: Sequence[TrackRecord]) -> list[TrackRecord]:
    return [track for track in pool if validate(track)]


def select_one(
    pool: Sequence[TrackRecord],
    rng: random.Random | None = None,
    ranked: bool = True,
) -> TrackRecord:
    """Popularity-weighted random draw.

    The pool is assumed to be sorted most-popular first. 70% of draws come from
    the top 60% of the pool, 20% from the top 80%, and 10% from the whole pool.
    With ``ranked=False`` every record is equally likely.
    """
    rand = rng or random
    candidates = _usable(pool)
    if not candidates:
        raise EmptyPool("POOL_EMPTY", "No songs available for random selection")

    total = len(candidates)
    if not ranked:
        return candidates[rand.randrange(total)]

    r = rand.random()
    if r < TOP_CHANCE:
        tier, size = "top", math.ceil(total * TOP_SLICE)
    elif r < POPULAR_CHANCE:
        tier, size = "popular", math.ceil(total * POPULAR_SLICE)
    else:
        tier, size = "any", total

    selected = candidates[rand.randrange(size)]
    logger.debug("Selected from %s tier (%d/%d): %s by %s", tier, size, total, selected.title, selected.artist)
    return selected


def select_many(
    pool: Sequence[TrackRecord],
    count: int,
    rng: random.Random | None = None,
    ranked: bool = True,
    max_count: int = MAX_BATCH,
) -> list[TrackRecord]:
    candidates = _usable(pool)
    if not candidates:
        raise EmptyPool("POOL_EMPTY", "No songs available for random selection")

    wanted = max(0, min(count, max_count, len(candidates)))
    selected: list[TrackRecord] = []
    titles: set[str] = set()
    for _ in range(wanted):
        track = select_one(candidates, rng=rng, ranked=ranked)
        attempts = 1
        while track.title in titles and attempts < UNIQUE_ATTEMPTS:
            track = select_one(candidates, rng=rng, ranked=ranked)
            attempts += 1
        titles.add(track.title)
        selected.append(track)

    logger.debug("Selected %d of %d requested songs from %d available", len(selected), count, len(candidates))
    return selected


def _haystack(track: TrackRecord) -> str:
    return " ".join([track.title, *track.artists, track.genre]).lower()


def search(pool: Sequence[TrackRecord], query: str | None) -> list[TrackRecord]:
    needle = (query or "").strip().lower()
    if not needle:
        return []
    return [track for track in pool if needle in _haystack(track)]
