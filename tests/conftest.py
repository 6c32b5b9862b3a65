from __future__ import annotations

import random
from typing import Any

import pytest

from songpool.core.cache import CachePool
from songpool.core.service import SongService


def raw_track(i: int, title: str | None = None, artist: str = "Artist", genre: str = "House") -> dict[str, Any]:
    return {
        "id": f"t{i}",
        "name": title or f"Song {i}",
        "artists": [{"name": artist}],
        "previewUrl": f"https://cdn.example/{i}.mp3",
        "genre": genre,
    }


class StubCatalog:
    """Page map keyed by page number; exceptions in the map are raised."""

    def __init__(self, pages: dict[int, Any] | None = None, search_results: Any = None) -> None:
        self.pages = pages or {}
        self.search_results = search_results if search_results is not None else []
        self.page_calls: list[int] = []
        self.search_calls: list[str] = []

    def get_page(self, page: int) -> list[dict[str, Any]]:
        self.page_calls.append(page)
        result = self.pages.get(page, [])
        if isinstance(result, Exception):
            raise result
        return result

    def search_by_query(self, text: str) -> list[dict[str, Any]]:
        self.search_calls.append(text)
        if isinstance(self.search_results, Exception):
            raise self.search_results
        return self.search_results


def build_service(source: StubCatalog, seed: int = 11) -> SongService:
    pools = {
        "trending": CachePool(source, name="trending", page_offset=1, max_pages=2, sleep=lambda _: None),
        "all_time": CachePool(source, name="all_time", page_offset=21, max_pages=2, sleep=lambda _: None),
    }
    return SongService(pools, source, rng=random.Random(seed))


@pytest.fixture
def catalog() -> StubCatalog:
    return StubCatalog(
        pages={
            1: [raw_track(i) for i in range(1, 31)],
            2: [raw_track(i) for i in range(31, 41)],
            21: [
                raw_track(100, title="Fade", artist="Alan Walker", genre="Electro"),
                raw_track(101, title="Sky High", artist="Elektronomia", genre="Progressive House"),
            ],
        }
    )


@pytest.fixture
def service(catalog: StubCatalog) -> SongService:
    return build_service(catalog)
