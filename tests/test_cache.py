from __future__ import annotations

import json
from typing import Any

import pytest
import requests

from songpool.core.cache import CachePool
from songpool.core.catalog import JamendoCatalogSource
from songpool.core.errors import CatalogSourceError, CatalogUnavailable


def _raw(i: int) -> dict[str, Any]:
    return {
        "id": f"t{i}",
        "name": f"Song {i}",
        "artists": [{"name": "Artist"}],
        "previewUrl": f"https://cdn.example/{i}.mp3",
    }


class FakeSource:
    def __init__(self, pages: dict[int, Any] | None = None, default: Any = None) -> None:
        self.pages = pages or {}
        self.default = default if default is not None else []
        self.calls: list[int] = []

    def get_page(self, page: int) -> list[dict[str, Any]]:
        self.calls.append(page)
        result = self.pages.get(page, self.default)
        if isinstance(result, Exception):
            raise result
        return result

    def search_by_query(self, text: str) -> list[dict[str, Any]]:
        return []


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _pool(source: FakeSource, clock: FakeClock | None = None, sleeps: list | None = None, **kwargs: Any) -> CachePool:
    recorded = sleeps if sleeps is not None else []
    return CachePool(
        source,
        clock=clock or FakeClock(),
        sleep=recorded.append,
        **kwargs,
    )


def test_refresh_stops_on_empty_page() -> None:
    source = FakeSource({1: [_raw(1), _raw(2), _raw(3)], 2: []})
    pool = _pool(source)

    tracks = pool.refresh(max_pages=5)
    assert [t.id for t in tracks] == ["t1", "t2", "t3"]
    assert source.calls == [1, 2]


def test_refresh_respects_max_pages_and_delays_between_pages() -> None:
    source = FakeSource(default=[_raw(0)])
    sleeps: list[float] = []
    pool = _pool(source, sleeps=sleeps, max_pages=3, page_delay_sec=0.1)

    pool.refresh()
    assert source.calls == [1, 2, 3]
    assert sleeps == [0.1, 0.1]


def test_refresh_uses_page_offset() -> None:
    source = FakeSource(default=[_raw(21)])
    pool = _pool(source, name="all_time", page_offset=21, max_pages=2)

    pool.refresh()
    assert source.calls == [21, 22]


def test_refresh_first_page_failure_is_catalog_unavailable() -> None:
    source = FakeSource({1: requests.ConnectionError("down")})
    pool = _pool(source)

    with pytest.raises(CatalogUnavailable) as exc:
        pool.refresh()
    assert exc.value.code == "CATALOG_UNAVAILABLE"
    assert isinstance(exc.value.__cause__, requests.ConnectionError)
    assert pool.tracks == ()


def test_refresh_later_page_failure_keeps_partial_result() -> None:
    source = FakeSource({1: [_raw(1), _raw(2)], 2: CatalogSourceError("CATALOG_RATE_LIMIT", "slow down")})
    pool = _pool(source, max_pages=5)

    tracks = pool.refresh()
    assert len(tracks) == 2
    assert source.calls == [1, 2]
    assert pool.tracks == tracks


def test_refresh_drops_unusable_and_malformed_records() -> None:
    source = FakeSource({1: [_raw(1), {"name": "No URLs"}, "junk", _raw(2)]})
    pool = _pool(source, max_pages=1)

    tracks = pool.refresh()
    assert [t.id for t in tracks] == ["t1", "t2"]


def test_refresh_without_usable_records_fails() -> None:
    source = FakeSource({1: [{"name": "No URLs"}]})
    pool = _pool(source, max_pages=1)

    with pytest.raises(CatalogUnavailable) as exc:
        pool.refresh()
    assert exc.value.code == "CATALOG_EMPTY"


def test_get_pool_is_idempotent_within_ttl() -> None:
    source = FakeSource({1: [_raw(1)], 2: []})
    clock = FakeClock()
    pool = _pool(source, clock=clock, ttl_sec=300)

    first = pool.get_pool()
    calls = list(source.calls)
    clock.now += 299
    second = pool.get_pool()

    assert second is first
    assert source.calls == calls


def test_get_pool_refreshes_when_stale() -> None:
    source = FakeSource({1: [_raw(1)], 2: []})
    clock = FakeClock()
    pool = _pool(source, clock=clock, ttl_sec=300)

    pool.get_pool()
    source.pages[1] = [_raw(5), _raw(6)]
    clock.now += 300
    assert pool.is_stale()
    assert [t.id for t in pool.get_pool()] == ["t5", "t6"]


def test_get_pool_serves_stale_tracks_on_refresh_failure() -> None:
    source = FakeSource({1: [_raw(1), _raw(2), _raw(3)], 2: []})
    clock = FakeClock()
    pool = _pool(source, clock=clock, ttl_sec=60)

    fresh = pool.get_pool()
    source.pages[1] = requests.Timeout("timeout")
    clock.now += 120

    stale = pool.get_pool()
    assert stale == fresh
    assert len(stale) == 3


def test_get_pool_without_cache_propagates_failure() -> None:
    pool = _pool(FakeSource({1: requests.ConnectionError("down")}))
    with pytest.raises(CatalogUnavailable):
        pool.get_pool()


@pytest.mark.parametrize(
    "error",
    [AttributeError("'list' object has no attribute 'get'"), ConnectionError("reset"), TimeoutError()],
)
def test_refresh_later_page_builtin_error_keeps_partial_result(error: Exception) -> None:
    source = FakeSource({1: [_raw(1), _raw(2)], 2: error})
    pool = _pool(source, max_pages=5)

    assert [t.id for t in pool.refresh()] == ["t1", "t2"]
    assert source.calls == [1, 2]


def test_refresh_first_page_builtin_error_is_catalog_unavailable() -> None:
    pool = _pool(FakeSource({1: ValueError("bad page")}))
    with pytest.raises(CatalogUnavailable) as exc:
        pool.refresh()
    assert exc.value.code == "CATALOG_UNAVAILABLE"
    assert isinstance(exc.value.__cause__, ValueError)


def test_get_pool_serves_stale_tracks_on_builtin_error() -> None:
    source = FakeSource({1: [_raw(1)], 2: []})
    clock = FakeClock()
    pool = _pool(source, clock=clock, ttl_sec=60)

    fresh = pool.get_pool()
    source.pages[1] = AttributeError("'list' object has no attribute 'get'")
    clock.now += 120
    assert pool.get_pool() == fresh


def _jamendo_pages(monkeypatch: pytest.MonkeyPatch, pages: dict[int, list]) -> None:
    def fake_get(url, params=None, timeout=None):
        resp = requests.Response()
        resp.status_code = 200
        resp._content = json.dumps({"results": pages.get(params["offset"], [])}).encode()
        return resp

    monkeypatch.setattr("songpool.core.catalog.requests.get", fake_get)


def _jamendo_item(track_id: str, audio: bool = True, **extra: Any) -> dict[str, Any]:
    item: dict[str, Any] = {"id": track_id, "name": f"Song {track_id}", "artist_name": "Artist"}
    if audio:
        item["audio"] = f"https://cdn.jamendo.com/{track_id}.mp3"
    item.update(extra)
    return item


def test_jamendo_refresh_with_odd_musicinfo(monkeypatch: pytest.MonkeyPatch) -> None:
    _jamendo_pages(
        monkeypatch,
        {
            0: [_jamendo_item("j1"), _jamendo_item("j2")],
            2: [
                _jamendo_item("j3", musicinfo={"tags": ["oops"]}),
                _jamendo_item("j4", audio=False, musicinfo={"tags": ["oops"]}),
            ],
        },
    )
    pool = _pool(JamendoCatalogSource(client_id="jid", page_size=2), max_pages=3)

    tracks = pool.refresh()
    assert [t.id for t in tracks] == ["j1", "j2", "j3"]
    assert tracks[2].genre == "Unknown"


def test_jamendo_stale_pool_survives_odd_musicinfo(monkeypatch: pytest.MonkeyPatch) -> None:
    pages = {0: [_jamendo_item("j1")]}
    _jamendo_pages(monkeypatch, pages)
    clock = FakeClock()
    pool = _pool(JamendoCatalogSource(client_id="jid", page_size=1), clock=clock, max_pages=1, ttl_sec=60)

    assert [t.id for t in pool.get_pool()] == ["j1"]
    pages[0] = [_jamendo_item("j2", audio=False, musicinfo={"tags": ["oops"]})]
    clock.now += 120

    assert [t.id for t in pool.get_pool()] == ["j1"]


def test_failed_refresh_leaves_previous_snapshot() -> None:
    source = FakeSource({1: [_raw(1)], 2: []})
    pool = _pool(source)
    before = pool.refresh()

    source.pages[1] = requests.ConnectionError("down")
    with pytest.raises(CatalogUnavailable):
        pool.refresh()
    assert pool.tracks is before


def test_status_reports_freshness() -> None:
    clock = FakeClock()
    pool = _pool(FakeSource({1: [_raw(1)], 2: []}), clock=clock, name="trending", ttl_sec=10)

    empty = pool.status()
    assert empty.track_count == 0
    assert empty.is_fresh is False
    assert empty.last_refreshed_at is None

    pool.refresh()
    status = pool.status()
    assert status.track_count == 1
    assert status.is_fresh is True
    assert status.last_refreshed_at is not None

    clock.now += 10
    assert pool.status().is_fresh is False
