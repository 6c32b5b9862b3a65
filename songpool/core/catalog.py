from __future__ import annotations

import logging
import os
from typing import Any, Protocol
from uuid import uuid4

import requests
from bs4 import BeautifulSoup

from .errors import CatalogSourceError, InvalidRecord
from .models import UNKNOWN, TrackRecord
from .settings import catalog_config

logger = logging.getLogger(__name__)

NCS_BASE_URL = "https://ncs.io"
JAMENDO_BASE_URL = "https://api.jamendo.com/v3.0"
USER_AGENT = "songpool/0.1 (+https://ncs.io)"


class CatalogSource(Protocol):
    def get_page(self, page: int) -> list[dict[str, Any]]: ...

    def search_by_query(self, text: str) -> list[dict[str, Any]]: ...


def _first_str(*values: Any) -> str | None:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _artist_names(raw: dict[str, Any]) -> list[str]:
    artists = raw.get("artists")
    if isinstance(artists, list):
        names: list[str] = []
        for item in artists:
            name = item.get("name") if isinstance(item, dict) else item
            if isinstance(name, str) and name.strip():
                names.append(name.strip())
        return names
    artist = raw.get("artist")
    if isinstance(artist, str) and artist.strip():
        return [part.strip() for part in artist.split(",") if part.strip()]
    return []


def format_duration(value: Any) -> str:
    if isinstance(value, str) and ":" in value:
        return value
    try:
        seconds = int(float(value))
    except (TypeError, ValueError):
        return UNKNOWN
    if seconds <= 0:
        return UNKNOWN
    return f"{seconds // 60}:{seconds % 60:02d}"


def normalize_track(raw: Any) -> TrackRecord:
    if not isinstance(raw, dict):
        raise InvalidRecord("RECORD_NOT_A_MAPPING", f"Expected a mapping, got {type(raw).__name__}")

    download = raw.get("download")
    stream_url = _first_str(raw.get("previewUrl"), raw.get("streamUrl"), raw.get("stream_url"), raw.get("stream"))
    download_url = _first_str(
        download.get("regular") if isinstance(download, dict) else download,
        raw.get("downloadUrl"),
        raw.get("download_url"),
    ) or stream_url

    raw_id = raw.get("id")
    tags = raw.get("tags") if isinstance(raw.get("tags"), list) else []

    return TrackRecord(
        id=str(raw_id) if raw_id not in (None, "") else uuid4().hex,
        title=_first_str(raw.get("name"), raw.get("title")) or "Unknown Title",
        artists=_artist_names(raw),
        stream_url=stream_url,
        download_url=download_url,
        thumbnail_url=_first_str(raw.get("coverUrl"), raw.get("thumbnailUrl"), raw.get("thumbnail")),
        genre=_first_str(raw.get("genre")) or UNKNOWN,
        mood=_first_str(raw.get("mood")) or UNKNOWN,
        duration=format_duration(raw.get("duration")),
        release_date=_first_str(raw.get("date"), raw.get("releaseDate")) or UNKNOWN,
        tags=[str(tag) for tag in tags if tag],
    )


def _check_response(resp: requests.Response, provider: str) -> None:
    if resp.status_code == 429:
        retry_after = resp.headers.get("Retry-After", "unknown")
        raise CatalogSourceError("CATALOG_RATE_LIMIT", f"Rate-limited by {provider} (Retry-After: {retry_after}s)")
    if resp.status_code != 200:
        raise CatalogSourceError("CATALOG_HTTP_FAILED", f"{provider} request failed: {resp.status_code}")


class NcsCatalogSource:
    """Scrapes the public NoCopyrightSounds listing.

    Every track on ncs.io is rendered with a play button carrying the track
    metadata as ``data-*`` attributes; those are the only fields read.
    """

    def __init__(self, base_url: str = NCS_BASE_URL, timeout_sec: float = 15) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec

    def _fetch_html(self, path: str, params: dict[str, Any]) -> str:
        resp = requests.get(
            f"{self.base_url}{path}",
            params=params,
            headers={"User-Agent": USER_AGENT},
            timeout=self.timeout_sec,
        )
        _check_response(resp, "NCS")
        return resp.text

    def parse_tracks(self, html: str) -> list[dict[str, Any]]:
        soup = BeautifulSoup(html, "html.parser")
        seen: set[str] = set()
        tracks: list[dict[str, Any]] = []
        for button in soup.select("a.player-play[data-tid]"):
            tid = (button.get("data-tid") or "").strip()
            if not tid or tid in seen:
                continue
            seen.add(tid)
            artists = button.get("data-artistraw") or ""
            tracks.append(
                {
                    "id": tid,
                    "name": button.get("data-track"),
                    "artists": [{"name": name.strip()} for name in artists.split(",") if name.strip()],
                    "previewUrl": button.get("data-url"),
                    "download": {"regular": f"{self.base_url}/track/download/{tid}"},
                    "coverUrl": button.get("data-cover"),
                    "genre": button.get("data-genre"),
                }
            )
        return tracks

    def get_page(self, page: int) -> list[dict[str, Any]]:
        return self.parse_tracks(self._fetch_html("/music", {"page": page}))

    def search_by_query(self, text: str) -> list[dict[str, Any]]:
        return self.parse_tracks(self._fetch_html("/music-search", {"q": text}))


class JamendoCatalogSource:
    def __init__(
        self,
        client_id: str | None,
        base_url: str = JAMENDO_BASE_URL,
        page_size: int = 50,
        order: str = "popularity_week",
        timeout_sec: float = 15,
    ) -> None:
        self.client_id = client_id
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size
        self.order = order
        self.timeout_sec = timeout_sec

    def _request(self, extra: dict[str, Any]) -> list[dict[str, Any]]:
        if not self.client_id:
            raise CatalogSourceError("CATALOG_AUTH_MISSING", "Jamendo client id missing; set JAMENDO_CLIENT_ID.")
        params = {
            "client_id": self.client_id,
            "format": "json",
            "limit": self.page_size,
            "order": self.order,
            "include": "musicinfo",
            "audioformat": "mp32",
        }
        params.update(extra)
        resp = requests.get(f"{self.base_url}/tracks/", params=params, timeout=self.timeout_sec)
        _check_response(resp, "Jamendo")

        payload = resp.json()
        results = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(results, list):
            raise CatalogSourceError("CATALOG_BAD_PAYLOAD", "Jamendo response has no results list")
        return [self._to_raw(item) for item in results if isinstance(item, dict)]

    @staticmethod
    def _tag_list(tags: dict[str, Any], key: str) -> list[str]:
        value = tags.get(key)
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, list):
            return []
        return [v for v in value if isinstance(v, str) and v.strip()]

    @classmethod
    def _to_raw(cls, item: dict[str, Any]) -> dict[str, Any]:
        musicinfo = item.get("musicinfo")
        tags = musicinfo.get("tags") if isinstance(musicinfo, dict) else None
        if not isinstance(tags, dict):
            tags = {}
        genres = cls._tag_list(tags, "genres")
        moods = cls._tag_list(tags, "vartags")
        download = item.get("audiodownload") if item.get("audiodownload_allowed", True) else None
        return {
            "id": item.get("id"),
            "name": item.get("name"),
            "artists": [{"name": item.get("artist_name")}] if item.get("artist_name") else [],
            "previewUrl": item.get("audio"),
            "download": {"regular": download} if download else None,
            "coverUrl": item.get("image") or item.get("album_image"),
            "genre": genres[0].title() if genres else None,
            "mood": moods[0].title() if moods else None,
            "duration": item.get("duration"),
            "date": item.get("releasedate"),
            "tags": genres + moods,
        }

    def get_page(self, page: int) -> list[dict[str, Any]]:
        return self._request({"offset": (page - 1) * self.page_size})

    def search_by_query(self, text: str) -> list[dict[str, Any]]:
        return self._request({"search": text})


def build_catalog_source(settings: dict[str, Any]) -> CatalogSource:
    cfg = catalog_config(settings)
    timeout_sec = cfg["request_timeout_sec"]
    if cfg["provider"] == "jamendo":
        jamendo = settings.get("jamendo") or {}
        client_id_env = str(jamendo.get("client_id_env", "JAMENDO_CLIENT_ID"))
        return JamendoCatalogSource(
            client_id=os.getenv(client_id_env),
            page_size=int(jamendo.get("page_size", 50)),
            order=str(jamendo.get("order", "popularity_week")),
            timeout_sec=timeout_sec,
        )
    if cfg["provider"] != "ncs":
        logger.warning("Unknown catalog provider %r; using ncs", cfg["provider"])
    base_url = str((settings.get("ncs") or {}).get("base_url", NCS_BASE_URL))
    return NcsCatalogSource(base_url=base_url, timeout_sec=timeout_sec)
