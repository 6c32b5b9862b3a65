from __future__ import annotations

import json
import logging
from typing import Any

from songpool.core.download import check_download_directory, download_track
from songpool.core.errors import DownloadFailed
from songpool.core.models import TrackRecord
from songpool.core.service import SongService
from songpool.core.settings import configure_logging, load_settings

logger = logging.getLogger(__name__)


def get_service(settings_path: str | None = None, pages: int | None = None) -> SongService:
    settings = load_settings(settings_path)
    configure_logging(settings=settings)
    service = SongService.from_settings(settings)
    if pages:
        for pool in service.pools.values():
            pool.max_pages = pages
    return service


def print_json(data: Any) -> None:
    if hasattr(data, "model_dump"):
        print(json.dumps(data.model_dump(), indent=2))
        return
    if isinstance(data, list):
        print(json.dumps([item.model_dump() if hasattr(item, "model_dump") else item for item in data], indent=2))
        return
    print(json.dumps(data, indent=2))


def download_all(tracks: list[TrackRecord], directory: str) -> int:
    if not check_download_directory(directory):
        logger.error("Download directory not accessible: %s", directory)
        return 0

    downloaded = 0
    for track in tracks:
        try:
            path = download_track(track, directory)
        except DownloadFailed as exc:
            logger.error("Download failed for '%s' (%s): %s", track.title, exc.code, exc.message)
            continue
        logger.info("Downloaded: %s", path)
        downloaded += 1
    return downloaded
