from __future__ import annotations

import logging
import re
import time
from pathlib import Path

import requests

from .errors import DownloadFailed
from .models import TrackRecord

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
MAX_FILENAME = 200


def sanitize_filename(filename: str | None) -> str:
    if not filename or not isinstance(filename, str):
        return f"song_{int(time.time() * 1000)}.mp3"

    cleaned = re.sub(r'[<>:"/\\|?*]', "_", filename)
    cleaned = re.sub(r"\s+", "_", cleaned)
    cleaned = re.sub(r"_{2,}", "_", cleaned).strip("_")
    if not cleaned.lower().endswith(".mp3"):
        cleaned += ".mp3"

    if len(cleaned) < 5:
        return f"song_{int(time.time() * 1000)}.mp3"
    if len(cleaned) > MAX_FILENAME:
        cleaned = cleaned[: MAX_FILENAME - 4] + ".mp3"
    return cleaned


def track_filename(track: TrackRecord) -> str:
    def slug(value: str) -> str:
        return re.sub(r"[^a-z0-9]", "_", value.lower())

    return f"{slug(track.artist)}_{slug(track.title)}.mp3"


def check_download_directory(directory: str | Path) -> bool:
    path = Path(directory)
    try:
        path.mkdir(parents=True, exist_ok=True)
        marker = path / ".write_test"
        marker.write_text("test")
        marker.unlink()
    except OSError as exc:
        logger.error("Download directory not writable: %s", exc)
        return False
    return True


def _write_body(resp: requests.Response, partial: Path) -> int:
    try:
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise DownloadFailed("DOWNLOAD_HTTP_FAILED", f"Download failed: {exc}") from exc

    written = 0
    try:
        with partial.open("wb") as fh:
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                if chunk:
                    fh.write(chunk)
                    written += len(chunk)
    except (OSError, requests.RequestException) as exc:
        partial.unlink(missing_ok=True)
        raise DownloadFailed("DOWNLOAD_WRITE_FAILED", f"Download interrupted: {exc}") from exc
    return written


def download_track(track: TrackRecord, directory: str | Path, timeout_sec: int = 120) -> Path:
    url = track.download_url or track.stream_url
    if not url:
        raise DownloadFailed("DOWNLOAD_NO_URL", f"No download URL for '{track.title}'")

    target_dir = Path(directory)
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DownloadFailed("DOWNLOAD_WRITE_FAILED", f"Cannot create {target_dir}: {exc}") from exc
    target = target_dir / sanitize_filename(track_filename(track))
    partial = target.with_name(target.name + ".part")

    logger.info("Downloading %s from %s", target.name, url)
    try:
        resp = requests.get(url, timeout=timeout_sec, stream=True, allow_redirects=True)
    except requests.Timeout as exc:
        raise DownloadFailed("DOWNLOAD_TIMEOUT", f"Download timed out after {timeout_sec}s") from exc
    except requests.RequestException as exc:
        raise DownloadFailed("DOWNLOAD_HTTP_FAILED", f"Download failed: {exc}") from exc

    try:
        written = _write_body(resp, partial)
    finally:
        resp.close()

    if written == 0:
        partial.unlink(missing_ok=True)
        raise DownloadFailed("DOWNLOAD_EMPTY", "Server returned no audio content")

    try:
        partial.replace(target)
    except OSError as exc:
        partial.unlink(missing_ok=True)
        raise DownloadFailed("DOWNLOAD_WRITE_FAILED", f"Cannot save {target}: {exc}") from exc
    logger.info("Downloaded %s (%d bytes)", target, written)
    return target
