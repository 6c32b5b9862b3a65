from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

POOL_DEFAULTS: dict[str, dict[str, Any]] = {
    "trending": {"page_offset": 1, "max_pages": 20, "ttl_sec": 300},
    "all_time": {"page_offset": 21, "max_pages": 5, "ttl_sec": 1800},
}


def load_settings(path: str | None = None) -> dict[str, Any]:
    config_path = Path(path or os.getenv("SONGPOOL_SETTINGS_PATH", "config/settings.example.yaml"))
    if not config_path.exists():
        return {}
    return yaml.safe_load(config_path.read_text()) or {}


def catalog_config(settings: dict[str, Any]) -> dict[str, Any]:
    cfg = settings.get("catalog") or {}
    return {
        "provider": str(cfg.get("provider", "ncs")).lower(),
        "request_timeout_sec": float(cfg.get("request_timeout_sec", 15)),
        "page_delay_sec": float(cfg.get("page_delay_sec", 0.1)),
    }


def pool_config(settings: dict[str, Any], name: str) -> dict[str, int]:
    defaults = POOL_DEFAULTS[name]
    cfg = (settings.get("pools") or {}).get(name) or {}
    return {key: int(cfg.get(key, value)) for key, value in defaults.items()}


def download_config(settings: dict[str, Any]) -> tuple[str, bool]:
    cfg = settings.get("download") or {}
    directory = os.getenv("DOWNLOAD_DIR") or cfg.get("dir", "./downloads")
    enabled = os.getenv("DOWNLOAD_ENABLED", "").lower() == "true" or bool(cfg.get("enabled", False))
    return str(directory), enabled


def server_config(settings: dict[str, Any]) -> tuple[str, int]:
    cfg = settings.get("server") or {}
    host = str(cfg.get("host", "0.0.0.0"))
    port = int(os.getenv("PORT") or cfg.get("port", 5000))
    return host, port


def configure_logging(level: str | None = None, settings: dict[str, Any] | None = None) -> None:
    configured = ((settings or {}).get("logging") or {}).get("level")
    name = (level or os.getenv("SONGPOOL_LOG_LEVEL") or configured or "INFO").upper()

    root = logging.getLogger()
    root.setLevel(getattr(logging, name, logging.INFO))
    for handler in root.handlers:
        if getattr(handler, "_songpool", False):
            return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._songpool = True  # type: ignore[attr-defined]
    root.addHandler(handler)
