#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def main() -> None:
    parser = argparse.ArgumentParser(description="Pick weighted random songs from the trending and all-time pools")
    parser.add_argument("--count", type=int, default=1, help="Number of songs to pick (max 10)")
    parser.add_argument("--type", default="all", choices=["all", "trending", "alltime"], help="Pool to draw from")
    parser.add_argument("--pages", type=int, help="Catalog pages to fetch per pool")
    parser.add_argument("-d", "--download", action="store_true", help="Download the selected songs")
    parser.add_argument("--dir", help="Download directory (default: $DOWNLOAD_DIR or ./downloads)")
    parser.add_argument("--settings", help="Path to settings YAML")
    args = parser.parse_args()

    from songpool.core.errors import CatalogUnavailable, EmptyPool
    from songpool.core.settings import download_config, load_settings
    from songpool.tools._common import download_all, get_service, print_json

    service = get_service(args.settings, pages=args.pages)
    try:
        tracks, _ = service.random_tracks(args.count, kind=args.type)
    except (CatalogUnavailable, EmptyPool) as exc:
        print_json({"error": exc.code, "message": exc.message})
        sys.exit(1)

    print_json(tracks)

    directory, enabled = download_config(load_settings(args.settings))
    if args.download or enabled:
        download_all(tracks, args.dir or directory)


if __name__ == "__main__":
    main()
