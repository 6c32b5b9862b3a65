#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def main() -> None:
    parser = argparse.ArgumentParser(description="Search the catalog and pick one matching song")
    parser.add_argument("query", nargs="+", help="Search text, e.g. 'Alan Walker'")
    parser.add_argument("--all", action="store_true", help="Print every match instead of picking one")
    parser.add_argument("-d", "--download", action="store_true", help="Download the selected song")
    parser.add_argument("--dir", help="Download directory (default: $DOWNLOAD_DIR or ./downloads)")
    parser.add_argument("--settings", help="Path to settings YAML")
    args = parser.parse_args()

    from songpool.core.errors import CatalogUnavailable, EmptyPool
    from songpool.core.selection import select_one
    from songpool.core.settings import download_config, load_settings
    from songpool.tools._common import download_all, get_service, print_json

    service = get_service(args.settings)
    query = " ".join(args.query)
    try:
        matches = service.search(query)
        picked = matches if args.all else [select_one(matches)]
    except (CatalogUnavailable, EmptyPool) as exc:
        print_json({"error": exc.code, "message": exc.message, "query": query})
        sys.exit(1)

    print_json(picked)

    directory, enabled = download_config(load_settings(args.settings))
    if args.download or enabled:
        download_all(picked, args.dir or directory)


if __name__ == "__main__":
    main()
