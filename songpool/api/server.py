from __future__ import annotations

import argparse
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from songpool import __version__
from songpool.core.errors import CatalogUnavailable, EmptyPool, SongPoolError
from songpool.core.service import POOL_KINDS, SongService
from songpool.core.settings import configure_logging, load_settings, server_config

logger = logging.getLogger(__name__)

MAX_REQUEST_COUNT = 50

ENDPOINTS = {
    "/random": "Get random songs; ?count=N (1-50), ?type=all|trending|alltime",
    "/search": "Search songs; ?q=text (required)",
    "/health": "Liveness and cache freshness",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(status_code: int, error: str, exc: SongPoolError) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "code": exc.code, "message": exc.message})


def create_app(service: SongService | None = None, settings: dict[str, Any] | None = None) -> FastAPI:
    songs = service or SongService.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Pre-loading song caches")
        await run_in_threadpool(songs.warm)
        yield

    app = FastAPI(title="songpool", version=__version__, lifespan=lifespan)
    app.state.songs = songs
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.exception_handler(EmptyPool)
    async def _empty_pool(request: Request, exc: EmptyPool) -> JSONResponse:
        return _error(404, "No songs available", exc)

    @app.exception_handler(CatalogUnavailable)
    async def _catalog_unavailable(request: Request, exc: CatalogUnavailable) -> JSONResponse:
        logger.error("%s failed: %s", request.url.path, exc.message)
        return _error(503, "Catalog unavailable", exc)

    @app.exception_handler(SongPoolError)
    async def _songpool_error(request: Request, exc: SongPoolError) -> JSONResponse:
        logger.error("%s failed: %s", request.url.path, exc.message)
        return _error(500, "Internal server error", exc)

    @app.get("/api")
    def api_info() -> dict[str, Any]:
        return {"name": "songpool", "version": __version__, "endpoints": ENDPOINTS}

    @app.get("/random")
    def random_songs(count: int = 1, kind: str = Query("all", alias="type")) -> dict[str, Any]:
        if kind not in POOL_KINDS:
            raise HTTPException(status_code=400, detail=f"Unknown type '{kind}'; use one of {', '.join(POOL_KINDS)}")
        wanted = max(1, min(count, MAX_REQUEST_COUNT))
        tracks, total = songs.random_tracks(wanted, kind=kind, max_count=MAX_REQUEST_COUNT)
        return {
            "status": "success",
            "data": [track.model_dump() for track in tracks],
            "count": len(tracks),
            "total_available": total,
            "timestamp": _now(),
        }

    @app.get("/search")
    def search_songs(q: str | None = None) -> dict[str, Any]:
        if not q:
            raise HTTPException(status_code=400, detail="Missing search query; provide a search term with 'q'")
        tracks = songs.search(q)
        return {
            "status": "success",
            "data": [track.model_dump() for track in tracks],
            "query": q,
            "count": len(tracks),
        }

    @app.get("/health")
    def health() -> dict[str, Any]:
        return songs.health()

    return app


def main() -> None:
    parser = argparse.ArgumentParser(description="Serve random royalty-free songs over HTTP")
    parser.add_argument("--settings", help="Path to settings YAML")
    parser.add_argument("--host", help="Bind address")
    parser.add_argument("--port", type=int, help="Bind port")
    args = parser.parse_args()

    import uvicorn

    settings = load_settings(args.settings)
    configure_logging(settings=settings)
    host, port = server_config(settings)
    app = create_app(settings=settings)
    uvicorn.run(app, host=args.host or host, port=args.port or port, log_config=None)


if __name__ == "__main__":
    main()
