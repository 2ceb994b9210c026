from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI

from .api import register_routes
from .cache import CacheStore, RedisCacheStore, ResponseCache
from .config import Config, load_config
from .db import Database
from .invalidation import InvalidationCoordinator
from .metrics import Analytics
from .tracker import TrackerService

logger = logging.getLogger("tracker-analytics")


def create_app(config: Config, db: Database | None = None, cache_store: CacheStore | None = None) -> FastAPI:
    """Wire the store, cache and services into a FastAPI app.

    ``db`` and ``cache_store`` default to the configured SQLite file and Redis
    server; tests pass an in-memory database and a fake store.
    """
    if db is None:
        db = Database(config.database_path)
        db.initialize()
    if cache_store is None:
        cache_store = RedisCacheStore.from_url(config.redis_url, config.cache_timeout_seconds)

    cache = ResponseCache(cache_store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Tracker analytics starting (db=%s)", config.database_path)
        yield
        await cache.close()
        db.close()
        logger.info("Tracker analytics stopped")

    app = FastAPI(title="Tracker Analytics", lifespan=lifespan)
    app.state.config = config
    app.state.db = db
    app.state.cache = cache
    app.state.invalidator = InvalidationCoordinator(cache)
    app.state.trackers = TrackerService(db)
    app.state.analytics = Analytics(db)

    register_routes(app)
    return app


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def main() -> None:
    load_dotenv()
    configure_logging()

    config = load_config()
    app = create_app(config)
    uvicorn.run(app, host=config.host, port=config.port, log_config=None)


if __name__ == "__main__":
    main()
