"""FastAPI entry point.

Run with `python main.py`, or with uvicorn through the app factory:
    uvicorn --factory main:create_app --host 0.0.0.0 --port 8000
"""
import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routes.health_route import router as health_router
from routes.image_route import presign_router, router as image_router
from routes.object_route import router as object_router
from services.expiration_sweeper import ExpirationSweeper
from services.factory import build_engine
from services.local_object_store import LocalObjectStore
from services.object_store import ObjectStore
from utils.config import AppConfig
from utils.database_init import AsyncDatabaseInitializer

load_dotenv()  # Load environment variables from .env file if present

logger = logging.getLogger(__name__)


def _make_lifespan(object_store: Optional[ObjectStore]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Lifespan manager to initialize:
          - the SQLite metadata database (at DATABASE_DIR/app.db)
          - the object store and the image lifecycle engine
          - the in-process expiration sweeper, unless SWEEP_INTERVAL_SECONDS is 0
        and attach them to `app.state`.
        """
        cfg = app.state.config
        db_initializer = AsyncDatabaseInitializer(cfg.database_dir)
        await db_initializer.ensure_database()
        app.state.db_initializer = db_initializer

        try:
            engine = build_engine(cfg, db_initializer=db_initializer, object_store=object_store)
        except Exception as exc:
            raise RuntimeError("Failed to initialize the object store") from exc
        app.state.engine = engine

        sweep_task = None
        if cfg.sweep_interval_seconds > 0:
            sweeper = ExpirationSweeper(engine, interval_seconds=cfg.sweep_interval_seconds)
            sweep_task = asyncio.create_task(sweeper.run_periodic())
            logger.info("Expiration sweeper running every %ss", cfg.sweep_interval_seconds)

        try:
            yield
        finally:
            if sweep_task is not None:
                sweep_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await sweep_task

    return lifespan


def create_app(config: Optional[AppConfig] = None, *, object_store: Optional[ObjectStore] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Args:
        config: Settings; read from the environment when omitted.
        object_store: Optional object store overriding the configured backend.
    """
    config = config or AppConfig.from_env()
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Ephemeral Image Share", lifespan=_make_lifespan(object_store))
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Content-Length", "X-Requested-With"],
        expose_headers=["Content-Length", "Content-Type", "ETag"],
        allow_credentials=False,
        max_age=86400,
    )

    # Register application routers
    app.include_router(health_router)
    app.include_router(presign_router)
    app.include_router(image_router)
    if isinstance(object_store, LocalObjectStore) or (object_store is None and config.object_store_backend == "local"):
        app.include_router(object_router)

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
